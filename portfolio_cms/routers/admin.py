"""
Elevated endpoints: every article regardless of status, the comment
moderation queue and the full project list.  Authentication is handled in
front of this service.
"""
from fastapi import APIRouter, Depends, Query

from portfolio_cms.dependencies import PaginationParams, get_uow
from portfolio_cms.schemas import (
    ArticleEditDetail,
    CommentAdminResponse,
    ModerationRequest,
    PaginatedResponse,
    ProjectResponse,
)
from portfolio_cms.services import article_service, comment_service, project_service
from portfolio_cms.unit_of_work import UnitOfWork
from portfolio_cms.workflow import ArticleStatus, CommentStatus

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])

@router.get("/articles", response_model=PaginatedResponse)
async def list_all_articles(
    pagination: PaginationParams = Depends(),
    status: ArticleStatus | None = Query(None),
    search: str | None = Query(None, max_length=200),
    uow: UnitOfWork = Depends(get_uow),
):
    return await article_service.get_all_articles(
        uow,
        pagination.page,
        pagination.page_size,
        status=status,
        search=search,
        sort_by=pagination.sort_by or "created_date",
        sort_order=pagination.sort_order,
    )

@router.get("/articles/{article_id}", response_model=ArticleEditDetail)
async def get_article_for_edit(article_id: int, uow: UnitOfWork = Depends(get_uow)):
    return await article_service.get_article_for_edit(uow, article_id)

@router.get("/comments", response_model=PaginatedResponse)
async def list_comments(
    pagination: PaginationParams = Depends(),
    status: CommentStatus | None = Query(None),
    uow: UnitOfWork = Depends(get_uow),
):
    if status is None:
        return await comment_service.get_all_comments(uow, pagination.page, pagination.page_size)
    return await comment_service.get_comments_by_status(
        uow, status, pagination.page, pagination.page_size
    )

@router.post("/comments/{comment_id}/approve", response_model=CommentAdminResponse)
async def approve_comment(
    comment_id: int, data: ModerationRequest | None = None, uow: UnitOfWork = Depends(get_uow)
):
    return await comment_service.approve_comment(uow, comment_id, data.row_version if data else None)

@router.post("/comments/{comment_id}/reject", response_model=CommentAdminResponse)
async def reject_comment(
    comment_id: int, data: ModerationRequest | None = None, uow: UnitOfWork = Depends(get_uow)
):
    return await comment_service.reject_comment(uow, comment_id, data.row_version if data else None)

@router.post("/comments/{comment_id}/spam", response_model=CommentAdminResponse)
async def mark_comment_spam(
    comment_id: int, data: ModerationRequest | None = None, uow: UnitOfWork = Depends(get_uow)
):
    return await comment_service.mark_comment_spam(
        uow, comment_id, data.row_version if data else None
    )

@router.delete("/comments/{comment_id}", status_code=204)
async def delete_comment(comment_id: int, uow: UnitOfWork = Depends(get_uow)):
    await comment_service.delete_comment(uow, comment_id)

@router.get("/projects", response_model=list[ProjectResponse])
async def list_all_projects(uow: UnitOfWork = Depends(get_uow)):
    return await project_service.get_all_projects(uow)
