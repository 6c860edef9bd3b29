from fastapi import APIRouter, Depends, Query, Request

from portfolio_cms.dependencies import PaginationParams, get_uow
from portfolio_cms.schemas import (
    ArticleCreate,
    ArticleDetail,
    ArticleResponse,
    ArticleUpdate,
    CommentCreate,
    CommentResponse,
    PaginatedResponse,
    TransitionRequest,
)
from portfolio_cms.services import article_service, comment_service
from portfolio_cms.unit_of_work import UnitOfWork

router = APIRouter(prefix="/api/v1/articles", tags=["articles"])

@router.get("", response_model=PaginatedResponse)
async def list_articles(
    pagination: PaginationParams = Depends(),
    search: str | None = Query(None, max_length=200),
    tag: str | None = Query(None, max_length=50),
    uow: UnitOfWork = Depends(get_uow),
):
    return await article_service.get_published_articles(
        uow,
        pagination.page,
        pagination.page_size,
        search=search,
        tag=tag,
        sort_by=pagination.sort_by or "published_date",
        sort_order=pagination.sort_order,
    )

@router.get("/search", response_model=PaginatedResponse)
async def search_articles(
    q: str = Query(..., min_length=1, max_length=200),
    pagination: PaginationParams = Depends(),
    uow: UnitOfWork = Depends(get_uow),
):
    return await article_service.search_articles(uow, q, pagination.page, pagination.page_size)

@router.get("/by-tag/{tag_slug}", response_model=PaginatedResponse)
async def articles_by_tag(
    tag_slug: str,
    pagination: PaginationParams = Depends(),
    uow: UnitOfWork = Depends(get_uow),
):
    return await article_service.get_articles_by_tag(
        uow, tag_slug, pagination.page, pagination.page_size
    )

@router.get("/recent", response_model=list[ArticleResponse])
async def recent_articles(count: int = Query(5, ge=1, le=50), uow: UnitOfWork = Depends(get_uow)):
    return await article_service.get_recent_articles(uow, count)

@router.get("/popular", response_model=list[ArticleResponse])
async def popular_articles(count: int = Query(5, ge=1, le=50), uow: UnitOfWork = Depends(get_uow)):
    return await article_service.get_popular_articles(uow, count)

@router.get("/{article_id}", response_model=ArticleDetail)
async def get_article(article_id: int, uow: UnitOfWork = Depends(get_uow)):
    return await article_service.get_article(uow, article_id)

@router.post("", status_code=201, response_model=ArticleResponse)
async def create_article(data: ArticleCreate, uow: UnitOfWork = Depends(get_uow)):
    return await article_service.create_article(uow, data)

@router.put("/{article_id}", response_model=ArticleResponse)
async def update_article(article_id: int, data: ArticleUpdate, uow: UnitOfWork = Depends(get_uow)):
    return await article_service.update_article(uow, article_id, data)

@router.delete("/{article_id}", status_code=204)
async def delete_article(
    article_id: int,
    row_version: str | None = Query(None),
    uow: UnitOfWork = Depends(get_uow),
):
    await article_service.delete_article(uow, article_id, row_version)

@router.post("/{article_id}/publish", response_model=ArticleResponse)
async def publish_article(
    article_id: int, data: TransitionRequest | None = None, uow: UnitOfWork = Depends(get_uow)
):
    return await article_service.publish_article(uow, article_id, data.row_version if data else None)

@router.post("/{article_id}/unpublish", response_model=ArticleResponse)
async def unpublish_article(
    article_id: int, data: TransitionRequest | None = None, uow: UnitOfWork = Depends(get_uow)
):
    return await article_service.unpublish_article(uow, article_id, data.row_version if data else None)

@router.post("/{article_id}/archive", response_model=ArticleResponse)
async def archive_article(
    article_id: int, data: TransitionRequest | None = None, uow: UnitOfWork = Depends(get_uow)
):
    return await article_service.archive_article(uow, article_id, data.row_version if data else None)

@router.get("/{article_id}/comments", response_model=list[CommentResponse])
async def list_comments(article_id: int, uow: UnitOfWork = Depends(get_uow)):
    return await comment_service.get_approved_comments(uow, article_id)

@router.post("/{article_id}/comments", status_code=201, response_model=CommentResponse)
async def submit_comment(
    article_id: int,
    data: CommentCreate,
    request: Request,
    uow: UnitOfWork = Depends(get_uow),
):
    return await comment_service.submit_comment(
        uow,
        article_id,
        data,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
