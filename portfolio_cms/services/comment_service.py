"""
Comment service: submission and moderation for the Comment aggregate.

Every submitted comment starts Pending, whatever the caller asks for.
Only Approved comments are ever returned by public reads; moderators move
comments between Approved, Rejected and Spam in any direction.
"""
from portfolio_cms.exceptions import NotFoundError
from portfolio_cms.models import Comment
from portfolio_cms.schemas import (
    CommentAdminResponse,
    CommentCreate,
    CommentResponse,
    PaginatedResponse,
)
from portfolio_cms.telemetry import reports_exceptions, track_event
from portfolio_cms.unit_of_work import UnitOfWork
from portfolio_cms.workflow import CommentStatus


@reports_exceptions
async def submit_comment(
    uow: UnitOfWork,
    article_id: int,
    data: CommentCreate,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> CommentResponse:
    """
    Record a new comment on *article_id* for moderation.

    Raises ``NotFoundError`` when the article does not exist.
    """
    if not await uow.articles.exists(uow.articles.model.id == article_id):
        raise NotFoundError("Article", article_id)

    comment = Comment(
        article_id=article_id,
        author_name=data.author_name.strip(),
        author_email=data.author_email.strip(),
        content=data.content,
        ip_address=ip_address,
        user_agent=user_agent[:500] if user_agent else None,
    )
    await uow.comments.add(comment)
    await uow.save_changes()

    track_event("CommentSubmitted", comment_id=comment.id, article_id=article_id)
    return CommentResponse.model_validate(comment)


@reports_exceptions
async def get_approved_comments(uow: UnitOfWork, article_id: int) -> list[CommentResponse]:
    return [
        CommentResponse.model_validate(comment)
        for comment in await uow.comments.get_approved_for_article(article_id)
    ]


@reports_exceptions
async def get_comments_by_status(
    uow: UnitOfWork, status: CommentStatus, page: int = 1, page_size: int = 10
) -> PaginatedResponse:
    """Moderation queue for one status, newest first."""
    items, total = await uow.comments.get_by_status_page(status, page, page_size)
    return PaginatedResponse.of(
        [CommentAdminResponse.model_validate(c) for c in items], total, page, page_size
    )


@reports_exceptions
async def get_all_comments(uow: UnitOfWork, page: int = 1, page_size: int = 10) -> PaginatedResponse:
    items, total = await uow.comments.get_by_status_page(None, page, page_size)
    return PaginatedResponse.of(
        [CommentAdminResponse.model_validate(c) for c in items], total, page, page_size
    )


async def _moderate(uow, comment_id, row_version, apply, event) -> CommentAdminResponse:
    comment = await uow.comments.get_required(comment_id)
    if row_version is not None:
        uow.comments.ensure_version(comment, row_version)
    apply(comment)
    await uow.comments.update(comment)
    await uow.save_changes()
    track_event(event, comment_id=comment.id, status=comment.status.value)
    return CommentAdminResponse.model_validate(comment)


@reports_exceptions
async def approve_comment(
    uow: UnitOfWork, comment_id: int, row_version: str | None = None
) -> CommentAdminResponse:
    return await _moderate(uow, comment_id, row_version, Comment.approve, "CommentApproved")


@reports_exceptions
async def reject_comment(
    uow: UnitOfWork, comment_id: int, row_version: str | None = None
) -> CommentAdminResponse:
    return await _moderate(uow, comment_id, row_version, Comment.reject, "CommentRejected")


@reports_exceptions
async def mark_comment_spam(
    uow: UnitOfWork, comment_id: int, row_version: str | None = None
) -> CommentAdminResponse:
    return await _moderate(uow, comment_id, row_version, Comment.mark_spam, "CommentMarkedSpam")


@reports_exceptions
async def delete_comment(uow: UnitOfWork, comment_id: int) -> None:
    comment = await uow.comments.get_required(comment_id)
    await uow.comments.delete(comment)
    await uow.save_changes()
    track_event("CommentDeleted", comment_id=comment_id)
