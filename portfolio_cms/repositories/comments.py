from sqlalchemy import and_, func, select

from portfolio_cms.models import Comment
from portfolio_cms.repositories.base import Repository, validate_page
from portfolio_cms.workflow import CommentStatus


class CommentRepository(Repository[Comment]):
    model = Comment

    async def get_approved_for_article(self, article_id: int) -> list[Comment]:
        """Public thread: approved comments, oldest first."""
        stmt = (
            select(Comment)
            .where(Comment.article_id == article_id, Comment.status == CommentStatus.APPROVED)
            .order_by(Comment.submitted_date.asc(), Comment.id.asc())
        )
        return await self._scalars(stmt)

    async def get_for_article(self, article_id: int) -> list[Comment]:
        stmt = (
            select(Comment)
            .where(Comment.article_id == article_id)
            .order_by(Comment.submitted_date.asc(), Comment.id.asc())
        )
        return await self._scalars(stmt)

    async def get_by_status_page(
        self,
        status: CommentStatus | None,
        page: int,
        page_size: int,
    ) -> tuple[list[Comment], int]:
        """Moderation queue, newest first.  ``status=None`` lists every comment."""
        validate_page(page, page_size)
        predicate = Comment.status == status if status is not None else None
        total = await self.count(predicate)
        stmt = select(Comment).order_by(Comment.submitted_date.desc(), Comment.id.desc())
        if predicate is not None:
            stmt = stmt.where(predicate)
        items = await self._scalars(self.page(stmt, page, page_size))
        return items, total

    async def get_by_email(self, email: str) -> list[Comment]:
        stmt = (
            select(Comment)
            .where(func.lower(Comment.author_email) == email.strip().lower())
            .order_by(Comment.submitted_date.desc())
        )
        return await self._scalars(stmt)

    async def count_approved_for_article(self, article_id: int) -> int:
        return await self.count(
            and_(Comment.article_id == article_id, Comment.status == CommentStatus.APPROVED)
        )

    async def get_recent_approved(self, count: int = 5) -> list[Comment]:
        stmt = (
            select(Comment)
            .where(Comment.status == CommentStatus.APPROVED)
            .order_by(Comment.approved_date.desc(), Comment.id.desc())
            .limit(count)
        )
        return await self._scalars(stmt)
