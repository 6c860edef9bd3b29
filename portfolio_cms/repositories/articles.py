from datetime import datetime

from sqlalchemy import and_, asc, desc, func, or_, select
from sqlalchemy.orm import joinedload, selectinload

from portfolio_cms.models import Article, ArticleTag, Comment, Tag
from portfolio_cms.repositories.base import Repository, validate_page
from portfolio_cms.workflow import ArticleStatus, CommentStatus, utcnow

# Columns that are safe to sort by; guards against arbitrary attribute access.
_SORTABLE_COLUMNS: dict[str, object] = {
    "created_date": Article.created_date,
    "published_date": Article.published_date,
    "title": Article.title,
}

# Tags (in attachment order) and the author, for list and detail views.
LIST_OPTIONS = (
    selectinload(Article.article_tags).selectinload(ArticleTag.tag),
    joinedload(Article.author),
)


def _sort_expression(sort_by: str, sort_order: str, default: str):
    column = _SORTABLE_COLUMNS.get(sort_by, _SORTABLE_COLUMNS[default])
    return desc(column) if sort_order == "desc" else asc(column)


def _search_filter(term: str):
    term = term.strip().lower()
    return or_(
        func.lower(Article.title).contains(term, autoescape=True),
        func.lower(Article.content).contains(term, autoescape=True),
        func.lower(func.coalesce(Article.summary, "")).contains(term, autoescape=True),
    )


def _tag_filter(tag_slug: str):
    return Article.article_tags.any(
        ArticleTag.tag.has(func.lower(Tag.slug) == tag_slug.strip().lower())
    )


class ArticleRepository(Repository[Article]):
    model = Article

    @staticmethod
    def published_query(now: datetime | None = None):
        """Publicly visible: Published with a publication date not in the future."""
        return and_(
            Article.status == ArticleStatus.PUBLISHED,
            Article.published_date <= (now or utcnow()),
        )

    async def _page_with_total(self, criteria, order, page: int, page_size: int):
        validate_page(page, page_size)
        total = await self.count(and_(*criteria) if criteria else None)
        stmt = select(Article).options(*LIST_OPTIONS).order_by(order, Article.id)
        if criteria:
            stmt = stmt.where(*criteria)
        items = await self._scalars(self.page(stmt, page, page_size))
        return items, total

    async def get_published_page(
        self,
        page: int,
        page_size: int,
        search: str | None = None,
        tag_slug: str | None = None,
        sort_by: str = "published_date",
        sort_order: str = "desc",
    ) -> tuple[list[Article], int]:
        criteria = [self.published_query()]
        if search and search.strip():
            criteria.append(_search_filter(search))
        if tag_slug and tag_slug.strip():
            criteria.append(_tag_filter(tag_slug))
        order = _sort_expression(sort_by, sort_order, "published_date")
        return await self._page_with_total(criteria, order, page, page_size)

    async def get_all_page(
        self,
        page: int,
        page_size: int,
        status: ArticleStatus | None = None,
        search: str | None = None,
        sort_by: str = "created_date",
        sort_order: str = "desc",
    ) -> tuple[list[Article], int]:
        """Every article regardless of status, for elevated callers."""
        criteria = []
        if status is not None:
            criteria.append(Article.status == status)
        if search and search.strip():
            criteria.append(_search_filter(search))
        order = _sort_expression(sort_by, sort_order, "created_date")
        return await self._page_with_total(criteria, order, page, page_size)

    async def get_for_display(self, article_id: int) -> Article | None:
        return await self.get_by_id(
            article_id, options=(*LIST_OPTIONS, selectinload(Article.media_files))
        )

    async def get_with_tags(self, article_id: int) -> Article | None:
        """Article with its tags and author, ready to edit and serialise."""
        return await self.get_by_id(article_id, options=LIST_OPTIONS)

    async def get_by_slug(self, slug: str) -> Article | None:
        return await self.first(func.lower(Article.slug) == slug.lower())

    async def get_by_user(self, user_id: int) -> list[Article]:
        stmt = (
            select(Article)
            .where(Article.user_id == user_id)
            .options(*LIST_OPTIONS)
            .order_by(Article.created_date.desc())
        )
        return await self._scalars(stmt)

    async def get_recent(self, count: int = 5) -> list[Article]:
        stmt = (
            select(Article)
            .where(self.published_query())
            .options(*LIST_OPTIONS)
            .order_by(Article.published_date.desc(), Article.id.desc())
            .limit(count)
        )
        return await self._scalars(stmt)

    async def get_popular(self, count: int = 5) -> list[Article]:
        """Published articles with the most approved comments first."""
        approved = (
            select(func.count(Comment.id))
            .where(
                Comment.article_id == Article.id,
                Comment.status == CommentStatus.APPROVED,
            )
            .correlate(Article)
            .scalar_subquery()
        )
        stmt = (
            select(Article)
            .where(self.published_query())
            .options(*LIST_OPTIONS)
            .order_by(approved.desc(), Article.published_date.desc(), Article.id.desc())
            .limit(count)
        )
        return await self._scalars(stmt)

    async def is_slug_unique(self, slug: str, exclude_id: int | None = None) -> bool:
        lowered = slug.lower()
        for staged in self.staged_additions():
            if staged.slug and staged.slug.lower() == lowered:
                return False
        predicate = func.lower(Article.slug) == lowered
        if exclude_id is not None:
            predicate = and_(predicate, Article.id != exclude_id)
        return not await self.exists(predicate)
