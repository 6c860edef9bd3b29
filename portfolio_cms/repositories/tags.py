from sqlalchemy import and_, func, select

from portfolio_cms.models import Article, ArticleTag, Tag
from portfolio_cms.repositories.articles import ArticleRepository
from portfolio_cms.repositories.base import Repository


class TagRepository(Repository[Tag]):
    model = Tag

    async def get_by_slug(self, slug: str) -> Tag | None:
        return await self.first(func.lower(Tag.slug) == slug.strip().lower())

    async def get_by_name(self, name: str) -> Tag | None:
        return await self.first(func.lower(Tag.name) == name.strip().lower())

    async def is_slug_unique(self, slug: str, exclude_id: int | None = None) -> bool:
        """
        True when no stored tag (other than *exclude_id*) and no tag staged
        in this unit of work already uses *slug*, ignoring case.
        """
        lowered = slug.lower()
        for staged in self.staged_additions():
            if staged.slug and staged.slug.lower() == lowered:
                return False
        predicate = func.lower(Tag.slug) == lowered
        if exclude_id is not None:
            predicate = and_(predicate, Tag.id != exclude_id)
        return not await self.exists(predicate)

    def _counted(self):
        article_count = func.count(Article.id).label("article_count")
        stmt = (
            select(Tag, article_count)
            .outerjoin(ArticleTag, ArticleTag.tag_id == Tag.id)
            .outerjoin(
                Article,
                and_(Article.id == ArticleTag.article_id, ArticleRepository.published_query()),
            )
            .group_by(Tag.id)
        )
        return stmt, article_count

    async def get_with_article_counts(self) -> list[tuple[Tag, int]]:
        """Every tag with its number of published articles, by name."""
        stmt, _ = self._counted()
        result = await self._uow.execute(stmt.order_by(Tag.name))
        return [(tag, count) for tag, count in result.all()]

    async def get_popular(self, count: int = 10) -> list[tuple[Tag, int]]:
        stmt, article_count = self._counted()
        stmt = (
            stmt.having(article_count > 0)
            .order_by(article_count.desc(), Tag.name)
            .limit(count)
        )
        result = await self._uow.execute(stmt)
        return [(tag, total) for tag, total in result.all()]
