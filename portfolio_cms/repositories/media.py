from sqlalchemy import func, select

from portfolio_cms.models import MediaFile
from portfolio_cms.repositories.base import Repository, validate_page


class MediaFileRepository(Repository[MediaFile]):
    model = MediaFile

    def _newest(self):
        return select(MediaFile).order_by(MediaFile.uploaded_date.desc(), MediaFile.id.desc())

    async def get_page(
        self, page: int, page_size: int, category: str | None = None
    ) -> tuple[list[MediaFile], int]:
        validate_page(page, page_size)
        predicate = MediaFile.category == category if category else None
        total = await self.count(predicate)
        stmt = self._newest()
        if predicate is not None:
            stmt = stmt.where(predicate)
        return await self._scalars(self.page(stmt, page, page_size)), total

    async def get_by_category(self, category: str) -> list[MediaFile]:
        return await self._scalars(self._newest().where(MediaFile.category == category))

    async def get_for_article(self, article_id: int) -> list[MediaFile]:
        return await self._scalars(self._newest().where(MediaFile.article_id == article_id))

    async def get_for_project(self, project_id: int) -> list[MediaFile]:
        return await self._scalars(self._newest().where(MediaFile.project_id == project_id))

    async def get_by_uploader(self, user_id: int) -> list[MediaFile]:
        return await self._scalars(self._newest().where(MediaFile.uploaded_by == user_id))

    async def get_recent(self, count: int = 10) -> list[MediaFile]:
        return await self._scalars(self._newest().limit(count))

    async def get_orphaned(self) -> list[MediaFile]:
        """Files attached to neither an article nor a project."""
        return await self._scalars(
            self._newest().where(MediaFile.article_id.is_(None), MediaFile.project_id.is_(None))
        )

    async def total_size(self, category: str | None = None) -> int:
        stmt = select(func.coalesce(func.sum(MediaFile.file_size), 0))
        if category:
            stmt = stmt.where(MediaFile.category == category)
        return int(await self._scalar(stmt))

    async def is_file_name_unique(self, file_name: str) -> bool:
        for staged in self.staged_additions():
            if staged.file_name == file_name:
                return False
        return not await self.exists(MediaFile.file_name == file_name)

    async def count_by(self, column) -> dict[str, int]:
        """Row counts grouped by *column* (e.g. ``MediaFile.category``)."""
        stmt = select(column, func.count(MediaFile.id)).group_by(column).order_by(column)
        result = await self._uow.execute(stmt)
        return {key: total for key, total in result.all()}
