from typing import Mapping

from sqlalchemy import func, select

from portfolio_cms.models import Project
from portfolio_cms.repositories.base import Repository


class ProjectRepository(Repository[Project]):
    model = Project

    def _active(self):
        return (
            select(Project)
            .where(Project.is_active.is_(True))
            .order_by(
                Project.display_order.asc(),
                Project.completed_date.desc(),
                Project.id.asc(),
            )
        )

    async def get_all_ordered(self) -> list[Project]:
        stmt = select(Project).order_by(Project.display_order.asc(), Project.id.asc())
        return await self._scalars(stmt)

    async def get_active_ordered(self) -> list[Project]:
        return await self._scalars(self._active())

    async def get_by_technology(self, term: str | None) -> list[Project]:
        """Active projects whose technology stack mentions *term*.  Blank term: all active."""
        stmt = self._active()
        if term and term.strip():
            stmt = stmt.where(
                func.lower(func.coalesce(Project.technology_stack, "")).contains(
                    term.strip().lower(), autoescape=True
                )
            )
        return await self._scalars(stmt)

    async def get_featured(self, count: int = 3) -> list[Project]:
        return await self._scalars(self._active().limit(count))

    async def get_recent(self, count: int = 5) -> list[Project]:
        stmt = (
            select(Project)
            .where(Project.is_active.is_(True), Project.completed_date.is_not(None))
            .order_by(Project.completed_date.desc(), Project.id.desc())
            .limit(count)
        )
        return await self._scalars(stmt)

    async def next_display_order(self) -> int:
        stmt = select(func.max(Project.display_order))
        highest = (await self._uow.execute(stmt)).scalar_one_or_none()
        return (highest or 0) + 1

    async def reorder(self, mapping: Mapping[int, int]) -> int:
        """
        Stage ``display_order`` changes from a ``{project_id: order}`` map.

        Unknown ids are ignored.  Returns the number of projects staged.
        """
        if not mapping:
            return 0
        projects = await self.get_all(Project.id.in_(list(mapping)))
        for project in projects:
            project.display_order = mapping[project.id]
        await self.update_range(projects)
        return len(projects)
