"""
Project service: the portfolio's project list.

Projects are shown in ``display_order``; new projects go to the end unless
an explicit position is given.
"""
from typing import Mapping

from sqlalchemy.orm.attributes import flag_modified

from portfolio_cms.exceptions import NotFoundError, ValidationFailure
from portfolio_cms.models import Project
from portfolio_cms.schemas import ProjectCreate, ProjectResponse, ProjectUpdate
from portfolio_cms.telemetry import reports_exceptions, track_event
from portfolio_cms.unit_of_work import UnitOfWork


def _responses(projects: list[Project]) -> list[ProjectResponse]:
    return [ProjectResponse.model_validate(project) for project in projects]


@reports_exceptions
async def get_all_projects(uow: UnitOfWork) -> list[ProjectResponse]:
    """Every project, active or not, in display order."""
    return _responses(await uow.projects.get_all_ordered())


@reports_exceptions
async def get_active_projects(uow: UnitOfWork) -> list[ProjectResponse]:
    return _responses(await uow.projects.get_active_ordered())


@reports_exceptions
async def get_projects_by_technology(uow: UnitOfWork, term: str | None) -> list[ProjectResponse]:
    return _responses(await uow.projects.get_by_technology(term))


@reports_exceptions
async def get_featured_projects(uow: UnitOfWork, count: int = 3) -> list[ProjectResponse]:
    return _responses(await uow.projects.get_featured(count))


@reports_exceptions
async def get_project(uow: UnitOfWork, project_id: int) -> ProjectResponse:
    return ProjectResponse.model_validate(await uow.projects.get_required(project_id))


@reports_exceptions
async def create_project(uow: UnitOfWork, data: ProjectCreate) -> ProjectResponse:
    values = data.model_dump(exclude={"display_order"})
    display_order = data.display_order
    if display_order is None:
        display_order = await uow.projects.next_display_order()

    project = Project(**values, display_order=display_order)
    await uow.projects.add(project)
    await uow.save_changes()

    track_event("ProjectCreated", project_id=project.id, title=project.title)
    return ProjectResponse.model_validate(project)


@reports_exceptions
async def update_project(uow: UnitOfWork, project_id: int, data: ProjectUpdate) -> ProjectResponse:
    project = await uow.projects.get_required(project_id)
    uow.projects.ensure_version(project, data.row_version)

    update_data = data.model_dump(exclude_unset=True, exclude={"row_version"})
    for field in ("title", "description", "display_order", "is_active"):
        # Required columns: an explicit null leaves the value alone.
        if field in update_data and update_data[field] is None:
            del update_data[field]
    for field, value in update_data.items():
        setattr(project, field, value)

    # Every update rewrites the row so the concurrency token always moves.
    flag_modified(project, "title")
    await uow.projects.update(project)
    await uow.save_changes()

    track_event("ProjectUpdated", project_id=project.id)
    return ProjectResponse.model_validate(project)


@reports_exceptions
async def delete_project(uow: UnitOfWork, project_id: int, row_version: str | None = None) -> None:
    """Delete a project; its media files stay, detached."""
    project = await uow.projects.get_by_id(project_id)
    if project is None:
        raise NotFoundError("Project", project_id)
    if row_version is not None:
        uow.projects.ensure_version(project, row_version)
    await uow.projects.delete(project)
    await uow.save_changes()
    track_event("ProjectDeleted", project_id=project_id)


@reports_exceptions
async def reorder_projects(uow: UnitOfWork, orders: Mapping[int, int]) -> list[ProjectResponse]:
    """
    Apply a ``{project_id: display_order}`` map in one commit and return the
    full list in its new order.  Unknown ids are reported, nothing is saved.
    """
    if any(position < 0 for position in orders.values()):
        raise ValidationFailure("Invalid order", ["orders: display order must be 0 or greater"])
    known = {p.id for p in await uow.projects.get_all(Project.id.in_(list(orders)))}
    missing = sorted(set(orders) - known)
    if missing:
        raise ValidationFailure(
            "Unknown projects", [f"orders: project {project_id} does not exist" for project_id in missing]
        )

    staged = await uow.projects.reorder(orders)
    await uow.save_changes()
    track_event("ProjectsReordered", count=staged)
    return _responses(await uow.projects.get_all_ordered())
