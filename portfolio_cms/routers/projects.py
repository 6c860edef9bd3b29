from fastapi import APIRouter, Depends, Query

from portfolio_cms.dependencies import get_uow
from portfolio_cms.schemas import ProjectCreate, ProjectResponse, ProjectUpdate, ReorderRequest
from portfolio_cms.services import project_service
from portfolio_cms.unit_of_work import UnitOfWork

router = APIRouter(prefix="/api/v1/projects", tags=["projects"])

@router.get("", response_model=list[ProjectResponse])
async def list_projects(
    technology: str | None = Query(None, max_length=100),
    uow: UnitOfWork = Depends(get_uow),
):
    if technology:
        return await project_service.get_projects_by_technology(uow, technology)
    return await project_service.get_active_projects(uow)

@router.get("/featured", response_model=list[ProjectResponse])
async def featured_projects(count: int = Query(3, ge=1, le=20), uow: UnitOfWork = Depends(get_uow)):
    return await project_service.get_featured_projects(uow, count)

@router.put("/order", response_model=list[ProjectResponse])
async def reorder_projects(data: ReorderRequest, uow: UnitOfWork = Depends(get_uow)):
    return await project_service.reorder_projects(uow, data.orders)

@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: int, uow: UnitOfWork = Depends(get_uow)):
    return await project_service.get_project(uow, project_id)

@router.post("", status_code=201, response_model=ProjectResponse)
async def create_project(data: ProjectCreate, uow: UnitOfWork = Depends(get_uow)):
    return await project_service.create_project(uow, data)

@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(project_id: int, data: ProjectUpdate, uow: UnitOfWork = Depends(get_uow)):
    return await project_service.update_project(uow, project_id, data)

@router.delete("/{project_id}", status_code=204)
async def delete_project(
    project_id: int,
    row_version: str | None = Query(None),
    uow: UnitOfWork = Depends(get_uow),
):
    await project_service.delete_project(uow, project_id, row_version)
