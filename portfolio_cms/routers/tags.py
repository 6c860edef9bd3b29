from fastapi import APIRouter, Depends, Query

from portfolio_cms.dependencies import get_uow
from portfolio_cms.schemas import TagCreate, TagResponse, TagUpdate, TagWithCount
from portfolio_cms.services import tag_service
from portfolio_cms.unit_of_work import UnitOfWork

router = APIRouter(prefix="/api/v1/tags", tags=["tags"])

@router.get("", response_model=list[TagWithCount])
async def list_tags(uow: UnitOfWork = Depends(get_uow)):
    return await tag_service.get_all_tags(uow)

@router.get("/popular", response_model=list[TagWithCount])
async def popular_tags(count: int = Query(10, ge=1, le=100), uow: UnitOfWork = Depends(get_uow)):
    return await tag_service.get_popular_tags(uow, count)

@router.get("/{slug}", response_model=TagResponse)
async def get_tag(slug: str, uow: UnitOfWork = Depends(get_uow)):
    return await tag_service.get_tag_by_slug(uow, slug)

@router.post("", status_code=201, response_model=TagResponse)
async def create_tag(data: TagCreate, uow: UnitOfWork = Depends(get_uow)):
    return await tag_service.create_tag(uow, data)

@router.put("/{tag_id}", response_model=TagResponse)
async def update_tag(tag_id: int, data: TagUpdate, uow: UnitOfWork = Depends(get_uow)):
    return await tag_service.update_tag(uow, tag_id, data)

@router.delete("/{tag_id}", status_code=204)
async def delete_tag(tag_id: int, uow: UnitOfWork = Depends(get_uow)):
    await tag_service.delete_tag(uow, tag_id)
