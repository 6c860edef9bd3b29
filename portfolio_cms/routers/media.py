from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from portfolio_cms.dependencies import PaginationParams, get_storage, get_uow
from portfolio_cms.schemas import (
    CleanupResult,
    MediaFileResponse,
    MediaFileUpdate,
    PaginatedResponse,
    StorageStatistics,
)
from portfolio_cms.services import media_service
from portfolio_cms.storage import MediaStorage
from portfolio_cms.unit_of_work import UnitOfWork

router = APIRouter(prefix="/api/v1/media", tags=["media"])

@router.get("", response_model=PaginatedResponse)
async def list_media(
    pagination: PaginationParams = Depends(),
    category: str | None = Query(None, max_length=50),
    uow: UnitOfWork = Depends(get_uow),
):
    return await media_service.get_media_files(uow, pagination.page, pagination.page_size, category)

@router.get("/statistics", response_model=StorageStatistics)
async def storage_statistics(uow: UnitOfWork = Depends(get_uow)):
    return await media_service.get_storage_statistics(uow)

@router.post("/cleanup", response_model=CleanupResult)
async def cleanup_orphans(
    uow: UnitOfWork = Depends(get_uow),
    storage: MediaStorage = Depends(get_storage),
):
    return await media_service.cleanup_orphaned_files(uow, storage)

@router.get("/article/{article_id}", response_model=list[MediaFileResponse])
async def media_for_article(article_id: int, uow: UnitOfWork = Depends(get_uow)):
    return await media_service.get_media_for_article(uow, article_id)

@router.get("/project/{project_id}", response_model=list[MediaFileResponse])
async def media_for_project(project_id: int, uow: UnitOfWork = Depends(get_uow)):
    return await media_service.get_media_for_project(uow, project_id)

@router.get("/{media_id}", response_model=MediaFileResponse)
async def get_media(media_id: int, uow: UnitOfWork = Depends(get_uow)):
    return await media_service.get_media_file(uow, media_id)

@router.post("", status_code=201, response_model=MediaFileResponse)
async def upload_media(
    file: UploadFile = File(...),
    category: str = Form("", max_length=50),
    article_id: int | None = Form(None),
    project_id: int | None = Form(None),
    uow: UnitOfWork = Depends(get_uow),
    storage: MediaStorage = Depends(get_storage),
):
    content = await file.read()
    return await media_service.upload_media(
        uow,
        storage,
        file.filename or "",
        content,
        file.content_type or "",
        category=category,
        article_id=article_id,
        project_id=project_id,
    )

@router.patch("/{media_id}", response_model=MediaFileResponse)
async def update_media(media_id: int, data: MediaFileUpdate, uow: UnitOfWork = Depends(get_uow)):
    return await media_service.update_media_file(uow, media_id, data)

@router.delete("/{media_id}", status_code=204)
async def delete_media(
    media_id: int,
    uow: UnitOfWork = Depends(get_uow),
    storage: MediaStorage = Depends(get_storage),
):
    await media_service.delete_media_file(uow, storage, media_id)
