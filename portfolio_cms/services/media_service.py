"""
Media service: metadata for uploaded files.

Bytes are handed to a ``MediaStorage``; the store only keeps the URL it
returns.  Row changes are committed before stored bytes are removed, so a
failed commit never leaves a row pointing at a deleted file.
"""
import logging
import uuid
from pathlib import PurePath

from portfolio_cms.config import settings
from portfolio_cms.exceptions import ValidationFailure
from portfolio_cms.models import Article, MediaFile, Project
from portfolio_cms.schemas import (
    CleanupResult,
    MediaFileResponse,
    MediaFileUpdate,
    PaginatedResponse,
    StorageStatistics,
)
from portfolio_cms.storage import MediaStorage
from portfolio_cms.telemetry import reports_exceptions, track_event
from portfolio_cms.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"})
ALLOWED_DOCUMENT_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    }
)
ALLOWED_CONTENT_TYPES = ALLOWED_IMAGE_TYPES | ALLOWED_DOCUMENT_TYPES
ALLOWED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".pdf", ".doc", ".docx")

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_file_size(size: int) -> str:
    """Human readable size with at most two decimals, e.g. ``1.5 MB``."""
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    number = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{number} {_SIZE_UNITS[unit]}"


def validate_upload(file_name: str | None, content_type: str | None, size: int) -> None:
    """Raise ``ValidationFailure`` listing every problem with an upload."""
    errors = []
    if not file_name or size <= 0:
        errors.append("file: no file provided")
    else:
        max_bytes = settings.MEDIA_MAX_BYTES
        if size > max_bytes:
            errors.append(
                f"file: size exceeds maximum allowed size of {max_bytes // (1024 * 1024)}MB"
            )
        if (content_type or "").lower() not in ALLOWED_CONTENT_TYPES:
            errors.append(
                f"content_type: '{content_type}' is not allowed. "
                f"Allowed types: {', '.join(sorted(ALLOWED_CONTENT_TYPES))}"
            )
        extension = PurePath(file_name).suffix.lower()
        if extension not in ALLOWED_EXTENSIONS:
            errors.append(
                f"file: extension '{extension}' is not allowed. "
                f"Allowed extensions: {', '.join(ALLOWED_EXTENSIONS)}"
            )
    if errors:
        raise ValidationFailure("File validation failed", errors)


async def _check_owners(uow: UnitOfWork, article_id: int | None, project_id: int | None) -> None:
    errors = []
    if article_id is not None and not await uow.articles.exists(Article.id == article_id):
        errors.append(f"article_id: article {article_id} does not exist")
    if project_id is not None and not await uow.projects.exists(Project.id == project_id):
        errors.append(f"project_id: project {project_id} does not exist")
    if errors:
        raise ValidationFailure("Invalid media file", errors)


@reports_exceptions
async def upload_media(
    uow: UnitOfWork,
    storage: MediaStorage,
    file_name: str,
    content: bytes,
    content_type: str,
    category: str = "",
    uploaded_by: int | None = None,
    article_id: int | None = None,
    project_id: int | None = None,
) -> MediaFileResponse:
    validate_upload(file_name, content_type, len(content))
    await _check_owners(uow, article_id, project_id)

    stored_name = f"{uuid.uuid4().hex}{PurePath(file_name).suffix.lower()}"
    url = await storage.upload(stored_name, content, content_type)

    media = MediaFile(
        file_name=stored_name,
        original_file_name=PurePath(file_name).name,
        content_type=content_type.lower(),
        file_size=len(content),
        storage_url=url,
        category=category or "",
        uploaded_by=uploaded_by,
        article_id=article_id,
        project_id=project_id,
    )
    await uow.media_files.add(media)
    try:
        await uow.save_changes()
    except Exception:
        # The row was never written; drop the bytes that would be orphaned.
        try:
            await storage.delete(url)
        except Exception as exc:
            logger.warning("Upload failed and its bytes at %s remain: %s", url, exc)
        raise

    track_event(
        "MediaUploaded",
        media_id=media.id,
        file_name=media.original_file_name,
        size=media.file_size,
        category=media.category or "Unknown",
    )
    return MediaFileResponse.model_validate(media)


@reports_exceptions
async def get_media_files(
    uow: UnitOfWork, page: int = 1, page_size: int = 20, category: str | None = None
) -> PaginatedResponse:
    items, total = await uow.media_files.get_page(page, page_size, category)
    return PaginatedResponse.of(
        [MediaFileResponse.model_validate(m) for m in items], total, page, page_size
    )


@reports_exceptions
async def get_media_file(uow: UnitOfWork, media_id: int) -> MediaFileResponse:
    return MediaFileResponse.model_validate(await uow.media_files.get_required(media_id))


@reports_exceptions
async def get_media_for_article(uow: UnitOfWork, article_id: int) -> list[MediaFileResponse]:
    return [MediaFileResponse.model_validate(m) for m in await uow.media_files.get_for_article(article_id)]


@reports_exceptions
async def get_media_for_project(uow: UnitOfWork, project_id: int) -> list[MediaFileResponse]:
    return [MediaFileResponse.model_validate(m) for m in await uow.media_files.get_for_project(project_id)]


@reports_exceptions
async def update_media_file(uow: UnitOfWork, media_id: int, data: MediaFileUpdate) -> MediaFileResponse:
    """Change category or owners.  Only fields present in *data* are applied."""
    media = await uow.media_files.get_required(media_id)
    changes = data.model_dump(exclude_unset=True)
    await _check_owners(uow, changes.get("article_id"), changes.get("project_id"))

    if "category" in changes:
        media.category = changes["category"] or ""
    if "article_id" in changes:
        media.article_id = changes["article_id"]
    if "project_id" in changes:
        media.project_id = changes["project_id"]

    await uow.media_files.update(media)
    await uow.save_changes()
    track_event("MediaUpdated", media_id=media.id)
    return MediaFileResponse.model_validate(media)


@reports_exceptions
async def delete_media_file(uow: UnitOfWork, storage: MediaStorage, media_id: int) -> None:
    media = await uow.media_files.get_required(media_id)
    url = media.storage_url
    await uow.media_files.delete(media)
    await uow.save_changes()

    try:
        await storage.delete(url)
    except Exception as exc:
        logger.warning("Media %d deleted but its bytes at %s remain: %s", media_id, url, exc)
    track_event("MediaDeleted", media_id=media_id)


@reports_exceptions
async def get_storage_statistics(uow: UnitOfWork) -> StorageStatistics:
    total_size = await uow.media_files.total_size()
    by_category = await uow.media_files.count_by(MediaFile.category)
    return StorageStatistics(
        total_files=await uow.media_files.count(),
        total_size=total_size,
        formatted_size=format_file_size(total_size),
        orphaned_files=len(await uow.media_files.get_orphaned()),
        files_by_category={(name or "Uncategorized"): n for name, n in by_category.items()},
        files_by_content_type=await uow.media_files.count_by(MediaFile.content_type),
    )


@reports_exceptions
async def cleanup_orphaned_files(uow: UnitOfWork, storage: MediaStorage) -> CleanupResult:
    """
    Delete every media file attached to neither an article nor a project.

    All rows go in one transaction; stored bytes are removed only after it
    commits.
    """
    await uow.begin_transaction()
    try:
        orphans = await uow.media_files.get_orphaned()
        urls = [media.storage_url for media in orphans]
        freed = sum(media.file_size for media in orphans)
        await uow.media_files.delete_range(orphans)
        await uow.save_changes()
        await uow.commit_transaction()
    except Exception:
        if uow.in_transaction:
            await uow.rollback_transaction()
        raise

    for url in urls:
        try:
            await storage.delete(url)
        except Exception as exc:
            logger.warning("Orphaned media bytes at %s could not be removed: %s", url, exc)

    track_event("OrphanedFilesCleanup", deleted_count=len(urls))
    return CleanupResult(deleted_files=len(urls), freed_bytes=freed)
