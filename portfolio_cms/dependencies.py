from typing import AsyncIterator

from fastapi import Query, Request

from portfolio_cms.config import settings
from portfolio_cms.storage import LocalMediaStorage, MediaStorage
from portfolio_cms.unit_of_work import UnitOfWork


async def get_uow() -> AsyncIterator[UnitOfWork]:
    """
    One unit of work per request.  Services commit through
    ``save_changes()``; anything left unsaved is discarded on close.

    Tests override this dependency to bind the unit of work to the test
    engine.
    """
    async with UnitOfWork() as uow:
        yield uow


def get_storage(request: Request) -> MediaStorage:
    storage = getattr(request.app.state, "media_storage", None)
    if storage is None:
        storage = LocalMediaStorage(settings.MEDIA_ROOT, settings.MEDIA_BASE_URL)
        request.app.state.media_storage = storage
    return storage


class PaginationParams:
    """
    Reusable FastAPI dependency that parses and validates pagination /
    sorting query parameters.

    Usage in a router::

        @router.get("/articles")
        async def list_articles(pagination: PaginationParams = Depends()):
            ...

    Attributes
    ----------
    page:
        1-based page number (minimum 1).
    page_size:
        Number of items per page, clamped to ``settings.MAX_PAGE_SIZE``
        regardless of the value supplied by the caller.
    sort_by:
        Column name to sort by.  The gateway maps it onto an allow-list
        of columns and falls back to its default for anything else.
    sort_order:
        ``"asc"`` or ``"desc"`` (enforced by the regex pattern).
    """

    def __init__(
        self,
        page: int = Query(
            1,
            ge=1,
            description="Page number (1-based).",
        ),
        page_size: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            description="Number of items returned per page.",
        ),
        sort_by: str | None = Query(
            None,
            description="Column name to sort results by.",
        ),
        sort_order: str = Query(
            "desc",
            pattern="^(asc|desc)$",
            description="Sort direction: 'asc' or 'desc'.",
        ),
    ) -> None:
        self.page = page
        # Respect the application-level ceiling so a settings change is sufficient.
        self.page_size = min(page_size, settings.MAX_PAGE_SIZE)
        self.sort_by = sort_by
        self.sort_order = sort_order
