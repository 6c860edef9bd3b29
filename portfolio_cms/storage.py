"""
Media byte storage collaborator.

The content repository only records metadata; bytes go to whatever
``MediaStorage`` the application is configured with.  ``upload`` returns the
opaque URL that is stored on the ``MediaFile`` row and later handed back to
``delete``.
"""
import logging
from pathlib import Path
from typing import Protocol

from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)


class MediaStorage(Protocol):
    async def upload(self, name: str, content: bytes, content_type: str) -> str:
        ...

    async def delete(self, url: str) -> None:
        ...


class LocalMediaStorage:
    """Writes files under *root* and serves them from *base_url*."""

    def __init__(self, root: str | Path, base_url: str = "/uploads") -> None:
        self._root = Path(root)
        self._base_url = base_url.rstrip("/")

    def _path_for(self, url: str) -> Path:
        name = url.rsplit("/", 1)[-1]
        return self._root / name

    async def upload(self, name: str, content: bytes, content_type: str) -> str:
        path = self._root / Path(name).name

        def write() -> None:
            self._root.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)

        await run_in_threadpool(write)
        logger.debug("Stored %s (%d bytes, %s)", path.name, len(content), content_type)
        return f"{self._base_url}/{path.name}"

    async def delete(self, url: str) -> None:
        await run_in_threadpool(self._path_for(url).unlink, True)
