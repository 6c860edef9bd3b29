import json
import logging
from typing import Any, Protocol
from urllib.parse import urlencode

import redis.asyncio as redis
from aiocache.backends.memory import SimpleMemoryCache
from aiocache.serializers import PickleSerializer

from portfolio_cms.config import CacheBackend, settings

logger = logging.getLogger(__name__)

ARTICLES = "articles"
PROJECTS = "projects"
TAGS = "tags"


def cache_key(namespace: str, **params: Any) -> str:
    """
    Build a deterministic key such as ``articles:list?page=2&search=c%23``.

    Parameters are sorted and url-encoded, so the same parameter set always
    maps to the same key and distinct sets never collide.  ``None`` values
    are dropped.
    """
    items = sorted((name, str(value)) for name, value in params.items() if value is not None)
    if not items:
        return namespace
    return f"{namespace}?{urlencode(items)}"


class Backend(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl: int | None) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def delete_prefix(self, prefix: str) -> int: ...

    async def clear(self) -> None: ...

    async def close(self) -> None: ...


class MemoryCacheBackend:
    """
    Process-local backend on aiocache's ``SimpleMemoryCache``.

    Entries expire through aiocache's own ``ttl`` timers.  Keys written here
    are remembered so prefix deletes can find them.  Concurrent writers to
    one key: last write wins.
    """

    def __init__(self) -> None:
        self._cache = SimpleMemoryCache(serializer=PickleSerializer())
        self._keys: set[str] = set()

    async def get(self, key: str) -> Any | None:
        return await self._cache.get(key)

    async def set(self, key: str, value: Any, ttl: int | None) -> None:
        await self._cache.set(key, value, ttl=ttl or None)
        self._keys.add(key)

    async def delete(self, key: str) -> None:
        await self._cache.delete(key)
        self._keys.discard(key)

    async def delete_prefix(self, prefix: str) -> int:
        removed = 0
        for key in [key for key in self._keys if key.startswith(prefix)]:
            removed += await self._cache.delete(key)
            self._keys.discard(key)
        return removed

    async def size(self) -> int:
        """Number of live entries; forgets keys that already expired."""
        for key in list(self._keys):
            if not await self._cache.exists(key):
                self._keys.discard(key)
        return len(self._keys)

    async def clear(self) -> None:
        await self._cache.clear()
        self._keys.clear()

    async def close(self) -> None:
        await self.clear()
        await self._cache.close()


class RedisCacheBackend:
    """Shared backend: JSON values, ``SET ... EX`` expiry, ``SCAN`` for prefixes."""

    def __init__(self, client: "redis.Redis") -> None:
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheBackend":
        return cls(
            redis.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
        )

    async def ping(self) -> None:
        await self._redis.ping()

    async def get(self, key: str) -> Any | None:
        data = await self._redis.get(key)
        return json.loads(data) if data is not None else None

    async def set(self, key: str, value: Any, ttl: int | None) -> None:
        await self._redis.set(key, json.dumps(value, default=str), ex=ttl)

    async def delete(self, key: str) -> None:
        await self._redis.delete(key)

    async def delete_prefix(self, prefix: str) -> int:
        # SCAN avoids blocking the server the way KEYS would.
        keys: list[str] = []
        async for key in self._redis.scan_iter(match=fnmatch_escape(prefix) + "*"):
            keys.append(key)
        if keys:
            await self._redis.delete(*keys)
        return len(keys)

    async def clear(self) -> None:
        await self._redis.flushdb()

    async def close(self) -> None:
        await self._redis.aclose()


def fnmatch_escape(text: str) -> str:
    """Escape glob metacharacters so *text* matches literally in a SCAN pattern."""
    return "".join(f"\\{char}" if char in "*?[]\\" else char for char in text)


class CacheManager:
    """
    Read-through cache used by the presentation tier.

    All public methods are safe to call even when the backend fails: reads
    count as a miss and writes are skipped, so a cache outage never breaks
    a request.
    """

    def __init__(self, backend: Backend | None = None) -> None:
        self._backend: Backend = backend if backend is not None else MemoryCacheBackend()
        self._hits: int = 0
        self._misses: int = 0

    @property
    def backend(self) -> Backend:
        return self._backend

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Select the configured backend.  Called when a ``ContentClient`` starts."""
        if settings.CACHE_BACKEND is not CacheBackend.REDIS:
            return
        backend = RedisCacheBackend.from_url(settings.REDIS_URL)
        try:
            await backend.ping()
        except Exception as exc:
            logger.warning("Redis ping failed, using in-memory cache: %s", exc)
            await backend.close()
            return
        logger.info("Redis connected: %s", settings.REDIS_URL)
        self._backend = backend

    async def disconnect(self) -> None:
        """Release the backend and fall back to a fresh in-memory one."""
        try:
            await self._backend.close()
        except Exception as exc:
            logger.debug("Cache close error: %s", exc)
        self._backend = MemoryCacheBackend()

    def use_backend(self, backend: Backend) -> None:
        self._backend = backend

    # ------------------------------------------------------------------
    # Core cache operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Return the cached value for *key*, or None on a miss / error."""
        try:
            value = await self._backend.get(key)
        except Exception as exc:
            logger.debug("Cache GET error for key=%r: %s", key, exc)
            value = None
        if value is None:
            self._misses += 1
            return None
        self._hits += 1
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        try:
            await self._backend.set(key, value, ttl)
        except Exception as exc:
            logger.debug("Cache SET error for key=%r: %s", key, exc)

    async def get_or_set(self, key: str, factory, ttl: int | None = None) -> Any:
        """Return the cached value, or await ``factory()`` and cache its result."""
        value = await self.get(key)
        if value is not None:
            return value
        value = await factory()
        if value is not None:
            await self.set(key, value, ttl)
        return value

    async def invalidate(self, key: str) -> None:
        try:
            await self._backend.delete(key)
        except Exception as exc:
            logger.debug("Cache DELETE error for key=%r: %s", key, exc)

    async def invalidate_prefix(self, prefix: str) -> None:
        try:
            removed = await self._backend.delete_prefix(prefix)
        except Exception as exc:
            logger.debug("Cache DELETE_PREFIX error for prefix=%r: %s", prefix, exc)
            return
        if removed:
            logger.debug("Cache invalidated %d key(s) with prefix %r", removed, prefix)

    async def clear(self) -> None:
        try:
            await self._backend.clear()
        except Exception as exc:
            logger.debug("Cache CLEAR error: %s", exc)
        self._hits = 0
        self._misses = 0

    # ------------------------------------------------------------------
    # Domain-level invalidation helpers
    # ------------------------------------------------------------------

    async def invalidate_article(self, article_id: int | None = None) -> None:
        """
        Purge every article list (pagination shifts after any write) and,
        when *article_id* is given, that article's detail entry.  Tag
        counts depend on articles too.
        """
        await self.invalidate_prefix(f"{ARTICLES}:list")
        if article_id is not None:
            await self.invalidate(cache_key(f"{ARTICLES}:detail", id=article_id))
        await self.invalidate_tags()

    async def invalidate_project(self, project_id: int | None = None) -> None:
        await self.invalidate_prefix(f"{PROJECTS}:list")
        if project_id is not None:
            await self.invalidate(cache_key(f"{PROJECTS}:detail", id=project_id))

    async def invalidate_tags(self) -> None:
        await self.invalidate_prefix(f"{TAGS}:")

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


# Module-level singleton shared across the presentation tier.
cache = CacheManager()
