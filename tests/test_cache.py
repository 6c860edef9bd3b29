"""Read-through cache: key building, expiry, invalidation, backend failures."""
import asyncio
import re

import pytest

from portfolio_cms import cache as cache_module
from portfolio_cms.cache import (
    CacheManager,
    MemoryCacheBackend,
    RedisCacheBackend,
    cache_key,
    fnmatch_escape,
)
from portfolio_cms.config import CacheBackend


def _glob_to_regex(pattern: str) -> str:
    # Redis glob subset: backslash escapes, * and ?.
    out, chars = [], iter(pattern)
    for char in chars:
        if char == "\\":
            out.append(re.escape(next(chars, "\\")))
        elif char == "*":
            out.append(".*")
        elif char == "?":
            out.append(".")
        else:
            out.append(re.escape(char))
    return "".join(out)


class FakeRedis:
    """In-process stand-in for ``redis.asyncio.Redis`` (decode_responses=True)."""

    def __init__(self, fail: bool = False):
        self.data: dict[str, str] = {}
        self.expiry: dict[str, int | None] = {}
        self.fail = fail
        self.closed = False

    async def ping(self):
        if self.fail:
            raise ConnectionError("redis down")
        return True

    async def get(self, key):
        if self.fail:
            raise ConnectionError("redis down")
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        if self.fail:
            raise ConnectionError("redis down")
        self.data[key] = value
        self.expiry[key] = ex

    async def delete(self, *keys):
        for key in keys:
            self.data.pop(key, None)

    async def scan_iter(self, match):
        pattern = re.compile(_glob_to_regex(match))
        for key in list(self.data):
            if pattern.fullmatch(key):
                yield key

    async def flushdb(self):
        self.data.clear()

    async def aclose(self):
        self.closed = True


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

def test_cache_key_is_order_independent_and_drops_none():
    first = cache_key("articles:list", page=2, page_size=10, search=None, tag="c#")
    second = cache_key("articles:list", tag="c#", page_size=10, page=2)
    assert first == second == "articles:list?page=2&page_size=10&tag=c%23"
    assert cache_key("tags:all") == "tags:all"


def test_cache_key_distinguishes_parameter_sets():
    assert cache_key("articles:list", page=1) != cache_key("articles:list", page=11)
    assert cache_key("articles:list", search="a&b=c") != cache_key("articles:list", search="a", b="c")


# ---------------------------------------------------------------------------
# Memory backend
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_memory_backend_expiry_cycle():
    backend = MemoryCacheBackend()

    assert await backend.get("k") is None
    await backend.set("k", {"v": 1}, ttl=0.05)
    assert await backend.get("k") == {"v": 1}
    assert await backend.size() == 1

    await asyncio.sleep(0.1)
    assert await backend.get("k") is None
    assert await backend.size() == 0


@pytest.mark.asyncio
async def test_memory_backend_without_ttl_never_expires():
    backend = MemoryCacheBackend()
    await backend.set("k", "v", ttl=None)
    await asyncio.sleep(0.1)
    assert await backend.get("k") == "v"


@pytest.mark.asyncio
async def test_memory_backend_returns_copies():
    backend = MemoryCacheBackend()
    await backend.set("k", {"items": [1]}, ttl=60)
    (await backend.get("k"))["items"].append(2)
    assert await backend.get("k") == {"items": [1]}


@pytest.mark.asyncio
async def test_memory_backend_delete_prefix():
    backend = MemoryCacheBackend()
    await backend.set("articles:list?page=1", 1, 60)
    await backend.set("articles:list?page=2", 2, 60)
    await backend.set("articles:detail?id=1", 3, 60)

    assert await backend.delete_prefix("articles:list") == 2
    assert await backend.get("articles:detail?id=1") == 3
    assert await backend.size() == 1


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_or_set_calls_factory_once_per_ttl():
    manager = CacheManager(MemoryCacheBackend())
    calls = []

    async def load():
        calls.append(1)
        return {"items": [], "total": 0}

    assert await manager.get_or_set("articles:list", load, ttl=0.05) == {"items": [], "total": 0}
    assert await manager.get_or_set("articles:list", load, ttl=0.05) == {"items": [], "total": 0}
    assert len(calls) == 1

    await asyncio.sleep(0.1)
    await manager.get_or_set("articles:list", load, ttl=0.05)
    assert len(calls) == 2
    assert manager.stats == {"hits": 1, "misses": 2, "hit_rate": 33.3}


@pytest.mark.asyncio
async def test_get_or_set_does_not_cache_none_or_errors():
    manager = CacheManager(MemoryCacheBackend())

    async def nothing():
        return None

    async def boom():
        raise RuntimeError("api down")

    assert await manager.get_or_set("k", nothing, ttl=60) is None
    with pytest.raises(RuntimeError):
        await manager.get_or_set("k", boom, ttl=60)
    assert await manager.backend.size() == 0


@pytest.mark.asyncio
async def test_invalidate_article_drops_lists_detail_and_tags():
    manager = CacheManager(MemoryCacheBackend())
    keys = [
        cache_key("articles:list", page=1),
        cache_key("articles:list", page=2, tag="python"),
        cache_key("articles:detail", id=7),
        cache_key("articles:detail", id=8),
        cache_key("tags:all"),
        cache_key("projects:list"),
    ]
    for key in keys:
        await manager.set(key, "cached", ttl=60)

    await manager.invalidate_article(7)

    remaining = {key for key in keys if await manager.backend.get(key) is not None}
    assert remaining == {cache_key("articles:detail", id=8), cache_key("projects:list")}


@pytest.mark.asyncio
async def test_invalidate_project_keeps_articles():
    manager = CacheManager(MemoryCacheBackend())
    await manager.set(cache_key("projects:list"), 1, 60)
    await manager.set(cache_key("projects:detail", id=3), 2, 60)
    await manager.set(cache_key("articles:list"), 3, 60)

    await manager.invalidate_project(3)

    assert await manager.get(cache_key("projects:list")) is None
    assert await manager.get(cache_key("projects:detail", id=3)) is None
    assert await manager.get(cache_key("articles:list")) == 3


@pytest.mark.asyncio
async def test_backend_failures_degrade_to_misses():
    manager = CacheManager(RedisCacheBackend(FakeRedis(fail=True)))
    calls = []

    async def load():
        calls.append(1)
        return ["fresh"]

    assert await manager.get_or_set("k", load, ttl=60) == ["fresh"]
    assert await manager.get_or_set("k", load, ttl=60) == ["fresh"]
    assert len(calls) == 2
    await manager.invalidate("k")
    await manager.clear()


# ---------------------------------------------------------------------------
# Redis backend
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_redis_backend_round_trip_and_prefix_delete():
    client = FakeRedis()
    backend = RedisCacheBackend(client)

    await backend.set("articles:list?page=1", {"total": 1}, ttl=300)
    await backend.set("articles:list?page=2", {"total": 1}, ttl=300)
    await backend.set("articles:detail?id=1", {"id": 1}, ttl=None)

    assert await backend.get("articles:list?page=1") == {"total": 1}
    assert client.expiry["articles:list?page=1"] == 300
    assert await backend.delete_prefix("articles:list") == 2
    assert list(client.data) == ["articles:detail?id=1"]

    await backend.close()
    assert client.closed


@pytest.mark.asyncio
async def test_redis_prefix_is_matched_literally():
    client = FakeRedis()
    backend = RedisCacheBackend(client)
    await backend.set("tags:[all]", 1, None)
    await backend.set("tags:a", 2, None)

    assert await backend.delete_prefix("tags:[all]") == 1
    assert list(client.data) == ["tags:a"]
    assert fnmatch_escape("a*b?[c]") == "a\\*b\\?\\[c\\]"


@pytest.mark.asyncio
async def test_connect_falls_back_to_memory_when_redis_is_down(monkeypatch):
    monkeypatch.setattr(cache_module.settings, "CACHE_BACKEND", CacheBackend.REDIS)
    client = FakeRedis(fail=True)
    monkeypatch.setattr(
        RedisCacheBackend, "from_url", classmethod(lambda cls, url: cls(client))
    )

    manager = CacheManager()
    await manager.connect()

    assert isinstance(manager.backend, MemoryCacheBackend)
    assert client.closed


@pytest.mark.asyncio
async def test_connect_uses_redis_when_reachable(monkeypatch):
    monkeypatch.setattr(cache_module.settings, "CACHE_BACKEND", CacheBackend.REDIS)
    client = FakeRedis()
    monkeypatch.setattr(
        RedisCacheBackend, "from_url", classmethod(lambda cls, url: cls(client))
    )

    manager = CacheManager()
    await manager.connect()

    assert isinstance(manager.backend, RedisCacheBackend)
    await manager.disconnect()
    assert client.closed
