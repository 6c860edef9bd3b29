"""
Regression tests for fixed defects.

1. Renaming an article onto another article's slug gets a suffixed slug, not a 500.
2. A slug lost to a concurrent writer surfaces as a clean 500 payload.
3. A failed save leaves the request's unit of work usable for the next one.
4. CORS never combines a wildcard origin with credentials.
"""
import pytest
from httpx import AsyncClient

from portfolio_cms.exceptions import PersistenceFailure
from portfolio_cms.models import Tag


# ---------------------------------------------------------------------------
# 1. Slug collision on rename
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_article_slug_collision_handled(async_client: AsyncClient):
    first = await async_client.post("/api/v1/articles", json={"title": "First Article", "content": "A"})
    assert first.status_code == 201
    second = (await async_client.post("/api/v1/articles", json={"title": "Second Article", "content": "B"})).json()

    resp = await async_client.put(f"/api/v1/articles/{second['id']}", json={
        "title": "First Article",
        "row_version": second["row_version"],
    })
    assert resp.status_code == 200
    assert resp.json()["slug"] == "first-article-1"


# ---------------------------------------------------------------------------
# 2. Lost slug race
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_slug_race_is_reported_without_store_details(uow, uow_factory):
    await uow.tags.add(Tag(name="Python", slug="python"))
    await uow.save_changes()

    # A second writer that skipped the uniqueness check.
    async with uow_factory() as racer:
        await racer.tags.add(Tag(name="Python 2", slug="python"))
        with pytest.raises(PersistenceFailure) as excinfo:
            await racer.save_changes()
    payload = excinfo.value.to_dict()
    assert payload == {"success": False, "message": PersistenceFailure.public_message, "errors": []}
    assert "UNIQUE" not in str(payload)


# ---------------------------------------------------------------------------
# 3. Unit of work after a failed save
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_unit_of_work_usable_after_failed_save(uow, uow_factory):
    await uow.tags.add(Tag(name="One", slug="dup"))
    await uow.save_changes()

    async with uow_factory() as unit:
        await unit.tags.add(Tag(name="Two", slug="dup"))
        with pytest.raises(PersistenceFailure):
            await unit.save_changes()

        await unit.tags.add(Tag(name="Three", slug="three"))
        assert await unit.save_changes() == 1
        assert await unit.tags.count() == 2


# ---------------------------------------------------------------------------
# 4. CORS headers
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_cors_no_credentials_with_wildcard_origin(async_client: AsyncClient):
    """
    When allow_origins=["*"], the response must NOT include
    Access-Control-Allow-Credentials: true.
    """
    resp = await async_client.options(
        "/api/v1/articles",
        headers={
            "Origin": "https://example.com",
            "Access-Control-Request-Method": "GET",
        },
    )
    cred_header = resp.headers.get("access-control-allow-credentials", "").lower()
    assert cred_header != "true"
