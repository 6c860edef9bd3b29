"""Tag endpoint tests."""
import pytest
from httpx import AsyncClient


async def _tag(client: AsyncClient, name: str, **extra) -> dict:
    resp = await client.post("/api/v1/tags", json={"name": name, **extra})
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_create_and_get_tag(async_client: AsyncClient):
    tag = await _tag(async_client, "Machine Learning", description="ML posts")
    assert tag["slug"] == "machine-learning"

    resp = await async_client.get("/api/v1/tags/machine-learning")
    assert resp.status_code == 200
    assert resp.json()["description"] == "ML posts"


@pytest.mark.asyncio
async def test_duplicate_tag_name_is_422(async_client: AsyncClient):
    await _tag(async_client, "Python")
    resp = await async_client.post("/api/v1/tags", json={"name": "python"})
    assert resp.status_code == 422
    assert resp.json()["message"] == "Tag already exists"


@pytest.mark.asyncio
async def test_tag_name_validation(async_client: AsyncClient):
    assert (await async_client.post("/api/v1/tags", json={"name": ""})).status_code == 422
    assert (await async_client.post("/api/v1/tags", json={"name": "x" * 51})).status_code == 422


@pytest.mark.asyncio
async def test_rename_regenerates_slug(async_client: AsyncClient):
    tag = await _tag(async_client, "JS")
    resp = await async_client.put(f"/api/v1/tags/{tag['id']}", json={"name": "JavaScript"})
    assert resp.status_code == 200
    assert resp.json()["slug"] == "javascript"
    assert (await async_client.get("/api/v1/tags/js")).status_code == 404


@pytest.mark.asyncio
async def test_list_tags_counts_published_articles(async_client: AsyncClient):
    await _tag(async_client, "Unused")
    await async_client.post("/api/v1/articles", json={
        "title": "Live", "content": "c", "status": "published", "tags": ["Python"],
    })
    await async_client.post("/api/v1/articles", json={
        "title": "Draft", "content": "c", "tags": ["Python"],
    })

    tags = (await async_client.get("/api/v1/tags")).json()
    assert [(t["name"], t["article_count"]) for t in tags] == [("Python", 1), ("Unused", 0)]

    popular = (await async_client.get("/api/v1/tags/popular")).json()
    assert [t["name"] for t in popular] == ["Python"]


@pytest.mark.asyncio
async def test_delete_tag(async_client: AsyncClient):
    tag = await _tag(async_client, "Temporary")
    resp = await async_client.delete(f"/api/v1/tags/{tag['id']}")
    assert resp.status_code == 204
    assert (await async_client.get("/api/v1/tags/temporary")).status_code == 404
    assert (await async_client.delete(f"/api/v1/tags/{tag['id']}")).status_code == 404
