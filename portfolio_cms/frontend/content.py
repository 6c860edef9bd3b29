"""
Read-through content access for the server-rendered front end.

Reads check the cache first and only call the API on a miss; writes go
straight to the API and then drop the affected entries: every list of that
kind (pagination shifts) plus the single entity's detail entry.  Entries
that survive a write are bounded by their TTL.
"""
from typing import Any

from portfolio_cms.cache import ARTICLES, PROJECTS, TAGS, CacheManager, cache, cache_key
from portfolio_cms.config import settings
from portfolio_cms.frontend.api_client import ApiClient

ARTICLES_PATH = "/api/v1/articles"
TAGS_PATH = "/api/v1/tags"
PROJECTS_PATH = "/api/v1/projects"
ADMIN_PATH = "/api/v1/admin"


class ContentClient:
    def __init__(self, api: ApiClient, cache_manager: CacheManager | None = None) -> None:
        self.api = api
        self.cache = cache_manager if cache_manager is not None else cache

    async def __aenter__(self) -> "ContentClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def start(self) -> None:
        """Connect the configured cache backend (Redis when ``CACHE_BACKEND=redis``)."""
        await self.cache.connect()

    async def close(self) -> None:
        await self.cache.disconnect()
        await self.api.aclose()

    async def _read(self, key: str, path: str, ttl: int, params: dict | None = None) -> Any:
        return await self.cache.get_or_set(key, lambda: self.api.get(path, params), ttl)

    # ------------------------------------------------------------------
    # Articles
    # ------------------------------------------------------------------

    async def get_articles(
        self,
        page: int = 1,
        page_size: int = 10,
        search: str | None = None,
        tag: str | None = None,
        sort_by: str | None = None,
        sort_order: str | None = None,
    ) -> dict:
        params = {
            "page": page,
            "page_size": page_size,
            "search": search,
            "tag": tag,
            "sort_by": sort_by,
            "sort_order": sort_order,
        }
        key = cache_key(f"{ARTICLES}:list", **params)
        return await self._read(key, ARTICLES_PATH, settings.CACHE_TTL_ARTICLES, params)

    async def get_recent_articles(self, count: int = 5) -> list:
        key = cache_key(f"{ARTICLES}:list", view="recent", count=count)
        return await self._read(
            key, f"{ARTICLES_PATH}/recent", settings.CACHE_TTL_ARTICLES, {"count": count}
        )

    async def get_article(self, article_id: int) -> dict:
        key = cache_key(f"{ARTICLES}:detail", id=article_id)
        return await self._read(key, f"{ARTICLES_PATH}/{article_id}", settings.CACHE_TTL_ARTICLES)

    async def create_article(self, data) -> dict:
        article = await self.api.post(ARTICLES_PATH, data)
        await self.cache.invalidate_article()
        return article

    async def update_article(self, article_id: int, data) -> dict:
        article = await self.api.put(f"{ARTICLES_PATH}/{article_id}", data)
        await self.cache.invalidate_article(article_id)
        return article

    async def delete_article(self, article_id: int, row_version: str | None = None) -> None:
        await self.api.delete(f"{ARTICLES_PATH}/{article_id}", {"row_version": row_version})
        await self.cache.invalidate_article(article_id)

    async def _transition(self, article_id: int, action: str, row_version: str | None) -> dict:
        body = {"row_version": row_version} if row_version else None
        article = await self.api.post(f"{ARTICLES_PATH}/{article_id}/{action}", body)
        await self.cache.invalidate_article(article_id)
        return article

    async def publish_article(self, article_id: int, row_version: str | None = None) -> dict:
        return await self._transition(article_id, "publish", row_version)

    async def unpublish_article(self, article_id: int, row_version: str | None = None) -> dict:
        return await self._transition(article_id, "unpublish", row_version)

    async def archive_article(self, article_id: int, row_version: str | None = None) -> dict:
        return await self._transition(article_id, "archive", row_version)

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    async def submit_comment(self, article_id: int, data) -> dict:
        # New comments are Pending and invisible until approved: nothing to drop.
        return await self.api.post(f"{ARTICLES_PATH}/{article_id}/comments", data)

    async def _moderate(self, comment_id: int, action: str) -> dict:
        comment = await self.api.post(f"{ADMIN_PATH}/comments/{comment_id}/{action}")
        await self.cache.invalidate(cache_key(f"{ARTICLES}:detail", id=comment["article_id"]))
        return comment

    async def approve_comment(self, comment_id: int) -> dict:
        return await self._moderate(comment_id, "approve")

    async def reject_comment(self, comment_id: int) -> dict:
        return await self._moderate(comment_id, "reject")

    async def mark_comment_spam(self, comment_id: int) -> dict:
        return await self._moderate(comment_id, "spam")

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    async def get_tags(self) -> list:
        return await self._read(cache_key(f"{TAGS}:all"), TAGS_PATH, settings.CACHE_TTL_TAGS)

    async def get_popular_tags(self, count: int = 10) -> list:
        key = cache_key(f"{TAGS}:popular", count=count)
        return await self._read(key, f"{TAGS_PATH}/popular", settings.CACHE_TTL_TAGS, {"count": count})

    async def create_tag(self, data) -> dict:
        tag = await self.api.post(TAGS_PATH, data)
        await self.cache.invalidate_tags()
        return tag

    async def update_tag(self, tag_id: int, data) -> dict:
        tag = await self.api.put(f"{TAGS_PATH}/{tag_id}", data)
        # Article summaries embed tag names.
        await self.cache.invalidate_article()
        return tag

    async def delete_tag(self, tag_id: int) -> None:
        await self.api.delete(f"{TAGS_PATH}/{tag_id}")
        await self.cache.invalidate_article()

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def get_projects(self, technology: str | None = None) -> list:
        params = {"technology": technology}
        key = cache_key(f"{PROJECTS}:list", **params)
        return await self._read(key, PROJECTS_PATH, settings.CACHE_TTL_PROJECTS, params)

    async def get_project(self, project_id: int) -> dict:
        key = cache_key(f"{PROJECTS}:detail", id=project_id)
        return await self._read(key, f"{PROJECTS_PATH}/{project_id}", settings.CACHE_TTL_PROJECTS)

    async def create_project(self, data) -> dict:
        project = await self.api.post(PROJECTS_PATH, data)
        await self.cache.invalidate_project()
        return project

    async def update_project(self, project_id: int, data) -> dict:
        project = await self.api.put(f"{PROJECTS_PATH}/{project_id}", data)
        await self.cache.invalidate_project(project_id)
        return project

    async def delete_project(self, project_id: int, row_version: str | None = None) -> None:
        await self.api.delete(f"{PROJECTS_PATH}/{project_id}", {"row_version": row_version})
        await self.cache.invalidate_project(project_id)

    async def reorder_projects(self, orders: dict[int, int]) -> list:
        projects = await self.api.put(f"{PROJECTS_PATH}/order", {"orders": orders})
        await self.cache.invalidate_prefix(f"{PROJECTS}:")
        return projects
