"""
Article service: business logic for the Article aggregate.

Design notes
------------
- Every function takes the request's ``UnitOfWork`` first and ends with a
  single ``save_changes()`` for writes, so each operation is one commit.
- Status only moves through ``Article.publish`` / ``unpublish`` /
  ``archive``; ``update_article`` never touches it.
- Updates require the caller's concurrency token (``row_version``).  A
  stale token raises ``ConcurrencyConflict`` before anything is written;
  a write racing another writer fails the same way at commit time.
- Public reads (``get_published_articles``, ``get_article`` ...) only see
  Published articles whose publication date has passed, and only Approved
  comments.
"""
from sqlalchemy.orm.attributes import flag_modified, set_committed_value

from portfolio_cms.exceptions import NotFoundError, ValidationFailure
from portfolio_cms.models import Article, ArticleTag, Tag, User
from portfolio_cms.schemas import (
    ArticleCreate,
    ArticleDetail,
    ArticleEditDetail,
    ArticleResponse,
    ArticleUpdate,
    PaginatedResponse,
)
from portfolio_cms.slugs import generate_unique_slug, slugify
from portfolio_cms.telemetry import reports_exceptions, track_event
from portfolio_cms.unit_of_work import UnitOfWork
from portfolio_cms.workflow import ArticleState, ArticleStatus, is_publicly_visible

ARTICLE_SLUG_LENGTH = 200


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _summaries(articles: list[Article]) -> list[ArticleResponse]:
    return [ArticleResponse.model_validate(article) for article in articles]


async def _article_slug(uow: UnitOfWork, title: str, exclude_id: int | None = None) -> str:
    # Titles made only of punctuation still need a permalink.
    name = title if slugify(title, ARTICLE_SLUG_LENGTH) else "article"
    return await generate_unique_slug(
        uow.articles, name, exclude_id=exclude_id, max_length=ARTICLE_SLUG_LENGTH
    )


async def _load(uow: UnitOfWork, article_id: int) -> Article:
    article = await uow.articles.get_with_tags(article_id)
    if article is None:
        raise NotFoundError("Article", article_id)
    return article


# ---------------------------------------------------------------------------
# Tag resolution helper (used by create / update)
# ---------------------------------------------------------------------------

async def resolve_tags(uow: UnitOfWork, tag_names: list[str]) -> list[Tag]:
    """
    Return a Tag for each distinct name in *tag_names*, in order.

    Existing tags are matched by name ignoring case; unknown names become
    new tags (staged, not yet written) with a unique slug.
    """
    tags: list[Tag] = []
    seen: set[str] = set()
    errors = []
    for raw in tag_names:
        name = raw.strip()
        if not name or name.lower() in seen:
            continue
        if len(name) > 50:
            errors.append(f"tags: '{name[:20]}...' is longer than 50 characters")
            continue
        seen.add(name.lower())

        tag = await uow.tags.get_by_name(name)
        if tag is None:
            tag = Tag(name=name, slug=await generate_unique_slug(uow.tags, name))
            await uow.tags.add(tag)
        tags.append(tag)
    if errors:
        raise ValidationFailure("Invalid tags", errors)
    return tags


def _attach_tags(article: Article, tags: list[Tag]) -> None:
    """Make *tags* the article's tags, keeping surviving links in place."""
    wanted = {id(tag) for tag in tags}
    kept = [link for link in article.article_tags if id(link.tag) in wanted]
    linked = {id(link.tag) for link in kept}
    kept.extend(ArticleTag(tag=tag) for tag in tags if id(tag) not in linked)
    article.article_tags = kept


async def _get_author(uow: UnitOfWork, user_id: int | None) -> User | None:
    if user_id is None:
        return None
    author = await uow.repository(User).get_by_id(user_id)
    if author is None:
        raise ValidationFailure("Invalid article", [f"user_id: user {user_id} does not exist"])
    return author


# ---------------------------------------------------------------------------
# Public reads
# ---------------------------------------------------------------------------

@reports_exceptions
async def get_published_articles(
    uow: UnitOfWork,
    page: int = 1,
    page_size: int = 10,
    search: str | None = None,
    tag: str | None = None,
    sort_by: str = "published_date",
    sort_order: str = "desc",
) -> PaginatedResponse:
    """
    Return one page of publicly visible articles.

    Two SQL statements plus the eager loads: COUNT, then the page with
    LIMIT/OFFSET.
    """
    items, total = await uow.articles.get_published_page(
        page, page_size, search=search, tag_slug=tag, sort_by=sort_by, sort_order=sort_order
    )
    return PaginatedResponse.of(_summaries(items), total, page, page_size)


@reports_exceptions
async def get_article(uow: UnitOfWork, article_id: int) -> ArticleDetail:
    """Public detail view.  Unpublished articles are reported as not found."""
    article = await uow.articles.get_for_display(article_id)
    if article is None or not is_publicly_visible(
        ArticleState(article.status, article.published_date)
    ):
        raise NotFoundError("Article", article_id)

    # Public view: approved comments only.
    approved = await uow.comments.get_approved_for_article(article_id)
    set_committed_value(article, "comments", approved)
    return ArticleDetail.model_validate(article)


@reports_exceptions
async def get_article_for_edit(uow: UnitOfWork, article_id: int) -> ArticleEditDetail:
    """Detail view for editors: any status, every comment."""
    article = await uow.articles.get_for_display(article_id)
    if article is None:
        raise NotFoundError("Article", article_id)
    set_committed_value(article, "comments", await uow.comments.get_for_article(article_id))
    return ArticleEditDetail.model_validate(article)


@reports_exceptions
async def search_articles(
    uow: UnitOfWork, term: str, page: int = 1, page_size: int = 10
) -> PaginatedResponse:
    items, total = await uow.articles.get_published_page(page, page_size, search=term)
    return PaginatedResponse.of(_summaries(items), total, page, page_size)


@reports_exceptions
async def get_articles_by_tag(
    uow: UnitOfWork, tag_slug: str, page: int = 1, page_size: int = 10
) -> PaginatedResponse:
    if not tag_slug or not tag_slug.strip():
        raise ValidationFailure("Tag slug is required", ["tag_slug: must not be blank"])
    items, total = await uow.articles.get_published_page(page, page_size, tag_slug=tag_slug)
    return PaginatedResponse.of(_summaries(items), total, page, page_size)


@reports_exceptions
async def get_recent_articles(uow: UnitOfWork, count: int = 5) -> list[ArticleResponse]:
    return _summaries(await uow.articles.get_recent(count))


@reports_exceptions
async def get_popular_articles(uow: UnitOfWork, count: int = 5) -> list[ArticleResponse]:
    return _summaries(await uow.articles.get_popular(count))


# ---------------------------------------------------------------------------
# Elevated reads
# ---------------------------------------------------------------------------

@reports_exceptions
async def get_all_articles(
    uow: UnitOfWork,
    page: int = 1,
    page_size: int = 10,
    status: ArticleStatus | None = None,
    search: str | None = None,
    sort_by: str = "created_date",
    sort_order: str = "desc",
) -> PaginatedResponse:
    items, total = await uow.articles.get_all_page(
        page, page_size, status=status, search=search, sort_by=sort_by, sort_order=sort_order
    )
    return PaginatedResponse.of(_summaries(items), total, page, page_size)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

@reports_exceptions
async def create_article(
    uow: UnitOfWork, data: ArticleCreate, user_id: int | None = None
) -> ArticleResponse:
    """
    Create an article.  It starts as Draft; a requested initial status of
    Published or Archived is reached through the normal transitions.
    """
    user_id = user_id if user_id is not None else data.user_id
    author = await _get_author(uow, user_id)

    article = Article(
        title=data.title,
        slug=await _article_slug(uow, data.title),
        content=data.content,
        summary=data.summary,
        featured_image_url=data.featured_image_url,
        meta_description=data.meta_description,
        meta_keywords=data.meta_keywords,
        user_id=user_id,
        author=author,
    )
    _attach_tags(article, await resolve_tags(uow, data.tags))

    if data.status is ArticleStatus.PUBLISHED:
        article.publish()
    elif data.status is ArticleStatus.ARCHIVED:
        article.archive()

    await uow.articles.add(article)
    await uow.save_changes()

    track_event(
        "ArticleCreated", article_id=article.id, title=article.title, status=article.status.value
    )
    return ArticleResponse.model_validate(article)


@reports_exceptions
async def update_article(uow: UnitOfWork, article_id: int, data: ArticleUpdate) -> ArticleResponse:
    """
    Partially update an article.  Only fields present in the payload change
    (``model_dump(exclude_unset=True)``); ``tags`` replaces the tag list.
    """
    article = await _load(uow, article_id)
    uow.articles.ensure_version(article, data.row_version)

    update_data = data.model_dump(exclude_unset=True, exclude={"row_version"})
    tag_names: list[str] | None = update_data.pop("tags", None)

    if update_data.get("title") is None:
        update_data.pop("title", None)
    if update_data.get("content") is None:
        update_data.pop("content", None)
    for field, value in update_data.items():
        setattr(article, field, value)

    # Re-generate slug if the title changed.
    if "title" in update_data:
        article.slug = await _article_slug(uow, update_data["title"], exclude_id=article.id)

    if tag_names is not None:
        _attach_tags(article, await resolve_tags(uow, tag_names))

    # Every update rewrites the row so the concurrency token always moves.
    flag_modified(article, "title")
    await uow.articles.update(article)
    await uow.save_changes()

    track_event("ArticleUpdated", article_id=article.id, title=article.title)
    return ArticleResponse.model_validate(article)


@reports_exceptions
async def delete_article(uow: UnitOfWork, article_id: int, row_version: str | None = None) -> None:
    """
    Delete an article.  Its comments and tag links go with it; attached media
    files stay, detached.
    """
    article = await uow.articles.get_by_id(article_id)
    if article is None:
        raise NotFoundError("Article", article_id)
    if row_version is not None:
        uow.articles.ensure_version(article, row_version)

    await uow.articles.delete(article)
    await uow.save_changes()
    track_event("ArticleDeleted", article_id=article_id)


async def _transition(uow, article_id, row_version, apply, event) -> ArticleResponse:
    article = await _load(uow, article_id)
    if row_version is not None:
        uow.articles.ensure_version(article, row_version)
    apply(article)
    await uow.articles.update(article)
    await uow.save_changes()
    track_event(event, article_id=article.id, status=article.status.value)
    return ArticleResponse.model_validate(article)


@reports_exceptions
async def publish_article(
    uow: UnitOfWork, article_id: int, row_version: str | None = None
) -> ArticleResponse:
    return await _transition(uow, article_id, row_version, Article.publish, "ArticlePublished")


@reports_exceptions
async def unpublish_article(
    uow: UnitOfWork, article_id: int, row_version: str | None = None
) -> ArticleResponse:
    return await _transition(uow, article_id, row_version, Article.unpublish, "ArticleUnpublished")


@reports_exceptions
async def archive_article(
    uow: UnitOfWork, article_id: int, row_version: str | None = None
) -> ArticleResponse:
    return await _transition(uow, article_id, row_version, Article.archive, "ArticleArchived")
