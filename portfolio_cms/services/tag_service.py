"""
Tag service.  Slugs are derived from the name and kept unique; renaming a
tag regenerates its slug (the tag's own current slug does not count as
taken).
"""
from portfolio_cms.exceptions import NotFoundError, ValidationFailure
from portfolio_cms.models import Tag
from portfolio_cms.schemas import TagCreate, TagResponse, TagUpdate, TagWithCount
from portfolio_cms.slugs import generate_unique_slug
from portfolio_cms.telemetry import reports_exceptions, track_event
from portfolio_cms.unit_of_work import UnitOfWork


def _with_count(tag: Tag, count: int) -> TagWithCount:
    return TagWithCount(
        id=tag.id, name=tag.name, slug=tag.slug, description=tag.description, article_count=count
    )


async def _ensure_name_free(uow: UnitOfWork, name: str, tag_id: int | None = None) -> None:
    existing = await uow.tags.get_by_name(name)
    if existing is not None and existing.id != tag_id:
        raise ValidationFailure("Tag already exists", [f"name: a tag named '{name}' already exists"])


@reports_exceptions
async def get_all_tags(uow: UnitOfWork) -> list[TagWithCount]:
    """Every tag with its number of published articles, by name."""
    return [_with_count(tag, count) for tag, count in await uow.tags.get_with_article_counts()]


@reports_exceptions
async def get_popular_tags(uow: UnitOfWork, count: int = 10) -> list[TagWithCount]:
    return [_with_count(tag, total) for tag, total in await uow.tags.get_popular(count)]


@reports_exceptions
async def get_tag_by_slug(uow: UnitOfWork, slug: str) -> TagResponse:
    tag = await uow.tags.get_by_slug(slug)
    if tag is None:
        raise NotFoundError("Tag", slug)
    return TagResponse.model_validate(tag)


@reports_exceptions
async def create_tag(uow: UnitOfWork, data: TagCreate) -> TagResponse:
    name = data.name.strip()
    await _ensure_name_free(uow, name)

    tag = Tag(
        name=name,
        slug=await generate_unique_slug(uow.tags, name),
        description=data.description,
    )
    await uow.tags.add(tag)
    await uow.save_changes()

    track_event("TagCreated", tag_id=tag.id, slug=tag.slug)
    return TagResponse.model_validate(tag)


@reports_exceptions
async def update_tag(uow: UnitOfWork, tag_id: int, data: TagUpdate) -> TagResponse:
    tag = await uow.tags.get_required(tag_id)
    update_data = data.model_dump(exclude_unset=True)

    name = (update_data.pop("name", None) or "").strip()
    if name and name != tag.name:
        await _ensure_name_free(uow, name, tag_id=tag.id)
        tag.name = name
        tag.slug = await generate_unique_slug(uow.tags, name, exclude_id=tag.id)
    if "description" in update_data:
        tag.description = update_data["description"]

    await uow.tags.update(tag)
    await uow.save_changes()

    track_event("TagUpdated", tag_id=tag.id, slug=tag.slug)
    return TagResponse.model_validate(tag)


@reports_exceptions
async def delete_tag(uow: UnitOfWork, tag_id: int) -> None:
    """Delete a tag; it disappears from every article that carried it."""
    tag = await uow.tags.get_required(tag_id)
    await uow.tags.delete(tag)
    await uow.save_changes()
    track_event("TagDeleted", tag_id=tag_id)
