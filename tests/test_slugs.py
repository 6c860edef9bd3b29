"""Slug derivation and uniqueness."""
import pytest

from portfolio_cms.exceptions import ValidationFailure
from portfolio_cms.models import Tag
from portfolio_cms.slugs import MAX_SLUG_LENGTH, SLUG_PATTERN, generate_unique_slug, slugify


class FakeGateway:
    def __init__(self, taken=(), owners=None):
        self.taken = set(taken)
        self.owners = owners or {}

    async def is_slug_unique(self, slug, exclude_id=None):
        if exclude_id is not None and self.owners.get(slug) == exclude_id:
            return True
        return slug not in self.taken


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Hello World", "hello-world"),
        ("C# .NET!!", "c-net"),
        ("  --Lots   of   space--  ", "lots-of-space"),
        ("Already-a-slug", "already-a-slug"),
        ("Ünïcode Çafé", "ncode-af"),
        ("!!!", ""),
    ],
)
def test_slugify(text, expected):
    assert slugify(text) == expected


def test_slugify_truncates_without_trailing_dash():
    slug = slugify("word " * 30)
    assert len(slug) <= MAX_SLUG_LENGTH
    assert not slug.endswith("-")
    assert SLUG_PATTERN.match(slug)


@pytest.mark.asyncio
async def test_unique_slug_appends_counter():
    gateway = FakeGateway(taken={"c-net", "c-net-1"})
    assert await generate_unique_slug(gateway, "C# .NET!!") == "c-net-2"


@pytest.mark.asyncio
async def test_unique_slug_keeps_own_slug_when_excluded():
    gateway = FakeGateway(taken={"python"}, owners={"python": 7})
    assert await generate_unique_slug(gateway, "Python", exclude_id=7) == "python"
    assert await generate_unique_slug(gateway, "Python", exclude_id=8) == "python-1"


@pytest.mark.asyncio
async def test_unique_slug_with_suffix_stays_within_length():
    base = "x" * MAX_SLUG_LENGTH
    gateway = FakeGateway(taken={base})
    slug = await generate_unique_slug(gateway, base)
    assert slug == "x" * (MAX_SLUG_LENGTH - 2) + "-1"
    assert len(slug) == MAX_SLUG_LENGTH


@pytest.mark.asyncio
async def test_unique_slug_rejects_names_without_letters_or_digits():
    with pytest.raises(ValidationFailure) as excinfo:
        await generate_unique_slug(FakeGateway(), "?!#")
    assert excinfo.value.errors == ["name: must contain at least one letter or digit"]


@pytest.mark.asyncio
async def test_unique_slug_against_store(uow):
    await uow.tags.add(Tag(name="C#", slug="c-net"))
    await uow.save_changes()

    assert await generate_unique_slug(uow.tags, "C# .NET!!") == "c-net-1"


@pytest.mark.asyncio
async def test_unique_slug_sees_staged_tags(uow):
    await uow.tags.add(Tag(name="Python", slug="python"))
    # Not saved yet, but the slug is already claimed in this unit of work.
    assert await generate_unique_slug(uow.tags, "Python") == "python-1"
