"""
URL slug generation.

``slugify`` is pure; ``generate_unique_slug`` asks a gateway exposing
``is_slug_unique(slug, exclude_id)`` (tags, articles) for the first free
candidate among ``base``, ``base-1``, ``base-2``, ...

The check and the later insert are not atomic.  Two writers racing for the
same slug both pass the check; the unique index then rejects the second
insert and its ``save_changes()`` raises ``PersistenceFailure``.
"""
import re
from typing import Protocol

from portfolio_cms.exceptions import ValidationFailure

MAX_SLUG_LENGTH = 50

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9\s-]")
_SLUG_DASH_RE = re.compile(r"[\s-]+")

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")


class SlugGateway(Protocol):
    async def is_slug_unique(self, slug: str, exclude_id: int | None = None) -> bool:
        ...


def slugify(text: str, max_length: int = MAX_SLUG_LENGTH) -> str:
    """Return a lowercase ``a-z0-9`` slug with single dashes, at most *max_length* long.

    >>> slugify("C# .NET!!")
    'c-net'
    """
    text = _SLUG_STRIP_RE.sub("", (text or "").lower())
    text = _SLUG_DASH_RE.sub("-", text).strip("-")
    return text[:max_length].rstrip("-")


def _with_suffix(base: str, counter: int, max_length: int) -> str:
    suffix = f"-{counter}"
    return base[: max_length - len(suffix)].rstrip("-") + suffix


async def generate_unique_slug(
    gateway: SlugGateway,
    name: str,
    exclude_id: int | None = None,
    max_length: int = MAX_SLUG_LENGTH,
) -> str:
    """
    Return the first slug derived from *name* that *gateway* reports free.

    *exclude_id* lets an entity keep its own slug when it is renamed.
    Raises ``ValidationFailure`` when *name* has no letters or digits.
    """
    base = slugify(name, max_length)
    if not base:
        raise ValidationFailure(
            "Cannot derive a slug",
            ["name: must contain at least one letter or digit"],
        )

    candidate = base
    counter = 0
    while not await gateway.is_slug_unique(candidate, exclude_id):
        counter += 1
        candidate = _with_suffix(base, counter, max_length)
    return candidate
