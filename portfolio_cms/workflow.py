"""
Status state machines for Article and Comment.

The transition tables below are the single source of truth for which
moves are legal.  Entities never assign their status directly: they call
``article_transition`` / ``comment_transition`` and store the result (see
``Article.publish`` and friends in ``portfolio_cms.models``).

Article
-------
    publish    Draft | Archived | Published -> Published  (published date = now)
    unpublish  Published                    -> Draft      (published date cleared)
    archive    any                          -> Archived   (published date kept)

Publishing an article that is already published is accepted and moves its
published date to *now*.

Comment
-------
    approve    any -> Approved  (approved date = now)
    reject     any -> Rejected  (approved date cleared)
    mark_spam  any -> Spam      (approved date cleared)

Moderation moves are deliberately reversible so a moderator can correct a
mistake.
"""
import enum
from datetime import datetime, timezone
from typing import NamedTuple

from portfolio_cms.exceptions import InvalidTransition


class ArticleStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class CommentStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SPAM = "spam"


class ArticleTransition(str, enum.Enum):
    PUBLISH = "publish"
    UNPUBLISH = "unpublish"
    ARCHIVE = "archive"


class CommentTransition(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"
    MARK_SPAM = "mark_spam"


ARTICLE_TRANSITIONS: dict[ArticleTransition, tuple[frozenset[ArticleStatus], ArticleStatus]] = {
    ArticleTransition.PUBLISH: (
        frozenset({ArticleStatus.DRAFT, ArticleStatus.ARCHIVED, ArticleStatus.PUBLISHED}),
        ArticleStatus.PUBLISHED,
    ),
    ArticleTransition.UNPUBLISH: (
        frozenset({ArticleStatus.PUBLISHED}),
        ArticleStatus.DRAFT,
    ),
    ArticleTransition.ARCHIVE: (
        frozenset(ArticleStatus),
        ArticleStatus.ARCHIVED,
    ),
}

COMMENT_TRANSITIONS: dict[CommentTransition, tuple[frozenset[CommentStatus], CommentStatus]] = {
    CommentTransition.APPROVE: (frozenset(CommentStatus), CommentStatus.APPROVED),
    CommentTransition.REJECT: (frozenset(CommentStatus), CommentStatus.REJECTED),
    CommentTransition.MARK_SPAM: (frozenset(CommentStatus), CommentStatus.SPAM),
}

# Comments visible on public read paths.
PUBLIC_COMMENT_STATUSES = frozenset({CommentStatus.APPROVED})


class ArticleState(NamedTuple):
    status: ArticleStatus
    published_date: datetime | None


class CommentState(NamedTuple):
    status: CommentStatus
    approved_date: datetime | None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes (as some drivers return them) as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_publicly_visible(state: ArticleState, now: datetime | None = None) -> bool:
    """Published, with a publication date that is not in the future."""
    published = as_utc(state.published_date)
    return (
        state.status is ArticleStatus.PUBLISHED
        and published is not None
        and published <= (now or utcnow())
    )


def can_transition_article(status: ArticleStatus, transition: ArticleTransition) -> bool:
    sources, _ = ARTICLE_TRANSITIONS[transition]
    return status in sources


def article_transition(
    current: ArticleState,
    transition: ArticleTransition,
    now: datetime | None = None,
) -> ArticleState:
    """Return the article state reached by applying *transition* to *current*.

    Raises ``InvalidTransition`` when the table forbids the move.
    """
    sources, target = ARTICLE_TRANSITIONS[transition]
    if current.status not in sources:
        raise InvalidTransition("article", transition.value, current.status)

    if transition is ArticleTransition.PUBLISH:
        return ArticleState(target, now or utcnow())
    if transition is ArticleTransition.UNPUBLISH:
        return ArticleState(target, None)
    return ArticleState(target, current.published_date)


def comment_transition(
    current: CommentState,
    transition: CommentTransition,
    now: datetime | None = None,
) -> CommentState:
    """Return the comment state reached by applying *transition* to *current*."""
    sources, target = COMMENT_TRANSITIONS[transition]
    if current.status not in sources:
        raise InvalidTransition("comment", transition.value, current.status)

    if target is CommentStatus.APPROVED:
        if current.status is CommentStatus.APPROVED and current.approved_date is not None:
            return current
        return CommentState(target, now or utcnow())
    return CommentState(target, None)
