"""
State machine tests for articles and comments, at the pure-function level
and through the entity methods.
"""
from datetime import datetime, timedelta, timezone

import pytest

from portfolio_cms.exceptions import InvalidTransition
from portfolio_cms.models import Article, Comment
from portfolio_cms.workflow import (
    ArticleState,
    ArticleStatus,
    ArticleTransition,
    CommentState,
    CommentStatus,
    CommentTransition,
    article_transition,
    can_transition_article,
    comment_transition,
    is_publicly_visible,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
EARLIER = NOW - timedelta(days=3)


# ---------------------------------------------------------------------------
# Article transitions
# ---------------------------------------------------------------------------

def test_publish_draft_sets_published_date():
    state = article_transition(ArticleState(ArticleStatus.DRAFT, None), ArticleTransition.PUBLISH, NOW)
    assert state == ArticleState(ArticleStatus.PUBLISHED, NOW)


def test_republish_refreshes_published_date():
    state = article_transition(
        ArticleState(ArticleStatus.PUBLISHED, EARLIER), ArticleTransition.PUBLISH, NOW
    )
    assert state.published_date == NOW


def test_publish_archived_article():
    state = article_transition(
        ArticleState(ArticleStatus.ARCHIVED, EARLIER), ArticleTransition.PUBLISH, NOW
    )
    assert state == ArticleState(ArticleStatus.PUBLISHED, NOW)


def test_unpublish_clears_published_date():
    state = article_transition(
        ArticleState(ArticleStatus.PUBLISHED, EARLIER), ArticleTransition.UNPUBLISH
    )
    assert state == ArticleState(ArticleStatus.DRAFT, None)


@pytest.mark.parametrize("status", [ArticleStatus.DRAFT, ArticleStatus.ARCHIVED])
def test_unpublish_requires_published(status):
    with pytest.raises(InvalidTransition) as excinfo:
        article_transition(ArticleState(status, None), ArticleTransition.UNPUBLISH)
    assert excinfo.value.status_code == 422
    assert excinfo.value.current_status is status


def test_archive_keeps_published_date():
    state = article_transition(
        ArticleState(ArticleStatus.PUBLISHED, EARLIER), ArticleTransition.ARCHIVE
    )
    assert state == ArticleState(ArticleStatus.ARCHIVED, EARLIER)


def test_archive_allowed_from_every_status():
    for status in ArticleStatus:
        assert can_transition_article(status, ArticleTransition.ARCHIVE)
    assert not can_transition_article(ArticleStatus.DRAFT, ArticleTransition.UNPUBLISH)


def test_public_visibility():
    assert is_publicly_visible(ArticleState(ArticleStatus.PUBLISHED, EARLIER), NOW)
    assert not is_publicly_visible(ArticleState(ArticleStatus.PUBLISHED, NOW + timedelta(seconds=1)), NOW)
    assert not is_publicly_visible(ArticleState(ArticleStatus.ARCHIVED, EARLIER), NOW)
    assert not is_publicly_visible(ArticleState(ArticleStatus.DRAFT, None), NOW)


def test_public_visibility_treats_naive_dates_as_utc():
    naive = EARLIER.replace(tzinfo=None)
    assert is_publicly_visible(ArticleState(ArticleStatus.PUBLISHED, naive), NOW)


# ---------------------------------------------------------------------------
# Comment transitions
# ---------------------------------------------------------------------------

def test_approve_sets_approved_date():
    state = comment_transition(CommentState(CommentStatus.PENDING, None), CommentTransition.APPROVE, NOW)
    assert state == CommentState(CommentStatus.APPROVED, NOW)


def test_approve_twice_keeps_first_date():
    state = comment_transition(
        CommentState(CommentStatus.APPROVED, EARLIER), CommentTransition.APPROVE, NOW
    )
    assert state.approved_date == EARLIER


@pytest.mark.parametrize(
    "transition, target",
    [
        (CommentTransition.REJECT, CommentStatus.REJECTED),
        (CommentTransition.MARK_SPAM, CommentStatus.SPAM),
    ],
)
def test_reject_and_spam_clear_approved_date(transition, target):
    state = comment_transition(CommentState(CommentStatus.APPROVED, EARLIER), transition)
    assert state == CommentState(target, None)


def test_moderation_is_reversible():
    state = CommentState(CommentStatus.SPAM, None)
    state = comment_transition(state, CommentTransition.APPROVE, NOW)
    assert state.status is CommentStatus.APPROVED


# ---------------------------------------------------------------------------
# Entity methods
# ---------------------------------------------------------------------------

def test_new_article_starts_as_draft():
    article = Article(title="T", slug="t", content="c")
    assert article.status is ArticleStatus.DRAFT
    assert article.published_date is None


def test_article_methods_follow_table():
    article = Article(title="T", slug="t", content="c")
    article.publish(NOW)
    assert (article.status, article.published_date) == (ArticleStatus.PUBLISHED, NOW)
    article.archive()
    assert (article.status, article.published_date) == (ArticleStatus.ARCHIVED, NOW)
    with pytest.raises(InvalidTransition):
        article.unpublish()


def test_new_comment_starts_pending():
    comment = Comment(author_name="A", author_email="a@example.com", content="hi", article_id=1)
    assert comment.status is CommentStatus.PENDING
    comment.approve(NOW)
    assert comment.approved_date == NOW
    comment.mark_spam()
    assert comment.status is CommentStatus.SPAM
    assert comment.approved_date is None
