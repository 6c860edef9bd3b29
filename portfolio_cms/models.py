from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portfolio_cms.database import Base
from portfolio_cms.workflow import (
    ArticleState,
    ArticleStatus,
    ArticleTransition,
    CommentState,
    CommentStatus,
    CommentTransition,
    article_transition,
    comment_transition,
    utcnow,
)


def _new_row_version(current: Optional[str]) -> str:
    """Concurrency token generator: a fresh opaque value on every write."""
    return uuid.uuid4().hex


def _status_enum(enum_cls, name: str) -> Enum:
    # Stored as short strings so the closed set survives any dialect.
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


# ---------------------------------------------------------------------------
# User (identity table referenced by articles and media files)
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    created_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    # Relationships: lazy="raise_on_sql", services load them explicitly
    articles: Mapped[List["Article"]] = relationship(
        "Article", back_populates="author", lazy="raise_on_sql"
    )


# ---------------------------------------------------------------------------
# Tag
# ---------------------------------------------------------------------------
class Tag(Base):
    __tablename__ = "tags"

    __table_args__ = (
        Index("ix_tags_slug", "slug", unique=True),
        Index("ix_tags_name", "name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    slug: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    created_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    article_tags: Mapped[List["ArticleTag"]] = relationship(
        "ArticleTag",
        back_populates="tag",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise_on_sql",
    )


# ---------------------------------------------------------------------------
# ArticleTag (join entity: Article <-> Tag)
# ---------------------------------------------------------------------------
class ArticleTag(Base):
    __tablename__ = "article_tags"

    __table_args__ = (
        UniqueConstraint("article_id", "tag_id", name="uq_article_tags_article_id_tag_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    article_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tag_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tags.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    article: Mapped["Article"] = relationship(
        "Article", back_populates="article_tags", lazy="raise_on_sql"
    )
    tag: Mapped["Tag"] = relationship("Tag", back_populates="article_tags", lazy="raise_on_sql")


# ---------------------------------------------------------------------------
# Article
# ---------------------------------------------------------------------------
class Article(Base):
    __tablename__ = "articles"

    __table_args__ = (
        Index("ix_articles_status", "status"),
        Index("ix_articles_published_date", "published_date"),
        Index("ix_articles_created_date", "created_date"),
        # Public feed: published articles ordered by publication date
        Index("ix_articles_status_published_date", "status", "published_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(200), unique=True, nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    _status: Mapped[ArticleStatus] = mapped_column(
        "status", _status_enum(ArticleStatus, "article_status"), nullable=False
    )
    created_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    _published_date: Mapped[Optional[datetime]] = mapped_column(
        "published_date", DateTime(timezone=True), nullable=True
    )

    # SEO metadata
    featured_image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    meta_description: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    meta_keywords: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    row_version: Mapped[str] = mapped_column(String(32), nullable=False)

    __mapper_args__ = {
        "version_id_col": row_version,
        "version_id_generator": _new_row_version,
    }

    # Relationships: all lazy="raise_on_sql"; gateways use selectinload/joinedload.
    # Child rows are removed (comments, tag links) or detached (media files)
    # by the database's ON DELETE rules.
    author: Mapped[Optional["User"]] = relationship(
        "User", back_populates="articles", lazy="raise_on_sql"
    )
    comments: Mapped[List["Comment"]] = relationship(
        "Comment",
        back_populates="article",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise_on_sql",
    )
    article_tags: Mapped[List["ArticleTag"]] = relationship(
        "ArticleTag",
        back_populates="article",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ArticleTag.id",
        lazy="raise_on_sql",
    )
    media_files: Mapped[List["MediaFile"]] = relationship(
        "MediaFile", back_populates="article", passive_deletes=True, lazy="raise_on_sql"
    )

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._status = ArticleStatus.DRAFT
        self._published_date = None

    @hybrid_property
    def status(self) -> ArticleStatus:
        return self._status

    @hybrid_property
    def published_date(self) -> Optional[datetime]:
        return self._published_date

    @property
    def tags(self) -> list[Tag]:
        """Tags in the order they were attached."""
        return [link.tag for link in self.article_tags]

    # -- workflow -----------------------------------------------------------

    def publish(self, now: Optional[datetime] = None) -> None:
        self._apply(ArticleTransition.PUBLISH, now)

    def unpublish(self) -> None:
        self._apply(ArticleTransition.UNPUBLISH)

    def archive(self) -> None:
        self._apply(ArticleTransition.ARCHIVE)

    def _apply(self, transition: ArticleTransition, now: Optional[datetime] = None) -> None:
        state = article_transition(ArticleState(self._status, self._published_date), transition, now)
        self._status, self._published_date = state


# ---------------------------------------------------------------------------
# Comment
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    __table_args__ = (
        Index("ix_comments_status", "status"),
        Index("ix_comments_submitted_date", "submitted_date"),
        # Moderation queue: comments by status, newest first
        Index("ix_comments_status_submitted_date", "status", "submitted_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    author_name: Mapped[str] = mapped_column(String(100), nullable=False)
    author_email: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(String(2000), nullable=False)
    _status: Mapped[CommentStatus] = mapped_column(
        "status", _status_enum(CommentStatus, "comment_status"), nullable=False
    )
    submitted_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    _approved_date: Mapped[Optional[datetime]] = mapped_column(
        "approved_date", DateTime(timezone=True), nullable=True
    )

    # Kept for anti-abuse triage only.
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    article_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    row_version: Mapped[str] = mapped_column(String(32), nullable=False)

    __mapper_args__ = {
        "version_id_col": row_version,
        "version_id_generator": _new_row_version,
    }

    article: Mapped["Article"] = relationship(
        "Article", back_populates="comments", lazy="raise_on_sql"
    )

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._status = CommentStatus.PENDING
        self._approved_date = None

    @hybrid_property
    def status(self) -> CommentStatus:
        return self._status

    @hybrid_property
    def approved_date(self) -> Optional[datetime]:
        return self._approved_date

    # -- workflow -----------------------------------------------------------

    def approve(self, now: Optional[datetime] = None) -> None:
        self._apply(CommentTransition.APPROVE, now)

    def reject(self) -> None:
        self._apply(CommentTransition.REJECT)

    def mark_spam(self) -> None:
        self._apply(CommentTransition.MARK_SPAM)

    def _apply(self, transition: CommentTransition, now: Optional[datetime] = None) -> None:
        state = comment_transition(CommentState(self._status, self._approved_date), transition, now)
        self._status, self._approved_date = state


# ---------------------------------------------------------------------------
# Project
# ---------------------------------------------------------------------------
class Project(Base):
    __tablename__ = "projects"

    __table_args__ = (
        Index("ix_projects_display_order", "display_order"),
        Index("ix_projects_is_active", "is_active"),
        # Portfolio page: active projects in display order
        Index("ix_projects_is_active_display_order", "is_active", "display_order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(String(2000), nullable=False)
    technology_stack: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    project_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    github_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    completed_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    row_version: Mapped[str] = mapped_column(String(32), nullable=False)

    __mapper_args__ = {
        "version_id_col": row_version,
        "version_id_generator": _new_row_version,
    }

    media_files: Mapped[List["MediaFile"]] = relationship(
        "MediaFile", back_populates="project", passive_deletes=True, lazy="raise_on_sql"
    )


# ---------------------------------------------------------------------------
# MediaFile (metadata only; bytes live with the storage collaborator)
# ---------------------------------------------------------------------------
class MediaFile(Base):
    __tablename__ = "media_files"

    __table_args__ = (
        Index("ix_media_files_category", "category"),
        Index("ix_media_files_uploaded_date", "uploaded_date"),
        Index("ix_media_files_uploaded_by", "uploaded_by"),
        Index("ix_media_files_category_uploaded_date", "category", "uploaded_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    original_file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    storage_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    category: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    uploaded_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    uploaded_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # Optional owners; a file with neither is an orphan.
    article_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("articles.id", ondelete="SET NULL"), nullable=True, index=True
    )
    project_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True
    )

    article: Mapped[Optional["Article"]] = relationship(
        "Article", back_populates="media_files", lazy="raise_on_sql"
    )
    project: Mapped[Optional["Project"]] = relationship(
        "Project", back_populates="media_files", lazy="raise_on_sql"
    )

    @property
    def is_orphaned(self) -> bool:
        return self.article_id is None and self.project_id is None
