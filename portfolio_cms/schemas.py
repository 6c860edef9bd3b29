import math
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from portfolio_cms.workflow import ArticleStatus, CommentStatus

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# --- User ---

class UserSummary(BaseModel):
    id: int
    username: str
    display_name: str | None = None
    model_config = ConfigDict(from_attributes=True)


# --- Tag ---

class TagBase(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    description: str | None = Field(None, max_length=200)


class TagCreate(TagBase):
    pass


class TagUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=50)
    description: str | None = Field(None, max_length=200)


class TagResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: str | None = None
    model_config = ConfigDict(from_attributes=True)


class TagWithCount(TagResponse):
    article_count: int = 0


# --- Comment ---

class CommentCreate(BaseModel):
    author_name: str = Field(min_length=1, max_length=100)
    author_email: str = Field(max_length=200, pattern=_EMAIL_PATTERN)
    content: str = Field(min_length=1, max_length=2000)


class CommentResponse(BaseModel):
    id: int
    article_id: int
    author_name: str
    content: str
    status: CommentStatus
    submitted_date: datetime
    approved_date: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class CommentAdminResponse(CommentResponse):
    author_email: str
    ip_address: str | None = None
    user_agent: str | None = None
    row_version: str


class ModerationRequest(BaseModel):
    # Optional concurrency token; when given it must match the stored one.
    row_version: str | None = None


# --- Article ---

class ArticleCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    summary: str | None = Field(None, max_length=500)
    status: ArticleStatus = ArticleStatus.DRAFT
    tags: list[str] = []  # tag names
    featured_image_url: str | None = Field(None, max_length=500)
    meta_description: str | None = Field(None, max_length=300)
    meta_keywords: str | None = Field(None, max_length=200)
    user_id: int | None = None


class ArticleUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    content: str | None = Field(None, min_length=1)
    summary: str | None = Field(None, max_length=500)
    tags: list[str] | None = None
    featured_image_url: str | None = Field(None, max_length=500)
    meta_description: str | None = Field(None, max_length=300)
    meta_keywords: str | None = Field(None, max_length=200)
    row_version: str = Field(min_length=1)


class ArticleResponse(BaseModel):
    id: int
    title: str
    slug: str
    summary: str | None
    status: ArticleStatus
    created_date: datetime
    published_date: datetime | None
    featured_image_url: str | None = None
    meta_description: str | None = None
    meta_keywords: str | None = None
    user_id: int | None
    author: UserSummary | None = None
    tags: list[TagResponse] = []
    row_version: str
    model_config = ConfigDict(from_attributes=True)


class MediaFileResponse(BaseModel):
    id: int
    file_name: str
    original_file_name: str
    content_type: str
    file_size: int
    storage_url: str
    category: str
    uploaded_date: datetime
    uploaded_by: int | None = None
    article_id: int | None = None
    project_id: int | None = None
    model_config = ConfigDict(from_attributes=True)


class ArticleDetail(ArticleResponse):
    content: str
    comments: list[CommentResponse] = []
    media_files: list[MediaFileResponse] = []


class ArticleEditDetail(ArticleResponse):
    content: str
    comments: list[CommentAdminResponse] = []


class TransitionRequest(BaseModel):
    row_version: str | None = None


# --- Project ---

class ProjectBase(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=2000)
    technology_stack: str | None = Field(None, max_length=500)
    project_url: str | None = Field(None, max_length=500)
    github_url: str | None = Field(None, max_length=500)
    image_url: str | None = Field(None, max_length=500)
    completed_date: datetime | None = None
    is_active: bool = True


class ProjectCreate(ProjectBase):
    display_order: int | None = Field(None, ge=0)


class ProjectUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, min_length=1, max_length=2000)
    technology_stack: str | None = Field(None, max_length=500)
    project_url: str | None = Field(None, max_length=500)
    github_url: str | None = Field(None, max_length=500)
    image_url: str | None = Field(None, max_length=500)
    completed_date: datetime | None = None
    display_order: int | None = Field(None, ge=0)
    is_active: bool | None = None
    row_version: str = Field(min_length=1)


class ProjectResponse(ProjectBase):
    id: int
    display_order: int
    row_version: str
    model_config = ConfigDict(from_attributes=True)


class ReorderRequest(BaseModel):
    # {project_id: display_order}
    orders: dict[int, int]


# --- Media ---

class MediaFileUpdate(BaseModel):
    """Only the fields present in the request body are applied (``null`` detaches)."""

    category: str | None = Field(None, max_length=50)
    article_id: int | None = None
    project_id: int | None = None


class StorageStatistics(BaseModel):
    total_files: int
    total_size: int
    formatted_size: str
    orphaned_files: int
    files_by_category: dict[str, int] = {}
    files_by_content_type: dict[str, int] = {}


class CleanupResult(BaseModel):
    deleted_files: int
    freed_bytes: int


# --- Pagination ---

class PaginatedResponse(BaseModel):
    items: list  # Will be typed in router
    total: int
    page: int
    page_size: int
    pages: int

    @classmethod
    def of(cls, items: list, total: int, page: int, page_size: int) -> "PaginatedResponse":
        return cls(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            pages=math.ceil(total / page_size) if total > 0 else 0,
        )
