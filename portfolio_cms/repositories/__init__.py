# Persistence gateways.
#
# ``Repository`` is the generic gateway; the subclasses add the queries the
# workflow services need for one aggregate each:
#
#   ArticleRepository    public feed, search, tag filter, popular/recent
#   CommentRepository    approved threads and the moderation queue
#   TagRepository        slug/name lookups, slug uniqueness, article counts
#   ProjectRepository    portfolio ordering and technology filter
#   MediaFileRepository  per-owner listings, orphans, storage totals
#
# Gateways only read and stage; the owning ``UnitOfWork`` writes.
from portfolio_cms.repositories.articles import ArticleRepository
from portfolio_cms.repositories.base import Repository, validate_page
from portfolio_cms.repositories.comments import CommentRepository
from portfolio_cms.repositories.media import MediaFileRepository
from portfolio_cms.repositories.projects import ProjectRepository
from portfolio_cms.repositories.tags import TagRepository

__all__ = [
    "ArticleRepository",
    "CommentRepository",
    "MediaFileRepository",
    "ProjectRepository",
    "Repository",
    "TagRepository",
    "validate_page",
]
