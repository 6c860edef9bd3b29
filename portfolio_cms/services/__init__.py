# Workflow services.
#
# Each module exposes a focused set of async functions that encapsulate
# the business rules for a single domain aggregate:
#
#   article_service  -- public feed, editing, publish/unpublish/archive
#   comment_service  -- submission (always Pending) and moderation
#   tag_service      -- tags with unique slugs and article counts
#   project_service  -- portfolio projects and their display order
#   media_service    -- upload validation, media metadata, orphan clean-up
#
# All service functions accept a UnitOfWork as their first argument and
# end every write with a single ``save_changes()``, so one call is one
# commit.  Failures are reported to telemetry and re-raised.
