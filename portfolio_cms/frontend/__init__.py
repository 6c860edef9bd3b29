# Presentation-tier access to the content API.
#
#   ApiClient      -- httpx.AsyncClient wrapper, raises ApiError on non-2xx
#   ContentClient  -- read-through cache in front of ApiClient
from portfolio_cms.frontend.api_client import ApiClient, ApiError
from portfolio_cms.frontend.content import ContentClient

__all__ = ["ApiClient", "ApiError", "ContentClient"]
