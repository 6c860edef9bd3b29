"""
HTTP client the presentation tier uses to talk to the content API.
"""
import logging
from typing import Any

import httpx
from pydantic import BaseModel

from portfolio_cms.config import settings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-2xx answer (or no answer at all) from the content API."""

    def __init__(self, status_code: int, message: str, errors: list[str] | None = None) -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.errors = list(errors or [])

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


def _payload(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", exclude_unset=True)
    return data


def _params(params: dict | None) -> dict | None:
    if not params:
        return None
    return {name: value for name, value in params.items() if value is not None}


def _error_from(response: httpx.Response) -> ApiError:
    message = response.reason_phrase or "Request failed"
    errors: list[str] = []
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        if "message" in body:
            message = body["message"]
            errors = list(body.get("errors") or [])
        elif "detail" in body:
            # FastAPI's own validation errors
            detail = body["detail"]
            if isinstance(detail, list):
                message = "Validation failed"
                errors = [
                    f"{'.'.join(str(p) for p in item.get('loc', []))}: {item.get('msg')}"
                    for item in detail
                ]
            else:
                message = str(detail)
    return ApiError(response.status_code, message, errors)


class ApiClient:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout if timeout is not None else settings.API_TIMEOUT,
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        json: Any = None,
    ) -> Any:
        """Send one request and return the decoded JSON body (None for 204)."""
        try:
            response = await self._client.request(
                method, path, params=_params(params), json=_payload(json)
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ApiError(503, "The content API is unreachable") from exc

        if response.is_error:
            error = _error_from(response)
            logger.info("%s %s -> %d %s", method, path, error.status_code, error.message)
            raise error
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def get(self, path: str, params: dict | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None, params: dict | None = None) -> Any:
        return await self.request("POST", path, params=params, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str, params: dict | None = None) -> Any:
        return await self.request("DELETE", path, params=params)
