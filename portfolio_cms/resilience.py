"""
Connection-level retry for transient store failures.

Only failures that say nothing about the data (lost connections, timeouts,
pool exhaustion) are retried.  Constraint violations, stale concurrency
tokens and every other error are raised on the first attempt: retrying
them blindly would be wrong.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from sqlalchemy import exc as sa_exc
from sqlalchemy.orm.exc import StaleDataError

from portfolio_cms.config import settings
from portfolio_cms.exceptions import ConnectivityFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRANSIENT_ERRORS = (ConnectionError, TimeoutError, asyncio.TimeoutError, OSError)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded attempts with capped exponential backoff."""

    max_attempts: int = 5
    base_delay: float = 0.5
    max_delay: float = 30.0

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number *attempt* (1-based)."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.DB_MAX_RETRY_COUNT,
            base_delay=settings.DB_RETRY_BASE_DELAY,
            max_delay=settings.DB_MAX_RETRY_DELAY,
        )


def is_transient(exc: BaseException) -> bool:
    """Return True when *exc* is a connectivity failure worth retrying."""
    if isinstance(exc, (sa_exc.IntegrityError, StaleDataError)):
        return False
    if isinstance(exc, (sa_exc.DisconnectionError, sa_exc.TimeoutError)):
        return True
    if isinstance(exc, sa_exc.DBAPIError):
        if exc.connection_invalidated:
            return True
        return isinstance(exc.orig, _TRANSIENT_ERRORS)
    return isinstance(exc, _TRANSIENT_ERRORS)


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    on_retry: Callable[[], Awaitable[None]] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await ``operation()``; on a transient failure wait and try again.

    *on_retry* runs before every new attempt (e.g. to roll back a session
    whose connection was invalidated).  After ``policy.max_attempts``
    transient failures a ``ConnectivityFailure`` is raised, chained to the
    last error.  Non-transient errors propagate untouched.
    """
    policy = policy or RetryPolicy.from_settings()
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as exc:
            if not is_transient(exc):
                raise
            if attempt >= policy.max_attempts:
                logger.error("Store unreachable after %d attempt(s): %s", attempt, exc)
                raise ConnectivityFailure(
                    f"Store unreachable after {attempt} attempt(s)", attempts=attempt
                ) from exc
            delay = policy.delay_for(attempt)
            logger.warning(
                "Transient store failure (attempt %d/%d), retrying in %.2fs: %s",
                attempt,
                policy.max_attempts,
                delay,
                exc,
            )
            await sleep(delay)
            if on_retry is not None:
                await on_retry()
            attempt += 1
