"""
Telemetry collaborator.

Workflow services report "event X happened" / "exception Y was raised"
through a ``Telemetry`` object.  The default implementation only logs; a
deployment can plug in its own sink by calling ``set_telemetry``.
"""
import functools
import logging
from typing import Mapping, Protocol

logger = logging.getLogger(__name__)


class Telemetry(Protocol):
    def track_event(self, name: str, properties: Mapping[str, object] | None = None) -> None:
        ...

    def track_exception(
        self, exc: BaseException, properties: Mapping[str, object] | None = None
    ) -> None:
        ...


class LoggingTelemetry:
    def track_event(self, name: str, properties: Mapping[str, object] | None = None) -> None:
        logger.info("event=%s %s", name, dict(properties or {}))

    def track_exception(
        self, exc: BaseException, properties: Mapping[str, object] | None = None
    ) -> None:
        logger.warning(
            "exception=%s message=%s %s", type(exc).__name__, exc, dict(properties or {})
        )


_telemetry: Telemetry = LoggingTelemetry()


def get_telemetry() -> Telemetry:
    return _telemetry


def set_telemetry(telemetry: Telemetry) -> Telemetry:
    """Install *telemetry* and return the previous sink."""
    global _telemetry
    previous, _telemetry = _telemetry, telemetry
    return previous


def track_event(name: str, **properties) -> None:
    _telemetry.track_event(name, properties)


def track_exception(exc: BaseException, **properties) -> None:
    _telemetry.track_exception(exc, properties)


def reports_exceptions(func):
    """Report any exception raised by the wrapped coroutine, then re-raise it."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except Exception as exc:
            track_exception(exc, method=func.__name__)
            raise

    return wrapper
