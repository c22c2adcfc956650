"""Observability facade wrapping Pydantic Logfire.

Provides spans around engine operations, SQL instrumentation, a structured
record of every published domain event, and warnings for partial carousel
decisions and storage failures. Every function no-ops when logfire is not
installed or not enabled in configuration, so callers never need to check.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from assetflow.config import Settings
    from assetflow.domain.events import DomainEvent

_logfire = None
_configured = False


def is_available() -> bool:
    return _logfire is not None and _configured


def configure(settings: Settings) -> None:
    """Initialize logfire from the ``logfire`` settings section."""
    global _logfire, _configured

    if not settings.logfire.enabled:
        return

    try:
        import logfire as lf
    except ImportError:
        return

    kwargs: dict[str, Any] = {
        "service_name": settings.logfire.service_name,
        "send_to_logfire": "if-token-present",
    }
    if settings.logfire.environment:
        kwargs["environment"] = settings.logfire.environment
    if settings.logfire.console:
        kwargs["console"] = lf.ConsoleOptions()

    lf.configure(**kwargs)
    _logfire = lf
    _configured = True


def instrument_sqlalchemy(engine) -> None:
    """Instrument a SQLAlchemy engine."""
    if is_available():
        _logfire.instrument_sqlalchemy(engine=engine)


@contextmanager
def span(name: str, **attrs: Any):
    """Context manager yielding a logfire span, or None if unavailable."""
    if is_available():
        with _logfire.span(name, **attrs) as s:
            yield s
    else:
        yield None


def record_event(event: DomainEvent) -> None:
    """Log a published domain event with its detail as span attributes."""
    if is_available():
        _logfire.info(
            "{event_type} on {asset_id}",
            event_type=str(event.type),
            asset_id=str(event.asset_id),
            actor_id=str(event.actor_id) if event.actor_id else None,
            **{f"detail.{key}": value for key, value in event.detail.items()},
        )


def warning(msg: str, **kwargs: Any) -> None:
    if is_available():
        _logfire.warn(msg, **kwargs)


def error(msg: str, **kwargs: Any) -> None:
    if is_available():
        _logfire.error(msg, **kwargs)


def exception(msg: str, **kwargs: Any) -> bool:
    """Log an exception with traceback via logfire. Returns True if logged."""
    if is_available():
        _logfire.exception(msg, **kwargs)
        return True
    return False
