"""Hook registry used to publish engine events and shape query results.

Actions run callbacks for side effects (audit rows, notifications).
Filters pass a value through callbacks that may replace it.

Usage:
    from assetflow.lib.hooks import hooks, action, ASSET_APPROVED

    @action(ASSET_APPROVED)
    async def notify_uploader(event):
        ...

    # The engine publishes each DomainEvent under its own hook name and
    # under DOMAIN_EVENT:
    await hooks.emit(event)
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, TypeVar

if TYPE_CHECKING:
    from assetflow.domain.events import DomainEvent

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(order=True)
class HookHandler:
    """A registered callback with its priority."""

    priority: int
    callback: Callable = field(compare=False)

    async def call(self, *args: Any, **kwargs: Any) -> Any:
        """Call the handler, awaiting it when it is a coroutine function."""
        result = self.callback(*args, **kwargs)
        if asyncio.iscoroutine(result):
            return await result
        return result


class HookRegistry:
    """Registry of action and filter callbacks keyed by hook name."""

    def __init__(self) -> None:
        self._actions: dict[str, list[HookHandler]] = defaultdict(list)
        self._filters: dict[str, list[HookHandler]] = defaultdict(list)

    def add_action(self, hook_name: str, callback: Callable[..., Any], priority: int = 10) -> None:
        """Register an action callback. Lower priorities run first."""
        self._actions[hook_name].append(HookHandler(priority=priority, callback=callback))
        self._actions[hook_name].sort()

    def add_filter(self, hook_name: str, callback: Callable[..., T], priority: int = 10) -> None:
        """Register a filter callback. Lower priorities run first."""
        self._filters[hook_name].append(HookHandler(priority=priority, callback=callback))
        self._filters[hook_name].sort()

    def remove_action(self, hook_name: str, callback: Callable[..., Any]) -> bool:
        return self._remove(self._actions, hook_name, callback)

    def remove_filter(self, hook_name: str, callback: Callable[..., Any]) -> bool:
        return self._remove(self._filters, hook_name, callback)

    def has_action(self, hook_name: str) -> bool:
        return bool(self._actions.get(hook_name))

    def has_filter(self, hook_name: str) -> bool:
        return bool(self._filters.get(hook_name))

    async def apply_filters(self, hook_name: str, value: T, *args: Any, **kwargs: Any) -> T:
        """Pass ``value`` through every filter registered for ``hook_name``."""
        from assetflow.lib.observability import span

        with span(f"hook.filter:{hook_name}", hook_name=hook_name):
            for handler in self._filters.get(hook_name, []):
                value = await handler.call(value, *args, **kwargs)
            return value

    async def emit(self, event: DomainEvent) -> None:
        """Publish a domain event to its own hook and to ``DOMAIN_EVENT``.

        The mutation behind the event is already committed, so a failing
        subscriber is logged and the remaining subscribers still run.
        """
        for hook_name in (str(event.type), DOMAIN_EVENT):
            for handler in list(self._actions.get(hook_name, [])):
                try:
                    await handler.call(event)
                except Exception:
                    logger.error(
                        "Subscriber %r failed for %s on asset %s",
                        handler.callback,
                        hook_name,
                        event.asset_id,
                        exc_info=True,
                    )

    def clear(self) -> None:
        """Drop every registered hook. Useful for testing."""
        self._actions.clear()
        self._filters.clear()

    @staticmethod
    def _remove(table: dict[str, list[HookHandler]], hook_name: str, callback: Callable[..., Any]) -> bool:
        handlers = table.get(hook_name, [])
        for i, handler in enumerate(handlers):
            if handler.callback is callback:
                handlers.pop(i)
                return True
        return False


# Global registry
hooks = HookRegistry()


def action(hook_name: str, priority: int = 10) -> Callable[[Callable], Callable]:
    """Decorator registering a function as an action on the global registry."""

    def decorator(func: Callable) -> Callable:
        hooks.add_action(hook_name, func, priority)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return func(*args, **kwargs)

        return wrapper

    return decorator


def filter(hook_name: str, priority: int = 10) -> Callable[[Callable], Callable]:
    """Decorator registering a function as a filter on the global registry."""

    def decorator(func: Callable) -> Callable:
        hooks.add_filter(hook_name, func, priority)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return func(*args, **kwargs)

        return wrapper

    return decorator


# Event actions (names match EventType values)
ASSET_CREATED = "asset_created"
ASSET_SUBMITTED = "asset_submitted"
ASSET_APPROVED = "asset_approved"
ASSET_REJECTED = "asset_rejected"
ASSET_UPDATED = "asset_updated"
ASSET_SHARED = "asset_shared"
ASSET_DELETED = "asset_deleted"
CAROUSEL_STATUS_CHANGED = "carousel_status_changed"

# Catch-all action receiving every DomainEvent
DOMAIN_EVENT = "domain_event"

# Filters
VISIBLE_ASSETS = "visible_assets"

