"""Gateway event handlers and their router.

An event handler is a BaseEvent subclass declared with
``@event(name, once=False)``. The EventRouter subscribes handlers by
event name, forwards gateway events to them, and contains handler
failures so one broken listener never takes the gateway down.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog

from . import metadata as _metadata
from .exceptions import DefinitionError

if TYPE_CHECKING:
    from .commands.base import BotContext
    from .metadata import EventMetadata, MetadataRegistry

logger = structlog.get_logger("slashkit.events")


class BaseEvent(ABC):
    """Abstract base class for gateway event handlers.

    Args:
        ctx: Shared BotContext service bundle.
        registry: Metadata side table to read from (default: the global one).

    Raises:
        DefinitionError: If the class carries no event metadata.
    """

    def __init__(self, ctx: "BotContext", *, registry: Optional["MetadataRegistry"] = None):
        self.ctx = ctx
        source = registry if registry is not None else _metadata.registry
        metadata = source.read_event(type(self))
        if metadata is None:
            raise DefinitionError(
                f"Event {type(self).__name__} is missing @event decorator",
                target=type(self).__name__,
            )
        self.metadata: "EventMetadata" = metadata

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def once(self) -> bool:
        return self.metadata.once

    @abstractmethod
    async def execute(self, *args: Any) -> None:
        """Handle the event. Arguments follow the gateway's event signature."""
        ...


class EventRouter:
    """Maps gateway event names to subscribed handlers."""

    def __init__(self) -> None:
        self._handlers: Dict[str, List[BaseEvent]] = {}

    def subscribe(self, handler: BaseEvent) -> None:
        self._handlers.setdefault(handler.name, []).append(handler)
        logger.debug(
            "event_subscribed",
            gateway_event=handler.name,
            handler=type(handler).__name__,
            once=handler.once,
        )

    def unsubscribe(self, handler: BaseEvent) -> None:
        handlers = self._handlers.get(handler.name, [])
        if handler in handlers:
            handlers.remove(handler)

    def handlers_for(self, name: str) -> List[BaseEvent]:
        return list(self._handlers.get(name, []))

    @property
    def event_names(self) -> frozenset:
        """Event names with at least one subscriber."""
        return frozenset(name for name, handlers in self._handlers.items() if handlers)

    async def emit(self, name: str, *args: Any) -> int:
        """Deliver an event to every subscriber, in subscription order.

        Once-handlers are unsubscribed before they run, so they see at
        most one delivery even if the event fires again while they are
        suspended.

        Returns:
            Number of handlers the event was delivered to.
        """
        handlers = self.handlers_for(name)
        for handler in handlers:
            if handler.once:
                self.unsubscribe(handler)
        for handler in handlers:
            await self._safe_execute(handler, args)
        return len(handlers)

    def emit_nowait(self, name: str, *args: Any) -> Optional[asyncio.Task]:
        """Schedule ``emit`` on the running loop and return the task.

        Returns None when nothing is subscribed to *name*.
        """
        if not self._handlers.get(name):
            return None
        task = asyncio.get_running_loop().create_task(self.emit(name, *args))
        task.add_done_callback(_log_task_exception)
        return task

    async def _safe_execute(self, handler: BaseEvent, args: tuple) -> None:
        """Run a handler with error handling."""
        try:
            await handler.execute(*args)
        except Exception as e:
            logger.error(
                "event_handler_failed",
                gateway_event=handler.name,
                handler=type(handler).__name__,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )


def _log_task_exception(task: asyncio.Task) -> None:
    """Log exceptions from fire-and-forget tasks instead of silently swallowing them."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc:
        logger.error("background_task_failed", error=str(exc), exc_type=type(exc).__name__)
