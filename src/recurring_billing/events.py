"""
In-process event bus.

Handlers are registered per event type and invoked in registration order
when an event is published. Handlers may be plain callables or coroutines.
A failing handler is logged and does not prevent the remaining handlers
from running; publishing is fire-and-forget for the caller.
"""

import inspect
from collections import defaultdict
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

import structlog
from pydantic import BaseModel, ConfigDict, Field

logger = structlog.get_logger(__name__)


class EventPriority(str, Enum):
    """Event priority levels."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class Event(BaseModel):
    """Published event envelope."""

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: str
    payload: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    priority: EventPriority = EventPriority.NORMAL
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


EventHandler = Callable[[Event], Awaitable[None] | None]


class EventBus:
    """Synchronous fan-out of events to registered handlers."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Register a handler for an event type."""
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        """Remove a previously registered handler."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def handlers_for(self, event_type: str) -> list[EventHandler]:
        return list(self._handlers.get(event_type, []))

    async def publish(
        self,
        event_type: str,
        payload: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
        priority: EventPriority = EventPriority.NORMAL,
    ) -> Event:
        """
        Publish an event to every handler registered for its type.

        Args:
            event_type: Dotted event name, e.g. "recurring_order.paid"
            payload: Event data
            metadata: Routing/audit data (source, customer id, ...)
            priority: Event priority

        Returns:
            The published event
        """
        event = Event(
            event_type=event_type,
            payload=payload or {},
            metadata=metadata or {},
            priority=priority,
        )

        for handler in self.handlers_for(event_type):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Event handler failed",
                    event_type=event_type,
                    event_id=event.event_id,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                )

        logger.debug("Event published", event_type=event_type, event_id=event.event_id)
        return event


# Global event bus instance
_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the global event bus instance."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def set_event_bus(event_bus: EventBus | None) -> None:
    """Replace the global event bus (mainly for testing)."""
    global _event_bus
    _event_bus = event_bus
