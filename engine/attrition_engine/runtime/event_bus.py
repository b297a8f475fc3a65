"""
Event bus for internal pub/sub messaging.

Attrition runs publish trace events here (run start, each assassination,
suppression window lifecycle) so the API layer and tests can observe a run
without coupling to the scheduler.
"""

import asyncio
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class EventType(str, Enum):
    """Types of events in the system."""

    # Lifecycle events
    ENGINE_STARTED = "engine.started"
    ENGINE_STOPPED = "engine.stopped"

    # Attrition run events
    ATTRITION_STARTED = "attrition.started"
    ATTRITION_WORKER_KILL_BEGIN = "attrition.worker_kill_begin"
    ATTRITION_ASSASSINATION = "attrition.assassination"
    ATTRITION_REBOOT_REQUEST_SENT = "attrition.reboot_request_sent"
    ATTRITION_FINISHED = "attrition.finished"

    # Health signalling events
    SUPPRESSION_STARTED = "suppression.started"
    SUPPRESSION_CLEARED = "suppression.cleared"
    MAINTENANCE_MARKED = "suppression.maintenance_marked"


@dataclass
class Event:
    """
    An event in the system.

    Carries type, timestamp, and arbitrary payload data.
    """

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    id: UUID = field(default_factory=uuid4)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    run_id: str | None = None

    def __hash__(self) -> int:
        return hash(self.id)


# Type for event handlers
EventHandler = Callable[[Event], Coroutine[Any, Any, None]]


class EventBus:
    """
    Simple async event bus for internal pub/sub.

    Supports:
    - Multiple handlers per event type
    - Wildcard subscriptions
    - Async handlers
    """

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[EventHandler]] = {}
        self._wildcard_handlers: list[EventHandler] = []
        self._lock = asyncio.Lock()

    async def subscribe(
        self,
        event_type: EventType | None,
        handler: EventHandler,
    ) -> None:
        """
        Subscribe to events.

        Args:
            event_type: Event type to subscribe to, or None for all events
            handler: Async handler function
        """
        async with self._lock:
            if event_type is None:
                self._wildcard_handlers.append(handler)
            else:
                self._handlers.setdefault(event_type, []).append(handler)

    async def unsubscribe(
        self,
        event_type: EventType | None,
        handler: EventHandler,
    ) -> None:
        """Unsubscribe a handler (no-op if it was never subscribed)."""
        async with self._lock:
            handlers = (
                self._wildcard_handlers if event_type is None else self._handlers.get(event_type, [])
            )
            if handler in handlers:
                handlers.remove(handler)

    async def publish(self, event: Event) -> None:
        """
        Publish an event to all subscribers.

        Handler failures are collected and dropped so a broken subscriber can
        never abort an attrition run.
        """
        handlers: list[EventHandler] = []

        async with self._lock:
            handlers.extend(self._handlers.get(event.type, []))
            handlers.extend(self._wildcard_handlers)

        if handlers:
            await asyncio.gather(
                *[handler(event) for handler in handlers],
                return_exceptions=True,
            )

    async def clear(self) -> None:
        """Remove all handlers."""
        async with self._lock:
            self._handlers.clear()
            self._wildcard_handlers.clear()


# Global event bus instance
_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the global event bus instance."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def reset_event_bus() -> None:
    """Reset the global event bus (for testing)."""
    global _event_bus
    _event_bus = None
