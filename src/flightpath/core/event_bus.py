"""Event bus for synchronous notification dispatch.

Flight plans publish change and calculation notifications through this bus.
Handlers run immediately, in priority order. A handler subscribed to an
event base class also receives every subclass of it, so a consumer can
listen to all flight plan notifications at once.

Typical usage example:
    from flightpath.core.event_bus import EventBus, EventPriority
    from flightpath.flightplan.events import PlanCalculatedEvent

    bus = EventBus()
    bus.subscribe(PlanCalculatedEvent, redraw_route, EventPriority.LOW)
    plan = FlightPlan(0, calculator, event_bus=bus)
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventPriority(Enum):
    """Priority levels for event handlers, executed CRITICAL first."""

    CRITICAL = 1
    HIGH = 2
    NORMAL = 3
    LOW = 4


@dataclass
class Event:
    """Base class for all events.

    Attributes:
        timestamp: Unix timestamp when the event was created.
    """

    timestamp: float = field(default_factory=time.time, kw_only=True, compare=False)


Handler = Callable[[Any], None]


class EventBus:
    """Central event bus for synchronous event dispatch.

    Examples:
        >>> bus = EventBus()
        >>> bus.subscribe(PlanCalculatedEvent, lambda e: print(e.from_index))
        >>> bus.publish(PlanCalculatedEvent(plan_index=0, from_index=2, generation=1))
        2
    """

    def __init__(self) -> None:
        """Initialize an empty event bus."""
        self._handlers: dict[type[Event], list[tuple[Handler, EventPriority]]] = {}

    def subscribe(
        self,
        event_type: type[Event],
        handler: Handler,
        priority: EventPriority = EventPriority.NORMAL,
    ) -> None:
        """Subscribe a handler to an event type and its subclasses.

        Args:
            event_type: The class of event to subscribe to.
            handler: Callable that accepts the event as its only parameter.
            priority: Priority level for this handler. Defaults to NORMAL.
        """
        handlers = self._handlers.setdefault(event_type, [])
        handlers.append((handler, priority))
        handlers.sort(key=lambda x: x[1].value)

    def unsubscribe(self, event_type: type[Event], handler: Handler) -> None:
        """Unsubscribe a handler from an event type.

        Unknown handlers are ignored.
        """
        if event_type not in self._handlers:
            return

        remaining = [(h, p) for h, p in self._handlers[event_type] if h != handler]
        if remaining:
            self._handlers[event_type] = remaining
        else:
            del self._handlers[event_type]

    def publish(self, event: Event) -> int:
        """Publish an event to all subscribers.

        Handlers registered for the event's class or any of its Event base
        classes are called synchronously in priority order. Exceptions raised
        by a handler propagate to the publisher.

        Args:
            event: The event to publish.

        Returns:
            Number of handlers called.
        """
        matched: list[tuple[Handler, EventPriority]] = []
        for cls in type(event).__mro__:
            if cls in self._handlers:
                matched.extend(self._handlers[cls])
            if cls is Event:
                break

        matched.sort(key=lambda x: x[1].value)
        for handler, _ in matched:
            handler(event)

        return len(matched)

    def clear(self) -> None:
        """Remove all event handlers."""
        self._handlers.clear()

    def get_subscriber_count(self, event_type: type[Event]) -> int:
        """Get the number of handlers subscribed directly to an event type."""
        return len(self._handlers.get(event_type, []))
