"""Core Event Bus Components.

This module contains the fundamental abstractions for the event bus system.
They are framework-agnostic and shared by the bus, the subscription registry
and the business modules that subscribe handlers.

## Key Components

- **EventHandler**: Base class for dependency-injectable event handlers
- **EventBusError**: Base exception for all event bus related errors
- **HandlerRegistrationError**: Raised when a subscription is rejected
- **MalformedEventError**: Raised when publish is called with an invalid event
- **EventQueueFullError**: Raised when the dispatch queue is full and the
  overflow policy is ``raise``
- **UnknownTopicError**: Raised when no payload contract exists for a topic

## Usage Example with Dependency Injection

```python
from arena_server.event_bus.core import EventHandler
from arena_server.event_bus.event import Event

class MatchFinishedHandler(EventHandler):
    def __init__(self, standings_service: StandingsService):
        self.standings_service = standings_service

    async def handle(self, event: Event) -> None:
        await self.standings_service.record(event.aggregate_id, event.payload)

# Subscribing the class (not an instance) makes the bus instantiate it per
# delivery, injecting StandingsService from the context's ServiceRegistry.
bus.subscribe("matches.match.finished", MatchFinishedHandler, owner_module="tournaments")
```

"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel


class EventHandler[T_Event: BaseModel](ABC):
    """Base class for dependency-injectable event handlers.

    Handlers inherit from this class and implement ``handle``. ``handle`` may
    be a coroutine function or a plain function; plain functions are run in a
    worker thread so they never block the event loop.
    """

    @abstractmethod
    def handle(self, event: T_Event) -> Any:
        """Handle the event.

        Args:
            event: The event to handle.

        Returns:
            Optional result. The publisher never sees it; it only shows up in
            ``DeliveryResult.result`` for ``publish_and_wait`` callers.

        Raises:
            Any exception. Exceptions are caught at the dispatch boundary,
            logged and reported as a failed delivery.
        """

    def __call__(self, event: T_Event) -> Any:
        """Make the handler callable so instances can be subscribed directly."""
        return self.handle(event)


class EventBusError(Exception):
    """Base exception for all event bus related errors.

    Use this for catching any event bus related error:
        ```python
        try:
            bus.publish(event)
        except EventBusError as e:
            logger.error(f"Event bus error: {e}")
        ```
    """


class HandlerRegistrationError(EventBusError):
    """Raised when handler registration fails.

    This occurs when:
    - The pattern is empty or has empty segments
    - The wildcard is used anywhere but as the whole final segment
    - The handler is not callable
    """


class MalformedEventError(EventBusError):
    """Raised synchronously by publish for programmer errors.

    This occurs when:
    - The object published is not an Event instance
    - The topic is empty
    - The aggregate id is empty
    """


class EventQueueFullError(EventBusError):
    """Raised by publish when the dispatch queue is full under the ``raise`` policy."""

    def __init__(self, topic: str, capacity: int):
        self.topic = topic
        self.capacity = capacity
        super().__init__(f"Event queue full (capacity {capacity}), cannot publish '{topic}'")


class UnknownTopicError(EventBusError):
    """Raised when a payload contract is requested for an undeclared topic."""

    def __init__(self, topic: str):
        self.topic = topic
        super().__init__(f"No payload contract declared for topic '{topic}'")
