"""Event Bus System for Inter-Module Communication.

Business modules (IAM, Users, Matches, Tournaments, ...) never import each
other. They publish domain events on hierarchical topics and subscribe to
the topics they care about. This package provides:

- **Event**: Immutable pydantic model (topic, aggregate, payload, metadata)
- **Topic patterns**: Exact topics, trailing wildcards (``users.*``) and ``*``
- **Async dispatch**: Bounded queue drained by a worker pool; publish never
  waits for handlers
- **Error isolation**: Handler failures are logged and contained
- **Payload contracts**: Per-topic pydantic payload models

## Quick Start

```python
from arena_server.event_bus import Event, EventBus

bus = EventBus()

async def create_profile(event: Event) -> None:
    print(f"Creating profile for {event.aggregate_id}")

bus.subscribe("iam.user.registered", create_profile, owner_module="users")
await bus.start()
bus.publish(Event.create("iam.user.registered", "u1", "User", {"email": "a@b.c"}))
```

One bus lives on the application context (``arena_server.context.AppContext``)
and is passed to every module; there is no global instance.

"""

from .bus import DeliveryResult, DeliveryStatus, EventBus, EventBusStats, OverflowPolicy
from .contracts import PayloadContracts
from .core import (
    EventBusError,
    EventHandler,
    EventQueueFullError,
    HandlerRegistrationError,
    MalformedEventError,
    UnknownTopicError,
)
from .event import Event, EventMetadata
from .subscriptions import Subscription, SubscriptionRegistry
from .topics import MATCH_ALL, module_pattern, topic_matches, validate_pattern

__all__ = [
    "MATCH_ALL",
    "DeliveryResult",
    "DeliveryStatus",
    "Event",
    "EventBus",
    "EventBusError",
    "EventBusStats",
    "EventHandler",
    "EventMetadata",
    "EventQueueFullError",
    "HandlerRegistrationError",
    "MalformedEventError",
    "OverflowPolicy",
    "PayloadContracts",
    "Subscription",
    "SubscriptionRegistry",
    "UnknownTopicError",
    "module_pattern",
    "topic_matches",
    "validate_pattern",
]
