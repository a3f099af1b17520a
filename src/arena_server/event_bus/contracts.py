"""Per-topic payload contracts.

The bus never looks at payloads. Modules declare, as part of their public
contract, which pydantic model describes the payload of each topic they
publish. Subscribers decode through the contracts instead of poking at raw
dicts:

```python
contracts = PayloadContracts()
contracts.declare("matches.match.created", MatchCreatedPayload)

async def on_match_created(event: Event) -> None:
    payload = contracts.decode(event)  # MatchCreatedPayload
```
"""

from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel

from .core import EventBusError, UnknownTopicError
from .event import Event

T_Payload = TypeVar("T_Payload", bound=BaseModel)


class PayloadContracts:
    """Mapping from topic to payload model."""

    def __init__(self):
        self._models: dict[str, type[BaseModel]] = {}

    def declare(self, topic: str, model: type[BaseModel]) -> None:
        """Declare the payload model of a topic.

        Raises:
            EventBusError: If the topic already has a different model
        """
        existing = self._models.get(topic)
        if existing is not None and existing is not model:
            raise EventBusError(f"Topic '{topic}' already declares payload {existing.__name__}, not {model.__name__}")
        self._models[topic] = model
        logger.trace(f"Declared payload {model.__name__} for '{topic}'")

    def model_for(self, topic: str) -> type[BaseModel]:
        """Return the payload model of a topic.

        Raises:
            UnknownTopicError: If nothing was declared for the topic
        """
        try:
            return self._models[topic]
        except KeyError:
            raise UnknownTopicError(topic) from None

    def decode(self, event: Event) -> Any:
        """Validate an event payload against its declared model."""
        return self.model_for(event.topic).model_validate(event.payload)

    def decode_as(self, event: Event, model: type[T_Payload]) -> T_Payload:
        """Validate an event payload against an explicit model."""
        return model.model_validate(event.payload)

    def topics(self, module_name: str | None = None) -> list[str]:
        """Declared topics, optionally only those owned by one module."""
        topics = sorted(self._models)
        if module_name is not None:
            topics = [t for t in topics if t.split(".", 1)[0] == module_name]
        return topics

    def __contains__(self, topic: object) -> bool:
        return topic in self._models

    def __len__(self) -> int:
        return len(self._models)
