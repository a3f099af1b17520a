"""Event model for inter-module communication.

An Event describes something that already happened inside one module. It is
immutable once constructed: the model is frozen, and the bus hands each
handler its own deep copy, so nothing a handler does to the payload is seen
by sibling handlers or by the publisher.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

import arrow
from pydantic import BaseModel, ConfigDict, Field, field_validator

from arena_server.utils.id_generator import generate_short_id


class EventMetadata(BaseModel):
    """Correlation data used to trace a causal chain across modules."""

    model_config = ConfigDict(frozen=True)

    correlation_id: str | None = None
    causation_id: str | None = None
    source_module: str | None = None


class Event(BaseModel):
    """Immutable domain event.

    Attributes:
        topic: Dot-delimited hierarchical name, ``<module>.<entity>.<action>``
        aggregate_id: Identifier of the entity the event concerns
        aggregate_type: Kind of entity, e.g. ``"Match"``
        payload: Topic specific data, never inspected by the bus
        metadata: Optional correlation data
        timestamp: UTC creation instant
        event_id: Short unique id for log correlation and causation chains
    """

    model_config = ConfigDict(frozen=True)

    topic: str
    aggregate_id: str
    aggregate_type: str = ""
    payload: dict[str, Any] = Field(default_factory=dict)
    metadata: EventMetadata = Field(default_factory=EventMetadata)
    timestamp: datetime = Field(default_factory=lambda: arrow.utcnow().datetime)
    event_id: str = Field(default_factory=generate_short_id)

    @field_validator("aggregate_id", mode="before")
    @classmethod
    def coerce_aggregate_id(cls, v: Any) -> Any:
        """Accept UUID and integer ids, store them as strings."""
        if isinstance(v, (UUID, int)) and not isinstance(v, bool):
            return str(v)
        return v

    @classmethod
    def create(
        cls,
        topic: str,
        aggregate_id: str | UUID | int,
        aggregate_type: str = "",
        payload: dict[str, Any] | BaseModel | None = None,
        *,
        source_module: str | None = None,
        correlation_id: str | None = None,
        caused_by: "Event | None" = None,
    ) -> "Event":
        """Build an event, optionally chained to the event that caused it.

        Args:
            topic: Event topic
            aggregate_id: Id of the entity concerned
            aggregate_type: Kind of entity
            payload: Payload as a dict or a pydantic payload model
            source_module: Name of the publishing module
            correlation_id: Explicit correlation id; inherited from
                ``caused_by`` when omitted
            caused_by: Event being handled when this one is published

        Returns:
            The new Event
        """
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(mode="json")

        causation_id = None
        if caused_by is not None:
            causation_id = caused_by.event_id
            if correlation_id is None:
                correlation_id = caused_by.metadata.correlation_id or caused_by.event_id

        return cls(
            topic=topic,
            aggregate_id=aggregate_id,  # type: ignore[arg-type]
            aggregate_type=aggregate_type,
            payload=payload or {},
            metadata=EventMetadata(
                correlation_id=correlation_id,
                causation_id=causation_id,
                source_module=source_module,
            ),
        )

    @property
    def module(self) -> str:
        """Owning module name, the first topic segment."""
        return self.topic.split(".", 1)[0]

    def __str__(self) -> str:
        return f"Event({self.topic}, {self.aggregate_type or 'aggregate'}={self.aggregate_id}, id={self.event_id})"
