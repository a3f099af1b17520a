"""Analytics module: counts every event on the bus.

Subscribes to ``*``; publishes nothing.
"""

from collections import Counter

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from arena_server.api.dependencies import service
from arena_server.constants import MODULE_ANALYTICS
from arena_server.event_bus import MATCH_ALL, Event
from arena_server.modules.base import Module


class EventCounts(BaseModel):
    total: int
    by_topic: dict[str, int]
    by_module: dict[str, int]
    last_event_at: str | None = None


class AnalyticsService:
    def __init__(self):
        self._by_topic: Counter[str] = Counter()
        self._by_module: Counter[str] = Counter()
        self._last_event_at: str | None = None

    def record(self, event: Event) -> None:
        self._by_topic[event.topic] += 1
        self._by_module[event.module] += 1
        self._last_event_at = event.timestamp.isoformat()

    def counts(self, module_name: str | None = None) -> EventCounts:
        by_topic = dict(self._by_topic)
        by_module = dict(self._by_module)
        if module_name is not None:
            by_topic = {t: c for t, c in by_topic.items() if t.split(".", 1)[0] == module_name}
            by_module = {m: c for m, c in by_module.items() if m == module_name}
        return EventCounts(
            total=sum(by_topic.values()),
            by_topic=by_topic,
            by_module=by_module,
            last_event_at=self._last_event_at,
        )


class AnalyticsModule(Module):
    name = MODULE_ANALYTICS
    version = "0.3.0"
    description = "Event counters"

    def __init__(self, context):
        super().__init__(context)
        self.analytics = AnalyticsService()

    def _register_handlers(self) -> None:
        self.subscribe(MATCH_ALL, self.on_event)

    async def on_event(self, event: Event) -> None:
        self.analytics.record(event)

    async def _initialize(self) -> None:
        self.services.register_singleton(AnalyticsService, self.analytics)

    def _build_router(self) -> APIRouter:
        router = APIRouter()

        @router.get("/events", response_model=EventCounts)
        async def event_counts(
            module: str | None = None,
            analytics: AnalyticsService = Depends(service(AnalyticsService)),
        ) -> EventCounts:
            return analytics.counts(module)

        return router
