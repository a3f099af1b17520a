"""Tests for the event bus system."""

import asyncio
import threading
import time

import pytest
import pytest_asyncio
from pydantic import BaseModel

from arena_server.event_bus import (
    DeliveryStatus,
    Event,
    EventBus,
    EventHandler,
    EventQueueFullError,
    HandlerRegistrationError,
    MalformedEventError,
)
from arena_server.services.registry import ServiceRegistry


def make_event(topic: str = "matches.match.created", aggregate_id: str = "m1", **payload) -> Event:
    return Event.create(topic, aggregate_id, "Match", payload or {"sport": "football"})


class Recorder:
    """Async handler recording every event it receives."""

    def __init__(self, name: str = "recorder", log: list | None = None):
        self.name = name
        self.events: list[Event] = []
        self.log = log if log is not None else []

    async def __call__(self, event: Event) -> str:
        self.events.append(event)
        self.log.append((self.name, event.topic))
        return f"{self.name}: {event.topic}"

    @property
    def topics(self) -> list[str]:
        return [e.topic for e in self.events]


class Greeter:
    """Service injected into class-based handlers."""

    def greet(self, name: str) -> str:
        return f"hello {name}"


class GreetingHandler(EventHandler[Event]):
    """Class-based handler with an injected dependency."""

    def __init__(self, greeter: Greeter):
        self.greeter = greeter

    async def handle(self, event: Event) -> str:
        return self.greeter.greet(event.aggregate_id)


class SyncSampleHandler(EventHandler[Event]):
    """Handler with a plain (non-async) handle method."""

    def __init__(self):
        self.threads: list[int] = []

    def handle(self, event: Event) -> str:
        self.threads.append(threading.get_ident())
        return "sync"


@pytest_asyncio.fixture
async def bus():
    """Running bus with short deadlines, stopped after the test."""
    event_bus = EventBus(workers=4, queue_size=100, handler_timeout=1.0)
    await event_bus.start()
    yield event_bus
    await event_bus.stop(grace_period=1.0)


class TestSubscriptions:
    """Subscribe, unsubscribe and pattern validation."""

    def test_subscribe_returns_handle(self):
        bus = EventBus()
        handle = bus.subscribe("users.*", Recorder(), owner_module="notifications")

        assert handle.pattern == "users.*"
        assert handle.owner_module == "notifications"
        assert bus.get_handler_count("users.friend.added") == 1
        assert bus.get_handler_count("iam.user.registered") == 0

    def test_unsubscribe_is_idempotent(self):
        bus = EventBus()
        handle = bus.subscribe("users.profile.created", Recorder())

        assert bus.unsubscribe(handle) is True
        assert bus.unsubscribe(handle) is False
        assert bus.get_handler_count("users.profile.created") == 0

    @pytest.mark.parametrize("pattern", ["", "   ", "users*", "users.*.added", "*.created", "users..created", "users."])
    def test_invalid_patterns_rejected(self, pattern: str):
        bus = EventBus()
        with pytest.raises(HandlerRegistrationError):
            bus.subscribe(pattern, Recorder())

    def test_non_callable_handler_rejected(self):
        bus = EventBus()
        with pytest.raises(HandlerRegistrationError):
            bus.subscribe("users.*", "not a handler")  # type: ignore[arg-type]

    def test_clear_subscriptions_by_owner(self):
        bus = EventBus()
        bus.subscribe("users.*", Recorder(), owner_module="notifications")
        bus.subscribe("*", Recorder(), owner_module="analytics")

        assert bus.clear_subscriptions("notifications") == 1
        assert [s.owner_module for s in bus.subscriptions()] == ["analytics"]

    def test_invalid_constructor_arguments(self):
        with pytest.raises(ValueError):
            EventBus(workers=0)
        with pytest.raises(ValueError):
            EventBus(queue_size=0)
        with pytest.raises(ValueError):
            EventBus(handler_timeout=0)


class TestPublish:
    """Fire-and-forget publish and delivery."""

    @pytest.mark.asyncio
    async def test_fan_out_to_exact_and_wildcard_subscribers(self, bus: EventBus):
        notifications = Recorder("notifications")
        tournaments = Recorder("tournaments")
        other = Recorder("other")
        bus.subscribe("matches.*", notifications, owner_module="notifications")
        bus.subscribe("matches.match.created", tournaments, owner_module="tournaments")
        bus.subscribe("tournaments.*", other, owner_module="other")

        bus.publish(make_event("matches.match.created"))
        assert await bus.drain(timeout=1.0)

        assert notifications.topics == ["matches.match.created"]
        assert tournaments.topics == ["matches.match.created"]
        assert other.topics == []

    @pytest.mark.asyncio
    async def test_wildcard_respects_segment_boundary(self, bus: EventBus):
        users = Recorder()
        bus.subscribe("users.*", users)

        bus.publish(make_event("users.friend.added"))
        bus.publish(make_event("usersx.foo"))
        bus.publish(make_event("users"))
        assert await bus.drain(timeout=1.0)

        assert users.topics == ["users.friend.added"]

    @pytest.mark.asyncio
    async def test_match_all_receives_everything(self, bus: EventBus):
        analytics = Recorder()
        bus.subscribe("*", analytics, owner_module="analytics")

        for topic in ("iam.user.registered", "chat.message.sent", "ai.summary.generated"):
            bus.publish(make_event(topic))
        assert await bus.drain(timeout=1.0)

        assert sorted(analytics.topics) == ["ai.summary.generated", "chat.message.sent", "iam.user.registered"]

    @pytest.mark.asyncio
    async def test_publish_without_subscribers_is_noop(self, bus: EventBus):
        bus.publish(make_event("venues.venue.created"))
        assert await bus.drain(timeout=1.0)
        assert bus.stats.published == 1
        assert bus.stats.delivered == 0

    @pytest.mark.asyncio
    async def test_publish_does_not_wait_for_handlers(self, bus: EventBus):
        release = asyncio.Event()

        async def blocked(_event: Event) -> None:
            await release.wait()

        bus.subscribe("matches.*", blocked)
        start = time.perf_counter()
        bus.publish(make_event())
        assert time.perf_counter() - start < 0.1

        release.set()
        assert await bus.drain(timeout=1.0)

    @pytest.mark.asyncio
    async def test_handler_failure_is_isolated(self, bus: EventBus):
        good = Recorder()

        async def failing(_event: Event) -> None:
            raise ValueError("boom")

        bus.subscribe("matches.*", failing, owner_module="broken")
        bus.subscribe("matches.*", good, owner_module="good")

        bus.publish(make_event())
        assert await bus.drain(timeout=1.0)

        assert good.topics == ["matches.match.created"]
        assert bus.stats.failed == 1
        assert bus.stats.delivered == 1

    @pytest.mark.asyncio
    async def test_single_worker_preserves_publish_order(self):
        bus = EventBus(workers=1)
        recorder = Recorder()
        bus.subscribe("matches.score.updated", recorder)
        await bus.start()

        for i in range(10):
            bus.publish(make_event("matches.score.updated", aggregate_id="m1", home_score=i, away_score=0))
        assert await bus.drain(timeout=1.0)
        await bus.stop()

        assert [e.payload["home_score"] for e in recorder.events] == list(range(10))

    @pytest.mark.asyncio
    async def test_subscriptions_snapshot_at_publish_time(self):
        bus = EventBus()
        early = Recorder("early")
        late = Recorder("late")
        bus.subscribe("iam.user.registered", early)

        bus.publish(make_event("iam.user.registered"))
        bus.subscribe("iam.user.registered", late)
        await bus.start()
        assert await bus.drain(timeout=1.0)
        await bus.stop()

        assert early.topics == ["iam.user.registered"]
        assert late.topics == []

    @pytest.mark.asyncio
    async def test_unsubscribed_handler_not_invoked_for_later_publishes(self, bus: EventBus):
        recorder = Recorder()
        handle = bus.subscribe("users.*", recorder)
        bus.publish(make_event("users.profile.created"))
        assert await bus.drain(timeout=1.0)

        bus.unsubscribe(handle)
        bus.publish(make_event("users.profile.updated"))
        assert await bus.drain(timeout=1.0)

        assert recorder.topics == ["users.profile.created"]

    @pytest.mark.asyncio
    async def test_events_published_before_start_are_buffered(self):
        bus = EventBus()
        recorder = Recorder()
        bus.subscribe("iam.*", recorder)

        bus.publish(make_event("iam.user.registered"))
        await asyncio.sleep(0.01)
        assert recorder.topics == []
        assert bus.stats.queued == 1

        await bus.start()
        assert await bus.drain(timeout=1.0)
        await bus.stop()
        assert recorder.topics == ["iam.user.registered"]

    @pytest.mark.asyncio
    async def test_handler_can_publish_follow_up_event(self, bus: EventBus):
        recorder = Recorder()

        async def create_profile(event: Event) -> None:
            bus.publish(Event.create("users.profile.created", event.aggregate_id, "Profile", caused_by=event))

        bus.subscribe("iam.user.registered", create_profile, owner_module="users")
        bus.subscribe("users.profile.created", recorder, owner_module="notifications")

        registered = make_event("iam.user.registered", aggregate_id="u1")
        bus.publish(registered)
        assert await bus.drain(timeout=1.0)

        assert recorder.topics == ["users.profile.created"]
        follow_up = recorder.events[0]
        assert follow_up.metadata.causation_id == registered.event_id
        assert follow_up.metadata.correlation_id == registered.event_id


class TestMalformedEvents:
    """Programmer errors are raised synchronously from publish."""

    def test_empty_topic(self):
        bus = EventBus()
        with pytest.raises(MalformedEventError):
            bus.publish(Event(topic="", aggregate_id="x"))

    def test_empty_aggregate_id(self):
        bus = EventBus()
        with pytest.raises(MalformedEventError):
            bus.publish(Event(topic="users.profile.created", aggregate_id="  "))

    def test_not_an_event(self):
        bus = EventBus()
        with pytest.raises(MalformedEventError):
            bus.publish({"topic": "users.profile.created"})  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_publish_and_wait_validates_too(self):
        bus = EventBus()
        with pytest.raises(MalformedEventError):
            await bus.publish_and_wait(Event(topic="", aggregate_id="x"))


class TestPublishAndWait:
    """Inline dispatch with per-handler results."""

    @pytest.mark.asyncio
    async def test_results_per_handler(self):
        bus = EventBus()
        bus.subscribe("matches.*", Recorder("a"), owner_module="a")
        bus.subscribe("matches.match.created", Recorder("b"), owner_module="b")

        results = await bus.publish_and_wait(make_event())

        assert [r.owner_module for r in results] == ["a", "b"]
        assert all(r.ok for r in results)
        assert results[0].result == "a: matches.match.created"

    @pytest.mark.asyncio
    async def test_no_handlers_returns_empty_list(self):
        bus = EventBus()
        assert await bus.publish_and_wait(make_event()) == []

    @pytest.mark.asyncio
    async def test_failure_reported_not_raised(self):
        bus = EventBus()

        async def failing(_event: Event) -> None:
            raise RuntimeError("handler exploded")

        bus.subscribe("matches.*", failing)
        results = await bus.publish_and_wait(make_event())

        assert results[0].status == DeliveryStatus.FAILED
        assert "handler exploded" in results[0].error

    @pytest.mark.asyncio
    async def test_handlers_run_concurrently(self):
        bus = EventBus()

        async def slow(_event: Event) -> None:
            await asyncio.sleep(0.1)

        for _ in range(3):
            bus.subscribe("matches.*", slow)

        start = time.perf_counter()
        await bus.publish_and_wait(make_event())
        assert time.perf_counter() - start < 0.25


class TestHandlerTimeout:
    """Per-handler deadline."""

    @pytest.mark.asyncio
    async def test_slow_handler_times_out(self):
        bus = EventBus(handler_timeout=0.05)
        fast = Recorder()

        async def stuck(_event: Event) -> None:
            await asyncio.sleep(5)

        bus.subscribe("matches.*", stuck, owner_module="stuck")
        bus.subscribe("matches.*", fast, owner_module="fast")

        results = await bus.publish_and_wait(make_event())

        statuses = {r.owner_module: r.status for r in results}
        assert statuses == {"stuck": DeliveryStatus.TIMED_OUT, "fast": DeliveryStatus.SUCCESS}
        assert bus.stats.timed_out == 1
        assert fast.topics == ["matches.match.created"]

    @pytest.mark.asyncio
    async def test_timeout_error_raised_by_handler_is_a_failure(self):
        bus = EventBus(handler_timeout=5.0)

        async def raises_timeout(_event: Event) -> None:
            raise TimeoutError("upstream timed out")

        bus.subscribe("matches.*", raises_timeout)
        results = await bus.publish_and_wait(make_event())

        assert results[0].status == DeliveryStatus.FAILED

    @pytest.mark.asyncio
    async def test_no_deadline(self):
        bus = EventBus(handler_timeout=None)

        async def slowish(_event: Event) -> str:
            await asyncio.sleep(0.05)
            return "done"

        bus.subscribe("matches.*", slowish)
        results = await bus.publish_and_wait(make_event())
        assert results[0].result == "done"


class TestOverflow:
    """Bounded queue behavior."""

    def test_drop_policy_discards_and_counts(self):
        bus = EventBus(queue_size=2, overflow_policy="drop")
        bus.subscribe("matches.*", Recorder())

        for _ in range(3):
            bus.publish(make_event())

        stats = bus.stats
        assert stats.queued == 2
        assert stats.dropped == 1

    def test_raise_policy_raises_to_publisher(self):
        bus = EventBus(queue_size=1, overflow_policy="raise")
        bus.subscribe("matches.*", Recorder())

        bus.publish(make_event())
        with pytest.raises(EventQueueFullError) as exc_info:
            bus.publish(make_event())
        assert exc_info.value.topic == "matches.match.created"

    @pytest.mark.asyncio
    async def test_publish_async_waits_for_capacity(self):
        bus = EventBus(workers=1, queue_size=1)
        recorder = Recorder()
        bus.subscribe("matches.*", recorder)
        bus.publish(make_event(aggregate_id="m1"))

        pending = asyncio.create_task(bus.publish_async(make_event(aggregate_id="m2")))
        await asyncio.sleep(0.01)
        assert not pending.done()

        await bus.start()
        await asyncio.wait_for(pending, timeout=1.0)
        assert await bus.drain(timeout=1.0)
        await bus.stop()
        assert [e.aggregate_id for e in recorder.events] == ["m1", "m2"]


class TestIsolation:
    """Handlers never see each other's mutations."""

    @pytest.mark.asyncio
    async def test_each_handler_gets_its_own_copy(self):
        bus = EventBus()
        seen: list[dict] = []

        async def mutating(event: Event) -> None:
            event.payload["sport"] = "mutated"
            event.payload["extra"] = True

        async def reading(event: Event) -> None:
            await asyncio.sleep(0.01)
            seen.append(dict(event.payload))

        bus.subscribe("matches.*", mutating)
        bus.subscribe("matches.*", reading)

        event = make_event()
        await bus.publish_and_wait(event)

        assert seen == [{"sport": "football"}]
        assert event.payload == {"sport": "football"}

    @pytest.mark.asyncio
    async def test_isolation_can_be_disabled(self):
        bus = EventBus(isolate_events=False)
        received: list[Event] = []

        async def keep(event: Event) -> None:
            received.append(event)

        bus.subscribe("matches.*", keep)
        bus.subscribe("matches.*", keep)
        event = make_event()
        await bus.publish_and_wait(event)

        assert received[0] is received[1]
        assert received[0] is not event
        assert received[0].event_id == event.event_id

    @pytest.mark.asyncio
    async def test_publisher_changes_after_publish_are_not_delivered(self, bus: EventBus):
        recorder = Recorder()
        bus.subscribe("matches.*", recorder)

        event = make_event()
        bus.publish(event)
        event.payload["sport"] = "changed"
        assert await bus.drain(timeout=1.0)

        assert [e.payload for e in recorder.events] == [{"sport": "football"}]

    @pytest.mark.asyncio
    async def test_publisher_changes_are_not_shared_without_isolation(self):
        bus = EventBus(isolate_events=False)
        recorder = Recorder()
        bus.subscribe("matches.*", recorder)

        event = make_event()
        bus.publish(event)
        event.payload["sport"] = "changed"
        await bus.start()
        assert await bus.drain(timeout=1.0)
        await bus.stop()

        assert recorder.events[0].payload == {"sport": "football"}

    def test_events_are_frozen(self):
        event = make_event()
        with pytest.raises(ValueError):
            event.topic = "other.topic"  # type: ignore[misc]


class TestHandlerKinds:
    """Async functions, sync functions, instances and DI-constructed classes."""

    @pytest.mark.asyncio
    async def test_sync_function_runs_off_the_loop_thread(self):
        bus = EventBus()
        threads: list[int] = []

        def sync_handler(_event: Event) -> str:
            threads.append(threading.get_ident())
            return "sync result"

        bus.subscribe("matches.*", sync_handler)
        results = await bus.publish_and_wait(make_event())

        assert results[0].result == "sync result"
        assert threads and threads[0] != threading.get_ident()

    @pytest.mark.asyncio
    async def test_sync_handler_instance(self):
        bus = EventBus()
        handler = SyncSampleHandler()
        bus.subscribe("matches.*", handler)

        results = await bus.publish_and_wait(make_event())

        assert results[0].result == "sync"
        assert handler.threads[0] != threading.get_ident()

    @pytest.mark.asyncio
    async def test_sync_handler_can_publish_from_worker_thread(self, bus: EventBus):
        recorder = Recorder()

        def forward(event: Event) -> None:
            bus.publish(Event.create("notifications.notification.created", "n1", "Notification", caused_by=event))

        bus.subscribe("chat.message.sent", forward, owner_module="notifications")
        bus.subscribe("notifications.*", recorder, owner_module="analytics")

        bus.publish(make_event("chat.message.sent", aggregate_id="room1"))
        assert await bus.drain(timeout=1.0)

        assert recorder.topics == ["notifications.notification.created"]

    @pytest.mark.asyncio
    async def test_class_handler_gets_services_injected(self):
        services = ServiceRegistry()
        services.register_singleton(Greeter, Greeter())
        bus = EventBus(services=services)
        bus.subscribe("iam.user.registered", GreetingHandler, owner_module="users")

        results = await bus.publish_and_wait(make_event("iam.user.registered", aggregate_id="ana"))

        assert results[0].ok
        assert results[0].result == "hello ana"

    @pytest.mark.asyncio
    async def test_class_handler_with_missing_service_fails_in_isolation(self):
        bus = EventBus(services=ServiceRegistry())
        bus.subscribe("iam.user.registered", GreetingHandler, owner_module="users")

        results = await bus.publish_and_wait(make_event("iam.user.registered"))

        assert results[0].status == DeliveryStatus.FAILED


class TestLifecycle:
    """Start, drain and stop."""

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        bus = EventBus(workers=2)
        await bus.start()
        await bus.start()
        assert bus.stats.workers == 2
        assert bus.is_running
        await bus.stop()
        assert not bus.is_running

    @pytest.mark.asyncio
    async def test_stop_lets_in_flight_handlers_finish(self):
        bus = EventBus()
        finished: list[str] = []

        async def slow(event: Event) -> None:
            await asyncio.sleep(0.05)
            finished.append(event.aggregate_id)

        bus.subscribe("matches.*", slow)
        await bus.start()
        for i in range(5):
            bus.publish(make_event(aggregate_id=f"m{i}"))

        await bus.stop(grace_period=2.0)

        assert sorted(finished) == [f"m{i}" for i in range(5)]
        assert bus.stats.in_flight == 0

    @pytest.mark.asyncio
    async def test_stop_cancels_after_grace_period(self):
        bus = EventBus(handler_timeout=None)

        async def forever(_event: Event) -> None:
            await asyncio.sleep(60)

        bus.subscribe("matches.*", forever)
        await bus.start()
        bus.publish(make_event())
        await asyncio.sleep(0.01)

        start = time.perf_counter()
        await bus.stop(grace_period=0.05)
        assert time.perf_counter() - start < 1.0
        assert not bus.is_running

    @pytest.mark.asyncio
    async def test_cancelled_handler_does_not_stop_the_worker(self):
        bus = EventBus(workers=1, handler_timeout=1.0)
        recorder = Recorder()

        async def awaits_cancelled_future(_event: Event) -> None:
            future = asyncio.get_running_loop().create_future()
            future.cancel()
            await future

        bus.subscribe("matches.match.created", awaits_cancelled_future)
        bus.subscribe("matches.match.finished", recorder)
        await bus.start()

        bus.publish(make_event("matches.match.created"))
        bus.publish(make_event("matches.match.finished"))

        assert await bus.drain(timeout=1.0)
        assert recorder.topics == ["matches.match.finished"]
        assert bus.is_running
        assert bus.stats.failed == 1
        await bus.stop()

    @pytest.mark.asyncio
    async def test_cancelled_handler_reported_as_failed(self):
        bus = EventBus()
        recorder = Recorder()

        async def awaits_cancelled_future(_event: Event) -> None:
            future = asyncio.get_running_loop().create_future()
            future.cancel()
            await future

        bus.subscribe("matches.*", awaits_cancelled_future)
        bus.subscribe("matches.*", recorder)

        results = await bus.publish_and_wait(make_event())

        assert sorted(r.status for r in results) == [DeliveryStatus.FAILED, DeliveryStatus.SUCCESS]
        assert len(recorder.events) == 1

    @pytest.mark.asyncio
    async def test_stop_still_cancels_workers_blocked_in_handlers(self):
        bus = EventBus(workers=1, handler_timeout=None)

        async def forever(_event: Event) -> None:
            await asyncio.sleep(60)

        bus.subscribe("matches.*", forever)
        await bus.start()
        bus.publish(make_event())
        await asyncio.sleep(0.01)

        await bus.stop(grace_period=0.01)

        assert not bus.is_running

    @pytest.mark.asyncio
    async def test_dead_workers_are_not_reported_running(self):
        bus = EventBus(workers=2)
        await bus.start()

        for task in list(bus._workers):
            task.cancel()
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert not bus.is_running
        assert bus.stats.running is False

    def test_restart_on_a_new_event_loop(self):
        bus = EventBus(workers=1)
        recorder = Recorder()
        bus.subscribe("matches.*", recorder)

        async def run_once(aggregate_id: str) -> bool:
            await bus.start()
            bus.publish(make_event(aggregate_id=aggregate_id))
            drained = await bus.drain(timeout=1.0)
            await bus.stop()
            return drained

        assert asyncio.run(run_once("m1"))
        bus.publish(make_event(aggregate_id="m2"))
        assert asyncio.run(run_once("m3"))

        assert [e.aggregate_id for e in recorder.events] == ["m1", "m2", "m3"]
        assert not bus.is_running

    @pytest.mark.asyncio
    async def test_drain_without_workers_reports_pending(self):
        bus = EventBus()
        bus.subscribe("matches.*", Recorder())
        assert await bus.drain(timeout=0.01) is True

        bus.publish(make_event())
        assert await bus.drain(timeout=0.01) is False


class PayloadCheck(BaseModel):
    sport: str


def test_event_create_accepts_payload_model():
    event = Event.create("matches.match.created", 42, "Match", PayloadCheck(sport="tennis"), source_module="matches")

    assert event.aggregate_id == "42"
    assert event.payload == {"sport": "tennis"}
    assert event.module == "matches"
    assert event.metadata.source_module == "matches"
    assert event.metadata.causation_id is None
