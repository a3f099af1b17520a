"""Event Bus Implementation.

This module provides the EventBus class that routes published domain events
to every subscribed handler whose pattern matches the event topic. The bus
is in-process and framework-agnostic; one instance lives on the application
context and is injected into every module.

## Key Features

- **Fire-and-forget publish**: ``publish`` validates, snapshots the matching
  subscriptions and enqueues. It never waits for or fails because of handlers
- **Bounded worker pool**: a fixed number of worker tasks drain a bounded
  queue; a full queue applies the configured overflow policy
- **Error isolation**: a failing handler is logged and counted, siblings and
  the publisher are unaffected
- **Per-handler deadline**: every handler call runs under ``asyncio.timeout``
- **Event isolation**: ``publish`` queues a deep copy of the event, and each
  handler receives its own deep copy of that snapshot
- **Graceful drain**: ``stop`` lets queued and in-flight deliveries finish
  within a grace period before cancelling the workers

## Usage

```python
from arena_server.event_bus import Event, EventBus

bus = EventBus(workers=4, queue_size=1000)

async def notify_followers(event: Event) -> None:
    ...

bus.subscribe("matches.*", notify_followers, owner_module="notifications")
await bus.start()

bus.publish(Event.create("matches.match.created", "m1", "Match", {"sport": "football"}))

# Or dispatch inline and wait for per-handler results:
results = await bus.publish_and_wait(event)

await bus.stop(grace_period=5.0)
```

"""

import asyncio
import inspect
import itertools
import threading
import time
from collections.abc import Callable
from enum import StrEnum
from typing import TYPE_CHECKING, Any, NamedTuple

from loguru import logger
from pydantic import BaseModel

from .core import EventHandler, EventQueueFullError, HandlerRegistrationError, MalformedEventError
from .event import Event
from .subscriptions import Subscription, SubscriptionRegistry

if TYPE_CHECKING:
    from arena_server.services.registry import ServiceRegistry
    from arena_server.settings import Settings

T_Handler = Callable[..., Any]


class OverflowPolicy(StrEnum):
    """What publish does when the dispatch queue is full."""

    DROP = "drop"
    RAISE = "raise"


class DeliveryStatus(StrEnum):
    """Outcome of delivering one event to one handler."""

    SUCCESS = "success"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class DeliveryResult(BaseModel):
    """Result of one handler invocation."""

    model_config = {"use_enum_values": True, "arbitrary_types_allowed": True}

    topic: str
    event_id: str
    subscription_id: str
    owner_module: str
    handler: str
    status: DeliveryStatus
    result: Any = None
    error: str | None = None
    execution_time_ms: float | None = None

    @property
    def ok(self) -> bool:
        return self.status == DeliveryStatus.SUCCESS


class EventBusStats(BaseModel):
    """Counters describing the bus since it was created."""

    published: int = 0
    delivered: int = 0
    failed: int = 0
    timed_out: int = 0
    dropped: int = 0
    in_flight: int = 0
    queued: int = 0
    subscriptions: int = 0
    workers: int = 0
    running: bool = False


class _Delivery(NamedTuple):
    sequence: int
    event: Event
    subscriptions: tuple[Subscription, ...]


class EventBus:
    """In-process event bus with topic pattern subscriptions.

    Example:
        ```python
        bus = EventBus()
        handle = bus.subscribe("users.*", on_user_event, owner_module="analytics")
        bus.publish(Event.create("users.friend.added", "u1", "User"))
        bus.unsubscribe(handle)
        ```
    """

    def __init__(
        self,
        workers: int = 4,
        queue_size: int = 1000,
        overflow_policy: OverflowPolicy | str = OverflowPolicy.DROP,
        handler_timeout: float | None = 30.0,
        isolate_events: bool = True,
        services: "ServiceRegistry | None" = None,
    ) -> None:
        """Initialize a new EventBus instance.

        Args:
            workers: Number of dispatch worker tasks
            queue_size: Capacity of the dispatch queue
            overflow_policy: ``drop`` logs and discards, ``raise`` raises
                EventQueueFullError to the publisher
            handler_timeout: Deadline in seconds for a single handler call,
                None disables it
            isolate_events: If True, each handler receives a deep copy of the event;
                if False, sibling handlers share the snapshot taken at publish time
            services: Registry used to construct class-based handlers
        """
        if workers < 1:
            raise ValueError(f"EventBus needs at least one worker, got {workers}")
        if queue_size < 1:
            raise ValueError(f"EventBus queue size must be positive, got {queue_size}")
        if handler_timeout is not None and handler_timeout <= 0:
            raise ValueError(f"Handler timeout must be positive or None, got {handler_timeout}")

        self._subscriptions = SubscriptionRegistry()
        self._worker_count = workers
        self._queue_size = queue_size
        self._overflow_policy = OverflowPolicy(overflow_policy)
        self._handler_timeout = handler_timeout
        self._isolate_events = isolate_events
        self._services = services

        self._queue: asyncio.Queue[_Delivery] = asyncio.Queue(maxsize=queue_size)
        self._workers: list[asyncio.Task[None]] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue_loop: asyncio.AbstractEventLoop | None = None
        self._sequence = itertools.count(1)
        self._counter_lock = threading.Lock()
        self._stats = EventBusStats(workers=workers)

        logger.debug(
            f"EventBus initialized (workers={workers}, queue_size={queue_size}, "
            f"overflow_policy={self._overflow_policy}, handler_timeout={handler_timeout}, "
            f"isolate_events={isolate_events})"
        )

    @classmethod
    def from_settings(cls, settings: "Settings", services: "ServiceRegistry | None" = None) -> "EventBus":
        """Create a bus configured from application settings."""
        return cls(
            workers=settings.event_workers,
            queue_size=settings.event_queue_size,
            overflow_policy=settings.event_overflow_policy,
            handler_timeout=settings.handler_timeout_seconds,
            isolate_events=settings.isolate_events,
            services=services,
        )

    # Subscriptions

    def subscribe(self, pattern: str, handler: T_Handler, owner_module: str = "unknown") -> Subscription:
        """Register a handler for future events matching a pattern.

        Args:
            pattern: Exact topic, ``<prefix>.*`` or ``*``
            handler: Coroutine function, plain function, EventHandler instance
                or EventHandler subclass
            owner_module: Module registering the handler, used in logs

        Returns:
            Subscription handle usable with ``unsubscribe``

        Raises:
            HandlerRegistrationError: If the pattern is invalid or the handler
                is not callable
        """
        if not callable(handler):
            raise HandlerRegistrationError(f"Handler must be callable: {handler!r}")

        subscription = self._subscriptions.add(pattern, handler, owner_module)
        logger.debug(f"Subscribed {subscription.handler_name} to '{pattern}'")
        return subscription

    def unsubscribe(self, handle: Subscription) -> bool:
        """Remove a subscription. A no-op if it was already removed.

        Returns:
            True if the subscription was removed by this call
        """
        removed = self._subscriptions.remove(handle)
        if removed:
            logger.debug(f"Unsubscribed {handle.handler_name} from '{handle.pattern}'")
        return removed

    def clear_subscriptions(self, owner_module: str | None = None) -> int:
        """Remove every subscription, or those of one module."""
        return self._subscriptions.clear(owner_module)

    def subscriptions(self, owner_module: str | None = None) -> list[Subscription]:
        """Return registered subscriptions, optionally for one module."""
        return self._subscriptions.all(owner_module)

    def get_handler_count(self, topic: str) -> int:
        """Number of handlers a publish on this topic would reach right now."""
        return len(self._subscriptions.match(topic))

    # Publishing

    def publish(self, event: Event) -> None:
        """Publish an event without waiting for handlers (fire-and-forget).

        The matching subscriptions are captured now; handlers subscribed later
        do not see this event. Events published before ``start`` are buffered
        until the workers run. Safe to call from worker threads running sync
        handlers.

        Args:
            event: The event to publish

        Raises:
            MalformedEventError: If the event has no topic or aggregate id
            EventQueueFullError: If the queue is full and the overflow policy
                is ``raise`` (only when called on the event loop thread)
        """
        delivery = self._prepare(event)
        if delivery is None:
            return

        if self._loop is not None and self._loop.is_running() and not self._on_loop_thread():
            self._loop.call_soon_threadsafe(self._enqueue, delivery, False)
            return

        self._enqueue(delivery, self._overflow_policy == OverflowPolicy.RAISE)

    async def publish_async(self, event: Event) -> None:
        """Publish an event, waiting for room in the queue if it is full.

        Only waits for capacity, never for handlers.
        """
        delivery = self._prepare(event)
        if delivery is None:
            return
        await self._queue.put(delivery)
        logger.debug(f"Queued {event} (#{delivery.sequence}) for {len(delivery.subscriptions)} handlers")

    async def publish_and_wait(self, event: Event) -> list[DeliveryResult]:
        """Dispatch an event inline and wait for every handler to complete.

        Handler failures are still contained; they show up as results with
        status ``failed`` or ``timed_out``.

        Returns:
            One DeliveryResult per matching subscription
        """
        delivery = self._prepare(event)
        if delivery is None:
            return []
        return await self._dispatch(delivery)

    def _prepare(self, event: Event) -> _Delivery | None:
        self._validate(event)
        subscriptions = self._subscriptions.match(event.topic)
        self._count("published")

        if not subscriptions:
            logger.debug(f"No handlers subscribed to '{event.topic}'")
            return None

        # Publisher keeps its object; later changes to it never reach handlers
        snapshot = event.model_copy(deep=True)
        return _Delivery(next(self._sequence), snapshot, subscriptions)

    def _enqueue(self, delivery: _Delivery, raise_on_full: bool) -> None:
        try:
            self._queue.put_nowait(delivery)
        except asyncio.QueueFull:
            if raise_on_full:
                raise EventQueueFullError(delivery.event.topic, self._queue_size) from None
            self._count("dropped")
            logger.error(
                f"Event queue full (capacity {self._queue_size}), dropped {delivery.event} "
                f"for {len(delivery.subscriptions)} handlers"
            )
            return
        logger.debug(f"Queued {delivery.event} (#{delivery.sequence}) for {len(delivery.subscriptions)} handlers")

    @staticmethod
    def _validate(event: Any) -> None:
        if not isinstance(event, Event):
            raise MalformedEventError(f"Event must be an Event instance, got: {type(event).__name__}")
        if not isinstance(event.topic, str) or not event.topic.strip():
            raise MalformedEventError(f"Event topic must be a non-empty string, got: {event.topic!r}")
        if event.aggregate_id is None or not str(event.aggregate_id).strip():
            raise MalformedEventError(f"Event '{event.topic}' has no aggregate id")

    # Dispatch

    async def _worker(self, index: int) -> None:
        logger.trace(f"Event bus worker {index} started")
        while True:
            delivery = await self._queue.get()
            try:
                await self._dispatch(delivery)
            except asyncio.CancelledError:
                if _being_cancelled():
                    raise
                logger.error(f"Event bus worker {index} saw a stray cancellation dispatching {delivery.event}")
            except Exception as e:
                # _deliver contains handler errors; anything here is a bus bug
                logger.opt(exception=e).error(f"Event bus worker {index} failed dispatching {delivery.event}: {e}")
            finally:
                self._queue.task_done()

    async def _dispatch(self, delivery: _Delivery) -> list[DeliveryResult]:
        event = delivery.event
        logger.trace(f"Dispatching {event} (#{delivery.sequence}) to {len(delivery.subscriptions)} handlers")

        results = await asyncio.gather(*(self._deliver(subscription, event) for subscription in delivery.subscriptions))

        failed = sum(1 for r in results if not r.ok)
        if failed:
            logger.warning(f"Event {event.topic} ({event.event_id}): {len(results) - failed} successful, {failed} failed handlers")
        else:
            logger.debug(f"Event {event.topic} ({event.event_id}) processed by {len(results)} handlers")
        return list(results)

    async def _deliver(self, subscription: Subscription, event: Event) -> DeliveryResult:
        """Invoke one handler, containing every failure it may raise."""
        handler_event = event.model_copy(deep=True) if self._isolate_events else event
        deadline = asyncio.timeout(self._handler_timeout)
        start = time.perf_counter()
        self._count("in_flight")

        def result(status: DeliveryStatus, value: Any = None, error: str | None = None) -> DeliveryResult:
            return DeliveryResult(
                topic=event.topic,
                event_id=event.event_id,
                subscription_id=subscription.subscription_id,
                owner_module=subscription.owner_module,
                handler=subscription.handler_name,
                status=status,
                result=value,
                error=error,
                execution_time_ms=(time.perf_counter() - start) * 1000,
            )

        try:
            async with deadline:
                value = await self._invoke(subscription.handler, handler_event)
        except asyncio.CancelledError as e:
            # Only a cancellation of the dispatching task itself propagates
            if _being_cancelled():
                raise
            self._count("failed")
            logger.error(
                f"Handler {subscription.handler_name} was cancelled on {event.topic} "
                f"(aggregate {event.aggregate_id}, event {event.event_id})"
            )
            return result(DeliveryStatus.FAILED, error=f"{type(e).__name__}: handler cancelled")
        except Exception as e:
            if isinstance(e, TimeoutError) and deadline.expired():
                self._count("timed_out")
                logger.error(
                    f"Handler {subscription.handler_name} timed out after {self._handler_timeout}s "
                    f"on {event.topic} (aggregate {event.aggregate_id}, event {event.event_id})"
                )
                return result(DeliveryStatus.TIMED_OUT, error=f"timed out after {self._handler_timeout}s")

            self._count("failed")
            logger.opt(exception=e).error(
                f"Handler {subscription.handler_name} failed on {event.topic} "
                f"(aggregate {event.aggregate_id}, event {event.event_id}): {e}"
            )
            return result(DeliveryStatus.FAILED, error=f"{type(e).__name__}: {e}")
        finally:
            self._count("in_flight", -1)

        self._count("delivered")
        logger.trace(f"Handler {subscription.handler_name} completed {event.topic}")
        return result(DeliveryStatus.SUCCESS, value)

    async def _invoke(self, handler: T_Handler, event: Event) -> Any:
        if inspect.isclass(handler):
            handler = self._instantiate_handler_class(handler)

        if _is_async_callable(handler):
            return await handler(event)

        value = await asyncio.to_thread(handler, event)
        if inspect.isawaitable(value):
            return await value
        return value

    def _instantiate_handler_class(self, handler_class: type) -> Any:
        """Instantiate a handler class, injecting constructor dependencies.

        Parameters are resolved by type annotation from the service registry.
        Parameters that cannot be resolved are left to their defaults.
        """
        parameters = list(inspect.signature(handler_class.__init__).parameters.values())[1:]
        if not parameters or self._services is None:
            return handler_class()

        kwargs = {}
        for param in parameters:
            if param.annotation is inspect.Parameter.empty or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            try:
                kwargs[param.name] = self._services.get(param.annotation)
                logger.trace(f"Injected '{param.name}' into handler class {handler_class.__name__}")
            except (KeyError, AttributeError):
                logger.trace(f"Service '{param.annotation}' not found for handler class {handler_class.__name__}")

        return handler_class(**kwargs)

    # Lifecycle

    async def start(self) -> None:
        """Start the dispatch workers on the running event loop.

        A bus stopped on one event loop can be started again on another;
        deliveries buffered meanwhile move to a queue owned by the new loop.
        """
        if self.is_running:
            return
        loop = asyncio.get_running_loop()
        if self._queue_loop is not None and self._queue_loop is not loop:
            self._queue = self._rebuild_queue()
        self._queue_loop = loop
        self._loop = loop
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"event-bus-worker-{i}") for i in range(self._worker_count)
        ]
        for task in self._workers:
            task.add_done_callback(self._on_worker_done)
        logger.info(f"Event bus started with {self._worker_count} workers ({self._queue.qsize()} events buffered)")

    def _rebuild_queue(self) -> "asyncio.Queue[_Delivery]":
        queue: asyncio.Queue[_Delivery] = asyncio.Queue(maxsize=self._queue_size)
        while not self._queue.empty():
            queue.put_nowait(self._queue.get_nowait())
        logger.debug(f"Event bus queue moved to a new event loop ({queue.qsize()} deliveries carried over)")
        return queue

    def _on_worker_done(self, task: "asyncio.Task[None]") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.opt(exception=error).error(f"Event bus worker {task.get_name()} stopped unexpectedly: {error}")

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait until every queued delivery has been processed.

        Args:
            timeout: Maximum seconds to wait, None waits indefinitely

        Returns:
            True if the queue drained, False on timeout or when the workers
            are not running and events are still queued
        """
        if not self._workers:
            return self._queue.empty()
        try:
            async with asyncio.timeout(timeout):
                await self._queue.join()
        except TimeoutError:
            return False
        return True

    async def stop(self, grace_period: float | None = 10.0) -> None:
        """Drain within a grace period, then cancel the workers."""
        if not self._workers:
            return

        drained = await self.drain(grace_period)
        if not drained:
            logger.warning(
                f"Event bus grace period ({grace_period}s) elapsed with {self._queue.qsize()} queued "
                f"and {self._stats.in_flight} in-flight deliveries; cancelling"
            )

        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._loop = None
        logger.info("Event bus stopped")

    @property
    def is_running(self) -> bool:
        """True while at least one dispatch worker is alive."""
        return any(not task.done() for task in self._workers)

    @property
    def stats(self) -> EventBusStats:
        """Snapshot of the bus counters."""
        with self._counter_lock:
            snapshot = self._stats.model_copy()
        snapshot.queued = self._queue.qsize()
        snapshot.subscriptions = len(self._subscriptions)
        snapshot.running = self.is_running
        return snapshot

    def _count(self, field: str, delta: int = 1) -> None:
        with self._counter_lock:
            setattr(self._stats, field, getattr(self._stats, field) + delta)

    def _on_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False


def _being_cancelled() -> bool:
    """Whether cancellation was requested for the current task."""
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0


def _is_async_callable(handler: Any) -> bool:
    if inspect.iscoroutinefunction(handler):
        return True
    if isinstance(handler, EventHandler):
        return inspect.iscoroutinefunction(handler.handle)
    return inspect.iscoroutinefunction(getattr(handler, "__call__", None))
