"""Base abstractions for business modules.

A module is an independently owned unit of business functionality: it has a
name, a version, an HTTP mount point, a set of modules it depends on, event
handlers it wires into the bus and an asynchronous initialization routine.

Subclasses declare identity as class attributes and override the protected
hooks; the public methods enforce the lifecycle order:

    register_event_handlers()  ->  await initialize()  ->  router()

Typical module:

    class MatchesModule(Module):
        name = "matches"
        depends_on = ("users", "venues")
        publishes = {"matches.match.created": MatchCreatedPayload}

        def _register_handlers(self) -> None:
            self.subscribe("venues.venue.created", self._on_venue_created)

        async def _initialize(self) -> None:
            self.services.register_singleton(MatchService, MatchService(self))

        def _build_router(self) -> APIRouter:
            return build_matches_router(self)
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar

from fastapi import APIRouter
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from arena_server.event_bus import Event, Subscription
from arena_server.exceptions import ConfigurationError, ModuleLifecycleError

if TYPE_CHECKING:
    from arena_server.context import AppContext


class ModuleState(StrEnum):
    """Lifecycle state of a single module."""

    CREATED = "created"
    HANDLERS_REGISTERED = "handlers_registered"
    INITIALIZING = "initializing"
    INITIALIZED = "initialized"
    FAILED = "failed"
    STOPPED = "stopped"


class ModuleDescriptor(BaseModel):
    """Static description of a module."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    base_path: str
    dependencies: frozenset[str] = Field(default_factory=frozenset)
    description: str = ""


class Module(ABC):
    """Abstract base class for business modules.

    Class attributes:
        name: Globally unique module name, also the first segment of every
            topic the module publishes
        version: Informational version
        base_path: HTTP mount point, defaults to ``/<name>``
        depends_on: Names of modules that must be initialized first
        publishes: Topic -> payload model for every topic this module emits
        description: One line summary
    """

    name: ClassVar[str] = ""
    version: ClassVar[str] = "0.1.0"
    base_path: ClassVar[str | None] = None
    depends_on: ClassVar[tuple[str, ...]] = ()
    publishes: ClassVar[dict[str, type[BaseModel]]] = {}
    description: ClassVar[str] = ""

    def __init__(self, context: "AppContext"):
        """Initialize the module with the application context.

        Args:
            context: Application context holding the event bus, the service
                registry and the payload contracts

        Raises:
            ConfigurationError: If the subclass does not declare a name
        """
        if not self.name:
            raise ConfigurationError(f"Module class {type(self).__name__} does not declare a name")
        self.context = context
        self.state = ModuleState.CREATED
        self._subscriptions: list[Subscription] = []
        self._router: APIRouter | None = None
        self.log = logger.bind(module=self.name)

    @property
    def descriptor(self) -> ModuleDescriptor:
        """Static description of this module."""
        return ModuleDescriptor(
            name=self.name,
            version=self.version,
            base_path=self.base_path or f"/{self.name}",
            dependencies=self.dependencies(),
            description=self.description,
        )

    @property
    def bus(self):
        """The application event bus."""
        return self.context.bus

    @property
    def services(self):
        """The application service registry."""
        return self.context.services

    @property
    def subscriptions(self) -> list[Subscription]:
        """Subscriptions registered by this module."""
        return list(self._subscriptions)

    def dependencies(self) -> frozenset[str]:
        """Names of the modules that must be initialized before this one."""
        return frozenset(self.depends_on)

    # Lifecycle

    def register_event_handlers(self) -> None:
        """Declare payload contracts and subscribe this module's handlers.

        Raises:
            ModuleLifecycleError: If called more than once
        """
        if self.state != ModuleState.CREATED:
            raise ModuleLifecycleError(f"Module {self.name}: event handlers already registered (state={self.state})")

        for topic, model in self.publishes.items():
            self.context.contracts.declare(topic, model)

        self._register_handlers()
        self.state = ModuleState.HANDLERS_REGISTERED
        self.log.debug(f"Module {self.name} registered {len(self._subscriptions)} event handlers")

    async def initialize(self) -> None:
        """Run the module's asynchronous setup.

        Raises:
            ModuleLifecycleError: If handlers are not registered yet or the
                module was already initialized
            Exception: Whatever the module's setup raises; the module is then
                marked failed
        """
        if self.state != ModuleState.HANDLERS_REGISTERED:
            raise ModuleLifecycleError(f"Module {self.name} cannot initialize from state {self.state}")

        self.state = ModuleState.INITIALIZING
        try:
            await self._initialize()
        except BaseException:
            self.state = ModuleState.FAILED
            raise
        self.state = ModuleState.INITIALIZED

    def router(self) -> APIRouter:
        """Return the HTTP sub-router to mount at ``base_path``.

        Raises:
            ModuleLifecycleError: If the module is not initialized
        """
        if self.state != ModuleState.INITIALIZED:
            raise ModuleLifecycleError(f"Module {self.name} router requested before initialization (state={self.state})")
        if self._router is None:
            self._router = self._build_router()
        return self._router

    async def shutdown(self) -> None:
        """Release module resources and drop its subscriptions.

        Failures are logged, never raised, so that every module gets a chance
        to shut down.
        """
        if self.state not in (ModuleState.INITIALIZED, ModuleState.FAILED):
            return
        try:
            await self._shutdown()
        except Exception as e:
            self.log.opt(exception=e).error(f"Module {self.name} failed to shut down cleanly: {e}")
        finally:
            for subscription in self._subscriptions:
                self.bus.unsubscribe(subscription)
            self._subscriptions.clear()
            self.state = ModuleState.STOPPED

    # Helpers for subclasses

    def subscribe(self, pattern: str, handler: Callable[..., Any]) -> Subscription:
        """Subscribe a handler owned by this module."""
        subscription = self.bus.subscribe(pattern, handler, owner_module=self.name)
        self._subscriptions.append(subscription)
        return subscription

    def publish(
        self,
        topic: str,
        aggregate_id: str,
        aggregate_type: str,
        payload: BaseModel | dict[str, Any] | None = None,
        caused_by: Event | None = None,
    ) -> Event:
        """Build and publish an event on behalf of this module.

        Returns:
            The published event
        """
        event = Event.create(
            topic,
            aggregate_id,
            aggregate_type,
            payload,
            source_module=self.name,
            caused_by=caused_by,
        )
        self.bus.publish(event)
        return event

    # Hooks

    def _register_handlers(self) -> None:
        """Subscribe handlers with ``self.subscribe``. Default: none."""

    async def _initialize(self) -> None:
        """Asynchronous setup. Default: nothing to do."""

    async def _shutdown(self) -> None:
        """Release resources. Default: nothing to do."""

    @abstractmethod
    def _build_router(self) -> APIRouter:
        """Build the module's HTTP sub-router."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, state={self.state.value!r})"
