"""Application context.

The context is the single object a process (or a test) constructs at start
and hands to every module. It replaces process-wide singletons for the event
bus and the module registry, so two contexts never share subscriptions and a
test can swap in its own bus.
"""

from loguru import logger

from arena_server.event_bus import EventBus, PayloadContracts
from arena_server.modules.registry import ModuleRegistry
from arena_server.services.registry import ServiceRegistry
from arena_server.settings import Settings, get_settings


class AppContext:
    """Holds settings, the event bus, services, payload contracts and modules."""

    def __init__(
        self,
        settings: Settings,
        bus: EventBus | None = None,
        services: ServiceRegistry | None = None,
        contracts: PayloadContracts | None = None,
        modules: ModuleRegistry | None = None,
    ):
        self.settings = settings
        self.services = services or ServiceRegistry()
        self.bus = bus or EventBus.from_settings(settings, services=self.services)
        self.contracts = contracts or PayloadContracts()
        self.modules = modules or ModuleRegistry()

    async def start(self) -> None:
        """Bootstrap all registered modules, then start event dispatch.

        Events published while modules initialize are buffered and delivered
        once every module is up.

        Raises:
            ConfigurationError: On an invalid module graph
            ModuleInitializationError: When a module fails to initialize
        """
        await self.modules.bootstrap()
        await self.bus.start()

    async def stop(self) -> None:
        """Drain the event bus within the grace period, then shut modules down."""
        logger.info("Stopping application context")
        await self.bus.stop(grace_period=self.settings.shutdown_grace_seconds)
        await self.modules.shutdown()


def create_app_context(settings: Settings | None = None) -> AppContext:
    """Build a context with a fresh bus, service registry and module registry.

    Args:
        settings: Settings to use; defaults to the cached process settings
    """
    settings = settings or get_settings()
    context = AppContext(settings)
    context.services.register_singleton(Settings, settings)
    context.services.register_singleton(EventBus, context.bus)
    context.services.register_singleton(PayloadContracts, context.contracts)
    return context
