"""Service registry for dependency injection.

One registry lives on the application context. Modules register the services
they expose during ``initialize`` and class-based event handlers receive them
through constructor injection.
"""

from collections.abc import Callable
from typing import Any, TypeVar, cast

T = TypeVar("T")
ServiceFactory = Callable[[], T]


class ServiceRegistry:
    """Registry for all shared services with support for singletons and factories."""

    def __init__(self):
        """Initialize an empty service registry."""
        self._singletons: dict[str, Any] = {}
        self._factories: dict[str, ServiceFactory[Any]] = {}

    def register_singleton(self, service_type: type[T], instance: T) -> None:
        """Register a singleton instance by its type.

        Args:
            service_type: The type of the service to register
            instance: The singleton instance to register
        """
        name = service_type.__name__
        self._factories.pop(name, None)
        self._singletons[name] = instance

    def register_factory(self, service_type: type[T], factory: ServiceFactory[T]) -> None:
        """Register a factory function by its type.

        Args:
            service_type: The type of the service to register
            factory: The factory function that creates instances of the service
        """
        name = service_type.__name__
        self._singletons.pop(name, None)
        self._factories[name] = factory

    def get(self, service_type: type[T]) -> T:
        """Get a service instance by type.

        Args:
            service_type: The type of the service to retrieve

        Returns:
            The singleton, or a fresh instance from the factory

        Raises:
            KeyError: If the requested service is not registered
        """
        service_name = service_type.__name__

        if service_name in self._singletons:
            return cast(T, self._singletons[service_name])
        if service_name in self._factories:
            return cast(T, self._factories[service_name]())

        raise KeyError(f"Service {service_name} not registered")

    def has(self, service_type: type) -> bool:
        """Return True if a service is registered for the type."""
        name = service_type.__name__
        return name in self._singletons or name in self._factories

    def names(self) -> list[str]:
        """Names of registered services."""
        return sorted({*self._singletons, *self._factories})
