"""Common exceptions for the server.

Startup errors fall in two fatal families: configuration errors (the module
graph itself is wrong) and initialization errors (a module failed to start).
Both abort bootstrap before any traffic is accepted. Event bus errors live in
``arena_server.event_bus.core``.
"""


class ConfigurationError(Exception):
    """Raised when the registered module set cannot be bootstrapped."""


class DuplicateModuleError(ConfigurationError):
    """Raised when two modules are registered under the same name."""

    def __init__(self, module_name: str):
        self.module_name = module_name
        super().__init__(f"Module already registered: {module_name}")


class MissingDependencyError(ConfigurationError):
    """Raised when a module depends on a module that is not registered."""

    def __init__(self, module_name: str, dependency: str):
        self.module_name = module_name
        self.dependency = dependency
        super().__init__(f"Module {module_name} depends on unregistered module {dependency}")


class DependencyCycleError(ConfigurationError):
    """Raised when module dependencies form a cycle.

    ``cycle`` lists the module names along the cycle, first name repeated at
    the end, e.g. ``["matches", "tournaments", "matches"]``.
    """

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__(f"Dependency cycle between modules: {' -> '.join(cycle)}")


class ModuleInitializationError(Exception):
    """Raised when a module fails during bootstrap.

    The original exception is chained as ``__cause__``.
    """

    def __init__(self, module_name: str, cause: BaseException):
        self.module_name = module_name
        self.cause = cause
        super().__init__(f"Module {module_name} failed to initialize: {type(cause).__name__}: {cause}")


class ModuleLifecycleError(Exception):
    """Raised when a module or the registry is driven out of order.

    Calling ``register_event_handlers`` twice, asking for a router before
    ``initialize`` succeeded or registering modules after bootstrap started
    are programmer errors.
    """


class ResourceNotFoundError(Exception):
    """Raised when a resource doesn't exist.

    Generic exception for any resource that cannot be found by its identifier.
    """

    def __init__(self, resource_type: str, identifier: str):
        self.resource_type = resource_type
        self.identifier = identifier
        super().__init__(f"{resource_type} not found: {identifier}")
