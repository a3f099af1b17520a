"""Module registry and bootstrapper.

The registry collects every business module, orders them by their declared
dependencies and drives their startup. A module's event handlers are
subscribed right before the module initializes and after all of its
dependencies initialized. Events published during startup wait in the bus
queue until the bus starts and go to the subscriptions that existed when
they were published.

Key Features:
- Deterministic topological order (dependencies first, otherwise
  registration order)
- Cycle and missing-dependency detection before any module starts
- Fail-fast bootstrap: the first failing module aborts startup
- Router mounting only once every module is initialized
- Reverse-order shutdown

Typical Usage:
    registry = ModuleRegistry()
    registry.register(UsersModule(context))
    registry.register(MatchesModule(context))

    await registry.bootstrap()       # raises on any configuration/initialization error
    registry.mount_routers(app)
    ...
    await registry.shutdown()
"""

import time

from fastapi import FastAPI
from loguru import logger

from arena_server.exceptions import (
    ConfigurationError,
    DependencyCycleError,
    DuplicateModuleError,
    MissingDependencyError,
    ModuleInitializationError,
    ModuleLifecycleError,
)

from .base import Module, ModuleState
from .models import BootstrapResult, ModuleBootstrapResult, ModuleStepStatus, RegistryState


class ModuleRegistry:
    """Registry that owns the module set and its lifecycle.

    Attributes:
        state: Current RegistryState
        current_module: Name of the module being bootstrapped, if any
        failure: The error that moved the registry to FAILED, if any
        last_result: Result of the last bootstrap run
    """

    def __init__(self):
        self._modules: dict[str, Module] = {}
        self._order: list[Module] = []
        self.state = RegistryState.EMPTY
        self.current_module: str | None = None
        self.failure: Exception | None = None
        self.last_result: BootstrapResult | None = None

    def register(self, module: Module) -> None:
        """Add a module to the set to be bootstrapped.

        Raises:
            DuplicateModuleError: If a module with the same name is registered
            ModuleLifecycleError: If bootstrap already started
        """
        if self.state not in (RegistryState.EMPTY, RegistryState.REGISTERING):
            raise ModuleLifecycleError(f"Cannot register module {module.name}: registry is {self.state}")
        if module.name in self._modules:
            raise DuplicateModuleError(module.name)

        self._modules[module.name] = module
        self.state = RegistryState.REGISTERING
        logger.debug(f"Registered module {module.name} v{module.version} (depends on: {sorted(module.dependencies()) or 'nothing'})")

    def get(self, name: str) -> Module | None:
        """Get a registered module by name."""
        return self._modules.get(name)

    @property
    def modules(self) -> list[Module]:
        """Registered modules in registration order."""
        return list(self._modules.values())

    @property
    def order(self) -> list[Module]:
        """Bootstrap order, available once bootstrap resolved it."""
        return list(self._order)

    @property
    def is_ready(self) -> bool:
        return self.state == RegistryState.READY

    def resolve_order(self) -> list[Module]:
        """Compute the dependency order of the registered modules.

        Dependencies always come before their dependents. Modules without a
        constraint between them keep their registration order.

        Returns:
            Modules in bootstrap order

        Raises:
            MissingDependencyError: If a module depends on an unregistered module
            DependencyCycleError: If the dependency graph has a cycle
        """
        for module in self._modules.values():
            for dependency in sorted(module.dependencies()):
                if dependency not in self._modules:
                    raise MissingDependencyError(module.name, dependency)

        order: list[Module] = []
        done: set[str] = set()
        path: list[str] = []

        def visit(module: Module) -> None:
            if module.name in done:
                return
            if module.name in path:
                cycle = path[path.index(module.name) :] + [module.name]
                raise DependencyCycleError(cycle)
            path.append(module.name)
            for dependency in sorted(module.dependencies()):
                visit(self._modules[dependency])
            path.pop()
            done.add(module.name)
            order.append(module)

        for module in self._modules.values():
            visit(module)
        return order

    async def bootstrap(self) -> BootstrapResult:
        """Register handlers for and initialize every module in dependency order.

        Returns:
            BootstrapResult describing the successful run

        Raises:
            ConfigurationError: On a dependency cycle or missing dependency;
                no module is touched
            ModuleInitializationError: When a module fails; modules after it
                are never started
            ModuleLifecycleError: If bootstrap already ran
        """
        if self.state not in (RegistryState.EMPTY, RegistryState.REGISTERING):
            raise ModuleLifecycleError(f"Bootstrap cannot run from state {self.state}")

        start_time = time.perf_counter()
        result = BootstrapResult(state=RegistryState.BOOTSTRAPPING, message="Bootstrap in progress")
        self.last_result = result

        self.state = RegistryState.BOOTSTRAPPING
        logger.info(f"Bootstrapping {len(self._modules)} modules")
        try:
            self._order = self.resolve_order()
        except ConfigurationError as e:
            logger.error(f"Module configuration error: {e}")
            self._fail(result, None, e, start_time)
            raise

        result.order = [module.name for module in self._order]
        logger.info(f"Module bootstrap order: {' -> '.join(result.order) or '(none)'}")

        self.state = RegistryState.INITIALIZING
        for module in self._order:
            self.current_module = module.name
            module_start = time.perf_counter()
            try:
                module.register_event_handlers()
                await module.initialize()
            except Exception as e:
                elapsed = (time.perf_counter() - module_start) * 1000
                result.module_results.append(
                    ModuleBootstrapResult(
                        module_name=module.name,
                        version=module.version,
                        status=ModuleStepStatus.FAILED,
                        message=f"{type(e).__name__}: {e}",
                        subscriptions=len(module.subscriptions),
                        execution_time_ms=elapsed,
                    )
                )
                error = ModuleInitializationError(module.name, e)
                logger.opt(exception=e).error(f"Module {module.name} failed to start, aborting bootstrap: {e}")
                self._fail(result, module.name, error, start_time)
                raise error from e

            elapsed = (time.perf_counter() - module_start) * 1000
            result.module_results.append(
                ModuleBootstrapResult(
                    module_name=module.name,
                    version=module.version,
                    status=ModuleStepStatus.SUCCESS,
                    message="Initialized",
                    subscriptions=len(module.subscriptions),
                    execution_time_ms=elapsed,
                )
            )
            logger.info(f"Module {module.name} v{module.version} initialized in {elapsed:.1f}ms ({len(module.subscriptions)} handlers)")

        self.current_module = None
        self.state = RegistryState.READY
        result.state = RegistryState.READY
        result.message = f"{len(self._order)} modules initialized"
        result.total_execution_time_ms = (time.perf_counter() - start_time) * 1000
        logger.info(f"All modules initialized in {result.total_execution_time_ms:.1f}ms")
        return result

    def _fail(self, result: BootstrapResult, module_name: str | None, error: Exception, start_time: float) -> None:
        self.state = RegistryState.FAILED
        self.failure = error
        self.current_module = module_name
        result.state = RegistryState.FAILED
        result.failed_module = module_name
        result.error = str(error)
        result.message = "Bootstrap failed"
        result.total_execution_time_ms = (time.perf_counter() - start_time) * 1000

    def mount_routers(self, app: FastAPI, prefix: str = "") -> list[str]:
        """Include every module router in the application.

        Args:
            app: FastAPI application
            prefix: Common prefix prepended to each module base path

        Returns:
            Mount paths, in bootstrap order

        Raises:
            ModuleLifecycleError: If bootstrap has not completed successfully
        """
        if self.state != RegistryState.READY:
            raise ModuleLifecycleError(f"Routers can only be mounted once the registry is ready (state={self.state})")

        mounted = []
        for module in self._order:
            path = f"{prefix}{module.descriptor.base_path}"
            app.include_router(module.router(), prefix=path, tags=[module.name])
            mounted.append(path)
            logger.debug(f"Mounted module {module.name} at {path}")
        return mounted

    async def shutdown(self) -> None:
        """Shut modules down in reverse bootstrap order."""
        for module in reversed(self._order):
            if module.state in (ModuleState.INITIALIZED, ModuleState.FAILED):
                logger.debug(f"Shutting down module {module.name}")
                await module.shutdown()
