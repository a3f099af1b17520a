"""Health check API endpoints."""

from fastapi import APIRouter, Depends
from loguru import logger
from pydantic import BaseModel

from arena_server.api.dependencies import get_context
from arena_server.context import AppContext
from arena_server.event_bus import EventBusStats
from arena_server.modules import ModuleBootstrapResult, RegistryState
from arena_server.utils.version import VersionInfo, get_version

router = APIRouter(tags=["System"])


class ModuleStatusResponse(BaseModel):
    """State of one registered module."""

    name: str
    version: str
    state: str
    base_path: str
    dependencies: list[str]
    subscriptions: int


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version_info: VersionInfo
    registry_state: RegistryState
    modules: list[ModuleStatusResponse]
    bootstrap: list[ModuleBootstrapResult] | None = None
    event_bus: EventBusStats

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "ok",
                "version_info": {
                    "version": "0.1.0",
                    "full_version": "0.1.0",
                    "post_count": None,
                    "git_commit": None,
                    "is_dirty": False,
                },
                "registry_state": "ready",
                "modules": [
                    {
                        "name": "users",
                        "version": "1.0.0",
                        "state": "initialized",
                        "base_path": "/users",
                        "dependencies": ["iam"],
                        "subscriptions": 1,
                    }
                ],
                "event_bus": {"published": 12, "delivered": 30, "failed": 0, "running": True},
            }
        }
    }


context_dependency = Depends(get_context)


@router.get("/health-check", response_model=HealthResponse)
async def health_check(context: AppContext = context_dependency) -> HealthResponse:
    """
    Health check endpoint.

    Returns:
        HealthResponse: Module registry state, per-module state and event bus counters.
    """
    logger.debug("Health check requested")

    registry = context.modules
    stats = context.bus.stats
    healthy = registry.is_ready and stats.running

    modules = [
        ModuleStatusResponse(
            name=module.name,
            version=module.version,
            state=module.state,
            base_path=module.descriptor.base_path,
            dependencies=sorted(module.dependencies()),
            subscriptions=len(module.subscriptions),
        )
        for module in (registry.order or registry.modules)
    ]

    return HealthResponse(
        status="ok" if healthy else "degraded",
        version_info=get_version(),
        registry_state=registry.state,
        modules=modules,
        bootstrap=registry.last_result.module_results if registry.last_result else None,
        event_bus=stats,
    )
