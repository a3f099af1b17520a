"""Version API endpoints."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from arena_server.api.dependencies import get_context
from arena_server.context import AppContext
from arena_server.utils.version import VersionInfo, get_version

router = APIRouter(tags=["System"])


class ModuleVersion(BaseModel):
    name: str
    version: str
    description: str


@router.get("", response_model=VersionInfo)
async def get_version_endpoint() -> VersionInfo:
    """Version of the installed arena server distribution."""
    return get_version()


@router.get("/modules", response_model=list[ModuleVersion])
async def get_module_versions(context: AppContext = Depends(get_context)) -> list[ModuleVersion]:
    """Versions of the registered business modules, in registration order."""
    return [
        ModuleVersion(name=d.name, version=d.version, description=d.description)
        for d in (module.descriptor for module in context.modules.modules)
    ]
