"""Global exception handlers for the FastAPI application.

This module contains custom exception handlers that convert
application exceptions into proper HTTP responses.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from arena_server.event_bus import MalformedEventError
from arena_server.exceptions import ModuleLifecycleError, ResourceNotFoundError


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers with the FastAPI app.

    Args:
        app: The FastAPI application instance
    """

    @app.exception_handler(ResourceNotFoundError)
    async def resource_not_found_handler(_request: Request, exc: ResourceNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(MalformedEventError)
    async def malformed_event_handler(_request: Request, exc: MalformedEventError) -> JSONResponse:
        # A module published an invalid event from a request path: a server bug
        logger.error(f"Malformed event published while serving request: {exc}")
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "Internal event error"})

    @app.exception_handler(ModuleLifecycleError)
    async def module_lifecycle_handler(_request: Request, exc: ModuleLifecycleError) -> JSONResponse:
        logger.error(f"Module lifecycle violated while serving request: {exc}")
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})

    logger.debug("Registered exception handlers")
