"""Main FastAPI application module."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from arena_server.api.health_check import router as health_router
from arena_server.api.ping import router as ping_router
from arena_server.api.version import router as version_router
from arena_server.constants import API_PREFIX
from arena_server.context import AppContext, create_app_context
from arena_server.domains import parse_modules, register_domain_modules
from arena_server.exception_handlers import register_exception_handlers
from arena_server.exceptions import ConfigurationError, ModuleInitializationError
from arena_server.logging import setup_logging
from arena_server.settings import Settings
from arena_server.utils.version import get_version


def _log_server_endpoints_summary(settings: Settings, mounted: list[str]) -> None:
    """Log the server URL, system endpoints and mounted module routers.

    Args:
        settings: Application settings containing host and port
        mounted: Mount paths of the module routers
    """
    server_url = f"http://{settings.host}:{settings.port}"
    logger.info(f"Server running at: {server_url}")

    endpoints = [
        ("Health Check", "/health-check"),
        ("Ping", "/ping"),
        ("Version", "/version"),
        ("OpenAPI Schema", "/openapi.json"),
        ("API Docs", "/docs"),
    ]
    endpoints.extend((f"Module {path.rsplit('/', 1)[-1]}", path) for path in mounted)

    logger.info("Available endpoints:")
    for name, path in endpoints:
        logger.info(f"   {name}: {server_url}{path}")


async def start_context(context: AppContext) -> None:
    """Register the configured modules and bootstrap them.

    This is the same startup the server performs, usable on its own for
    check-only mode.

    Raises:
        SystemExit: If the module configuration is invalid or a module fails
            to initialize
    """
    try:
        enabled = parse_modules(context.settings.modules)
        register_domain_modules(context, enabled)
        await context.start()
    except (ValueError, ConfigurationError, ModuleInitializationError) as e:
        logger.error(f"Startup failed: {e}")
        raise SystemExit(1) from e


def create_app(context: AppContext | None = None) -> FastAPI:
    """Build the FastAPI application around an application context.

    Args:
        context: Context to serve; a fresh one from the process settings by default.
            Modules are registered from ``settings.modules`` unless the context
            already has modules registered.
    """

    @asynccontextmanager
    async def app_lifespan(_app: FastAPI):
        """Handle startup and shutdown events for the main application."""
        app_context = context or create_app_context()
        _app.state.context = app_context  # type: ignore[attr-defined]
        settings = app_context.settings

        setup_logging(log_level=settings.log_level)
        logger.info("Arena server starting")

        if app_context.modules.modules:
            await app_context.start()
        else:
            await start_context(app_context)

        mounted = app_context.modules.mount_routers(_app, prefix=API_PREFIX)
        _log_server_endpoints_summary(settings, mounted)

        yield

        logger.info("Arena server shutting down")
        await app_context.stop()

    app = FastAPI(
        lifespan=app_lifespan,
        title="Arena server",
        description="Sports social network: modular monolith with an in-process event bus",
        version=get_version().version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, replace with specific origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # System endpoints - always enabled
    app.include_router(health_router, prefix="")
    app.include_router(ping_router, prefix="")
    app.include_router(version_router, prefix="/version")

    return app


app = create_app()
