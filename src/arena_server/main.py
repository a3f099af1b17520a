"""Main entry point for the arena server using Typer and Pydantic Settings."""

import asyncio

import typer
import uvicorn
from loguru import logger

from arena_server.logging import setup_logging
from arena_server.settings import get_settings

app = typer.Typer()


HOST_OPTION = typer.Option(
    None,
    help="Host to bind the server to (overrides ARENA_HOST)",
    metavar="<server>",
)  # fmt: skip
PORT_OPTION = typer.Option(
    None,
    help="Port to bind the server to (overrides ARENA_PORT)",
    metavar="<port>",
)  # fmt: skip
RELOAD_OPTION = typer.Option(
    None,
    help="Enable/disable auto-reload (overrides ARENA_RELOAD)",
)  # fmt: skip
LOG_LEVEL_OPTION = typer.Option(
    None,
    help="Log level (overrides ARENA_LOG_LEVEL)",
    metavar="<level>",
    case_sensitive=False,
)  # fmt: skip
MODULES_OPTION = typer.Option(
    None,
    "-m",
    "--modules",
    help="Business modules to enable, e.g. 'iam,users,matches'. Omit for all.",
    metavar="<modules>",
)  # fmt: skip
WORKERS_OPTION = typer.Option(
    None,
    help="Number of event dispatch workers (overrides ARENA_EVENT_WORKERS)",
    metavar="<n>",
)  # fmt: skip


def _update_settings(
    host: str | None,
    port: int | None,
    log_level: str | None,
    reload: bool | None,
    modules: str | None,
    event_workers: int | None,
) -> None:
    """Update settings with CLI overrides.

    Args:
        host: Host override
        port: Port override
        log_level: Log level override
        reload: Reload override
        modules: Enabled modules override
        event_workers: Event worker count override
    """
    settings = get_settings()

    if host is not None:
        settings.host = host
    if port is not None:
        settings.port = port
    if log_level is not None:
        settings.log_level = log_level.upper()
    if reload is not None:
        settings.reload = reload
    if modules is not None:
        settings.modules = modules
    if event_workers is not None:
        settings.event_workers = event_workers


@app.command()
def run(
    host: str = HOST_OPTION,
    port: int = PORT_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
    reload: bool = RELOAD_OPTION,
    modules: str = MODULES_OPTION,
    workers: int = WORKERS_OPTION,
) -> None:
    """Run the arena server."""
    _update_settings(host, port, log_level, reload, modules, workers)
    settings = get_settings()

    setup_logging(settings.log_level)

    logger.info(f"Starting arena server on {settings.host}:{settings.port}")
    logger.info(f"Modules: {settings.modules or 'all'}")
    logger.info(f"Reload: {settings.reload}")

    # Run the app - use import string for reload mode
    if settings.reload:
        uvicorn.run(
            "arena_server.app:app",
            host=settings.host,
            port=settings.port,
            reload=True,
            log_level=settings.log_level.lower(),
        )
    else:
        from arena_server.app import app as fastapi_app

        uvicorn.run(
            fastapi_app,
            host=settings.host,
            port=settings.port,
            reload=False,
            log_level=settings.log_level.lower(),
        )


@app.command()
def check(
    log_level: str = LOG_LEVEL_OPTION,
    modules: str = MODULES_OPTION,
) -> None:
    """Bootstrap every enabled module without serving, then shut down."""
    _update_settings(None, None, log_level, False, modules, None)
    settings = get_settings()

    setup_logging(settings.log_level)
    logger.info("Running module bootstrap check only")

    from arena_server.app import start_context
    from arena_server.context import create_app_context

    async def bootstrap_and_stop() -> None:
        context = create_app_context(settings)
        await start_context(context)
        await context.stop()

    try:
        asyncio.run(bootstrap_and_stop())
        logger.info("Module bootstrap check completed successfully")
    except SystemExit:
        raise
    except Exception as e:
        logger.error(f"Module bootstrap check failed: {e}")
        raise SystemExit(1) from None


if __name__ == "__main__":
    app()
