"""CLI utility functions shared across commands."""

import typer
from rich.console import Console

from arena_server.context import AppContext, create_app_context
from arena_server.domains import parse_modules, register_domain_modules
from arena_server.settings import get_settings

console = Console()


def load_context(modules: str | None) -> AppContext:
    """Build a context with the configured modules registered, not started.

    Args:
        modules: Comma-separated module names; falls back to ``ARENA_MODULES``

    Raises:
        typer.Exit: If a module name is invalid
    """
    settings = get_settings()
    try:
        enabled = parse_modules(modules if modules is not None else settings.modules)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e

    context = create_app_context(settings)
    register_domain_modules(context, enabled)
    return context
