"""Main CLI application."""

import typer

from arena_server.cli.commands import modules

app = typer.Typer(
    name="arena-server-cli",
    help="Arena server CLI - Administrative tools",
    no_args_is_help=True,
)


# Register command groups
app.add_typer(modules.app, name="modules")
