"""Module graph and event topic commands."""

import asyncio

import typer
from rich.table import Table

from arena_server.cli.utils import console, load_context
from arena_server.exceptions import ConfigurationError, ModuleInitializationError

app = typer.Typer(help="Business module operations")

MODULES_OPTION = typer.Option(
    None,
    "-m",
    "--modules",
    help="Modules to load, e.g. 'iam,users'. Defaults to ARENA_MODULES, or all.",
)


@app.command()
def order(modules: str = MODULES_OPTION):
    """Show the resolved bootstrap order without starting anything.

    Examples:
        arena-server-cli modules order
        arena-server-cli modules order -m iam,users,venues,matches
    """
    context = load_context(modules)
    try:
        resolved = context.modules.resolve_order()
    except ConfigurationError as e:
        console.print(f"[red]Invalid module graph: {e}[/red]")
        raise typer.Exit(1) from e

    table = Table(title="Module bootstrap order")
    table.add_column("#", justify="right")
    table.add_column("Module", style="bold")
    table.add_column("Version")
    table.add_column("Path")
    table.add_column("Depends on")
    table.add_column("Publishes", justify="right")

    for position, module in enumerate(resolved, start=1):
        descriptor = module.descriptor
        table.add_row(
            str(position),
            descriptor.name,
            descriptor.version,
            descriptor.base_path,
            ", ".join(sorted(descriptor.dependencies)) or "-",
            str(len(module.publishes)),
        )
    console.print(table)


@app.command()
def topics(modules: str = MODULES_OPTION):
    """Bootstrap the modules in memory and list every topic with its subscribers.

    Examples:
        arena-server-cli modules topics
    """
    context = load_context(modules)

    try:
        asyncio.run(context.modules.bootstrap())
    except (ConfigurationError, ModuleInitializationError) as e:
        console.print(f"[red]Bootstrap failed: {e}[/red]")
        raise typer.Exit(1) from e

    table = Table(title="Event topics")
    table.add_column("Topic", style="bold")
    table.add_column("Payload")
    table.add_column("Subscribers")

    for topic in context.contracts.topics():
        model = context.contracts.model_for(topic)
        subscribers = sorted({s.owner_module for s in context.bus.subscriptions() if s.matches(topic)})
        table.add_row(topic, model.__name__, ", ".join(subscribers) or "-")
    console.print(table)

    patterns_table = Table(title="Subscription patterns")
    patterns_table.add_column("Pattern", style="bold")
    patterns_table.add_column("Module")
    patterns_table.add_column("Handler")
    for subscription in context.bus.subscriptions():
        patterns_table.add_row(subscription.pattern, subscription.owner_module, subscription.handler_name)
    console.print(patterns_table)
