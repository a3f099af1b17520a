"""CLI entry point.

Usage:
    python -m arena_server.cli modules order
    python -m arena_server.cli modules topics
    arena-server-cli modules order
"""

from arena_server.cli.app import app
from arena_server.logging import configure_cli_logging


def main() -> None:
    """CLI entry point with logging configuration."""
    configure_cli_logging()
    app()


if __name__ == "__main__":
    main()
