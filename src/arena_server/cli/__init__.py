"""CLI module for arena-server.

Provides command-line interface for administrative tasks like inspecting the
module graph and the event topics.
"""

from arena_server.cli.app import app

__all__ = ["app"]
