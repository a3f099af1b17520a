"""Utility functions for the arena server."""

from arena_server.utils.id_generator import from_base36, generate_short_id, to_base36

__all__ = [
    "from_base36",
    "generate_short_id",
    "to_base36",
]
