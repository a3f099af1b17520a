"""Shared test fixtures."""

import pytest

from arena_server.context import AppContext, create_app_context
from arena_server.settings import Settings


@pytest.fixture
def settings() -> Settings:
    """Settings independent of the environment, with short deadlines."""
    return Settings(
        _env_file=None,
        modules=None,
        event_workers=2,
        handler_timeout_seconds=2.0,
        shutdown_grace_seconds=2.0,
    )


@pytest.fixture
def context(settings: Settings) -> AppContext:
    """Fresh application context; nothing is shared between tests."""
    return create_app_context(settings)
