"""Tests for arena_server.settings.Settings behavior."""

import pytest
from pydantic import ValidationError

from arena_server.settings import Settings, get_settings

ARENA_VARS = [
    "ARENA_HOST",
    "ARENA_PORT",
    "ARENA_LOG_LEVEL",
    "ARENA_RELOAD",
    "ARENA_MODULES",
    "ARENA_EVENT_WORKERS",
    "ARENA_EVENT_QUEUE_SIZE",
    "ARENA_EVENT_OVERFLOW_POLICY",
    "ARENA_HANDLER_TIMEOUT_SECONDS",
    "ARENA_SHUTDOWN_GRACE_SECONDS",
    "ARENA_ISOLATE_EVENTS",
]


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for var in ARENA_VARS:
        monkeypatch.delenv(var, raising=False)
        monkeypatch.delenv(var.lower(), raising=False)
    return monkeypatch


def test_settings_defaults(clean_env: pytest.MonkeyPatch):
    """Defaults are stable; `_env_file=None` bypasses any project .env file."""
    s = Settings(_env_file=None)
    assert s.host == "0.0.0.0"
    assert s.port == 8080
    assert s.log_level == "INFO"
    assert s.reload is False
    assert s.modules is None
    assert s.event_workers == 4
    assert s.event_queue_size == 1000
    assert s.event_overflow_policy == "drop"
    assert s.handler_timeout_seconds == 30.0
    assert s.shutdown_grace_seconds == 10.0
    assert s.isolate_events is True


def test_env_overrides(clean_env: pytest.MonkeyPatch):
    clean_env.setenv("ARENA_HOST", "127.0.0.1")
    clean_env.setenv("ARENA_PORT", "9090")
    clean_env.setenv("ARENA_MODULES", "iam,users")
    clean_env.setenv("ARENA_EVENT_WORKERS", "8")
    clean_env.setenv("ARENA_EVENT_OVERFLOW_POLICY", "RAISE")
    s = Settings(_env_file=None)
    assert s.host == "127.0.0.1"
    assert s.port == 9090
    assert s.modules == "iam,users"
    assert s.event_workers == 8
    assert s.event_overflow_policy == "raise"


def test_case_insensitive_env_name(clean_env: pytest.MonkeyPatch):
    clean_env.setenv("arena_host", "10.10.10.10")
    s = Settings(_env_file=None)
    assert s.host == "10.10.10.10"


@pytest.mark.parametrize("value", ["", "none", "OFF", "0"])
def test_handler_timeout_can_be_disabled(clean_env: pytest.MonkeyPatch, value: str):
    clean_env.setenv("ARENA_HANDLER_TIMEOUT_SECONDS", value)
    assert Settings(_env_file=None).handler_timeout_seconds is None


def test_log_level_is_normalized():
    assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"
    with pytest.raises(ValidationError):
        Settings(_env_file=None, log_level="chatty")


@pytest.mark.parametrize(
    "override",
    [
        {"event_workers": 0},
        {"event_queue_size": 0},
        {"event_overflow_policy": "block"},
        {"handler_timeout_seconds": -1},
        {"shutdown_grace_seconds": -1},
    ],
)
def test_invalid_values_rejected(override: dict):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **override)


def test_get_settings_singleton():
    a = get_settings()
    b = get_settings()
    assert a is b
    assert isinstance(a, Settings)


def test_get_settings_cache_not_affected_by_new_env(monkeypatch: pytest.MonkeyPatch):
    first = get_settings()
    original_host = first.host
    monkeypatch.setenv("ARENA_HOST", "203.0.113.5")
    second = get_settings()
    assert second is first
    assert second.host == original_host
