"""Data models for the module registry.

Kept apart from the registry so health endpoints can import them without
pulling in the bootstrap machinery.
"""

from enum import StrEnum

import arrow
from pydantic import BaseModel, Field


class RegistryState(StrEnum):
    """Module registry lifecycle.

    EMPTY -> REGISTERING -> BOOTSTRAPPING -> INITIALIZING -> READY | FAILED
    """

    EMPTY = "empty"
    REGISTERING = "registering"
    BOOTSTRAPPING = "bootstrapping"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class ModuleStepStatus(StrEnum):
    """Outcome of bootstrapping one module."""

    SUCCESS = "success"
    FAILED = "failed"


class ModuleBootstrapResult(BaseModel):
    """Result of registering handlers for and initializing one module."""

    model_config = {"use_enum_values": True}

    module_name: str
    version: str
    status: ModuleStepStatus
    message: str
    subscriptions: int = 0
    executed_at: str = Field(default_factory=lambda: arrow.utcnow().isoformat())
    execution_time_ms: float | None = None


class BootstrapResult(BaseModel):
    """Complete result of a bootstrap run."""

    model_config = {"use_enum_values": True}

    state: RegistryState
    message: str
    order: list[str] = Field(default_factory=list)
    module_results: list[ModuleBootstrapResult] = Field(default_factory=list)
    failed_module: str | None = None
    error: str | None = None
    executed_at: str = Field(default_factory=lambda: arrow.utcnow().isoformat())
    total_execution_time_ms: float | None = None
