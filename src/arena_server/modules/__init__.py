"""Module abstraction and the module registry/bootstrapper."""

from .base import Module, ModuleDescriptor, ModuleState
from .models import BootstrapResult, ModuleBootstrapResult, ModuleStepStatus, RegistryState
from .registry import ModuleRegistry

__all__ = [
    "BootstrapResult",
    "Module",
    "ModuleBootstrapResult",
    "ModuleDescriptor",
    "ModuleRegistry",
    "ModuleState",
    "ModuleStepStatus",
    "RegistryState",
]
