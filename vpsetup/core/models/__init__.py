"""
Core domain models for vps-setup.

Pure data structures with validation. No I/O, no side effects.
"""

from vpsetup.core.models.module import (
    ModuleCatalog,
    ModuleDescriptor,
    ModuleRun,
    ModuleStatus,
)
from vpsetup.core.models.prompt import AUTO_MODE_ANSWERS, PromptKind, overrides_from_env
from vpsetup.core.models.receipt import Receipt

__all__ = [
    "AUTO_MODE_ANSWERS",
    "ModuleCatalog",
    "ModuleDescriptor",
    "ModuleRun",
    "ModuleStatus",
    "PromptKind",
    "Receipt",
    "overrides_from_env",
]
