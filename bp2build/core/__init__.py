"""Core infrastructure components for bp2build."""

from .config import BuildMode, Config, get_config
from .exceptions import (
    Bp2BuildError,
    CrossPackageError,
    GraphCycleError,
    ModuleError,
    ProviderOrderingError,
    TargetDirectoryError,
    UnresolvedReferenceError,
    ValidationError,
)
from .logging import get_logger, setup_logging
from .types import PhaseResult, PhaseStatus, SchedulerRun

__all__ = [
    "BuildMode",
    "Config",
    "get_config",
    "Bp2BuildError",
    "CrossPackageError",
    "GraphCycleError",
    "ModuleError",
    "ProviderOrderingError",
    "TargetDirectoryError",
    "UnresolvedReferenceError",
    "ValidationError",
    "get_logger",
    "setup_logging",
    "PhaseResult",
    "PhaseStatus",
    "SchedulerRun",
]
