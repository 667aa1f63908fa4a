"""
Custom exception hierarchy for bp2build.

All exceptions inherit from Bp2BuildError to enable consistent error handling
across the pipeline. Module errors are collected against the module that raised
them and never stop sibling modules; ordering errors are programming defects
and abort the run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Bp2BuildError(Exception):
    """Base exception for all bp2build errors."""

    message: str
    context: dict[str, Any] = field(default_factory=dict)
    cause: Exception | None = None

    def __str__(self) -> str:
        ctx = f" | context: {self.context}" if self.context else ""
        cause = f" | caused by: {self.cause}" if self.cause else ""
        return f"{self.message}{ctx}{cause}"


@dataclass
class ValidationError(Bp2BuildError):
    """Raised when input validation fails."""

    field_name: str | None = None
    actual_value: Any = None

    def __str__(self) -> str:
        base = super().__str__()
        if self.field_name:
            return f"Validation failed for '{self.field_name}': {base}"
        return f"Validation failed: {base}"


@dataclass
class ModuleError(Bp2BuildError):
    """Raised by a module step; fails that module only."""

    module_name: str = ""
    phase: str = ""

    def __str__(self) -> str:
        base = super().__str__()
        where = f" in phase '{self.phase}'" if self.phase else ""
        return f"[module: {self.module_name}]{where}: {base}"


@dataclass
class UnresolvedReferenceError(ModuleError):
    """Raised when a module reference cannot be parsed or resolved."""

    reference: str = ""


@dataclass
class CrossPackageError(ModuleError):
    """Raised when resolved sources span more packages than a target supports."""

    packages: list[str] = field(default_factory=list)


@dataclass
class TargetDirectoryError(ModuleError):
    """Raised when a target is created in a directory that is not a package."""

    directory: str = ""


@dataclass
class ProviderOrderingError(Bp2BuildError):
    """Raised when a provider is read before it is published or written twice.

    This indicates a missing ordering dependency between phases and is never
    recovered from.
    """

    module_name: str = ""
    provider: str = ""

    def __str__(self) -> str:
        return f"Provider '{self.provider}' on module '{self.module_name}': {self.message}"


@dataclass
class GraphCycleError(Bp2BuildError):
    """Raised when an ordered phase is scheduled over a cyclic graph."""

    phase: str = ""
