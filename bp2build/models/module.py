"""
Module graph data models.

A module node is a vertex of the build graph as loaded from the declarative
source: a name, a type, a directory and a property bag, plus the conversion
bookkeeping and the provider payloads accumulated by the scheduler's phases.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from ..core.exceptions import ProviderOrderingError
from .label import TOP_LEVEL_DIR

T = TypeVar("T")


class DependencyTag(str, Enum):
    """Semantic role of a dependency edge."""

    DEPS = "deps"
    OUTPUT_OF = "output_of"
    LICENSE = "license"
    BP2BUILD = "bp2build"


class Capability(str, Enum):
    """Capabilities a module type can register."""

    CONVERTIBLE = "convertible"
    API_PROVIDER = "api_provider"
    MIXED_BUILD = "mixed_build"


class BazelModuleProperties(BaseModel):
    """The bazel_module property block shared by convertible modules."""

    label: str | None = Field(
        default=None, description="Hand-authored Bazel target replacing this module"
    )
    bp2build_available: bool | None = Field(
        default=None, description="Explicit opt-in (True) or opt-out (False); None defers"
    )
    can_convert: bool = Field(default=False, description="Set when the type is convertible")


class TargetInfo(BaseModel):
    """A Bazel target generated for a module."""

    name: str
    rule_class: str
    directory: str


class ConversionStatus(BaseModel):
    """Conversion bookkeeping for one module."""

    targets: list[TargetInfo] = Field(default_factory=list)
    unconverted_deps: list[str] = Field(default_factory=list)
    missing_deps: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    converted: bool = Field(default=False, description="Decision of the allowlist engine")

    def add_unconverted_dep(self, name: str) -> None:
        if name not in self.unconverted_deps:
            self.unconverted_deps.append(name)

    def add_missing_dep(self, name: str) -> None:
        if name not in self.missing_deps:
            self.missing_deps.append(name)


class ProviderKey(Generic[T]):
    """Typed key identifying a provider payload."""

    def __init__(self, name: str, value_type: type[T]) -> None:
        self.name = name
        self.value_type = value_type

    def __repr__(self) -> str:
        return f"ProviderKey({self.name!r})"


class ProviderStore:
    """Write-once provider storage for a single module.

    Only the owning module's step writes to its store, so a per-store lock is
    enough to serialize a writer against concurrent readers.
    """

    def __init__(self, module_name: str) -> None:
        self._module_name = module_name
        self._values: dict[str, tuple[str, Any]] = {}
        self._lock = threading.Lock()

    def set(self, key: ProviderKey[T], value: T, phase: str) -> None:
        """Publish value under key during phase.

        Raises:
            ProviderOrderingError: If key was already published.
        """
        if not isinstance(value, key.value_type):
            raise ProviderOrderingError(
                message=f"expected {key.value_type.__name__}, got {type(value).__name__}",
                module_name=self._module_name,
                provider=key.name,
            )
        with self._lock:
            if key.name in self._values:
                published_in, _ = self._values[key.name]
                raise ProviderOrderingError(
                    message=f"already published in phase '{published_in}'",
                    module_name=self._module_name,
                    provider=key.name,
                )
            self._values[key.name] = (phase, value)

    def get(self, key: ProviderKey[T]) -> T:
        """Read a published provider.

        Raises:
            ProviderOrderingError: If key has not been published.
        """
        with self._lock:
            entry = self._values.get(key.name)
        if entry is None:
            raise ProviderOrderingError(
                message="read before it was published",
                module_name=self._module_name,
                provider=key.name,
            )
        return entry[1]

    def has(self, key: ProviderKey[Any]) -> bool:
        with self._lock:
            return key.name in self._values

    def published_in(self, key: ProviderKey[Any]) -> str | None:
        """Phase that published key, if any."""
        with self._lock:
            entry = self._values.get(key.name)
        return entry[0] if entry else None


@dataclass
class ModuleNode:
    """A vertex in the build graph."""

    name: str
    module_type: str
    directory: str = TOP_LEVEL_DIR
    properties: dict[str, Any] = field(default_factory=dict)
    enabled: bool = True
    os: str = "android"
    arch: str = "common"
    bazel_module: BazelModuleProperties = field(default_factory=BazelModuleProperties)
    status: ConversionStatus = field(default_factory=ConversionStatus)
    providers: ProviderStore = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.providers = ProviderStore(self.name)

    @property
    def has_handcrafted_label(self) -> bool:
        return self.bazel_module.label is not None

    @property
    def handcrafted_label(self) -> str:
        return self.bazel_module.label or ""

    def prop(self, name: str, default: Any = None) -> Any:
        """Get a property value from the property bag."""
        return self.properties.get(name, default)
