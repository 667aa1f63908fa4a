"""
Module type registry.

Maps each module type to its behaviour and the capabilities it registers.
The scheduler checks capabilities by tag instead of inspecting module classes.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from ..models.module import Capability

if TYPE_CHECKING:
    from .context import ConversionContext


class ModuleBehavior:
    """Behaviour shared by all modules of one type.

    Behaviours are stateless; per-module state lives on the ModuleNode and in
    its providers. Every hook defaults to doing nothing so a type only
    implements what its capabilities need.
    """

    #: Capabilities registered for this type.
    capabilities: frozenset[Capability] = frozenset()

    #: Properties holding source paths; module references in them become edges.
    path_properties: tuple[str, ...] = ()

    def deps(self, ctx: ConversionContext) -> None:
        """Register declared dependencies with ctx.add_dependency()."""

    def convert(self, ctx: ConversionContext) -> None:
        """Emit Bazel targets for a module that should be converted."""

    def convert_api(self, ctx: ConversionContext) -> None:
        """Emit API contribution targets."""

    def is_mixed_build_supported(self, ctx: ConversionContext) -> bool:
        """Escape hatch for modules that must stay on the native path."""
        return True

    def queue_external_query(self, ctx: ConversionContext) -> None:
        """Queue requests on the external executor."""

    def process_query_response(self, ctx: ConversionContext) -> None:
        """Read answered requests and publish them as providers."""


class ModuleTypeRegistry:
    """Registry of module types and their behaviours."""

    def __init__(self) -> None:
        self._types: dict[str, ModuleBehavior] = {}

    def register(self, module_type: str, behavior: ModuleBehavior) -> ModuleBehavior:
        """Register the behaviour for a module type.

        Args:
            module_type: Name used by modules of this type.
            behavior: Behaviour instance shared by all modules of the type.

        Returns:
            The registered behaviour.

        Raises:
            ValueError: If module_type is already registered.
        """
        if module_type in self._types:
            raise ValueError(f"module type {module_type!r} is already registered")
        self._types[module_type] = behavior
        return behavior

    def register_type(self, module_type: str) -> Callable[[type[ModuleBehavior]], type[ModuleBehavior]]:
        """Class decorator registering an instance of the decorated behaviour.

        Can be used as:
            @registry.register_type("filegroup")
            class FileGroup(ModuleBehavior):
                ...
        """

        def decorator(behavior_class: type[ModuleBehavior]) -> type[ModuleBehavior]:
            self.register(module_type, behavior_class())
            return behavior_class

        return decorator

    def get(self, module_type: str) -> ModuleBehavior | None:
        """Get the behaviour for a module type, or None if unregistered."""
        return self._types.get(module_type)

    def behavior(self, module_type: str) -> ModuleBehavior:
        """Get the behaviour for a module type, defaulting to a no-op behaviour."""
        return self._types.get(module_type) or _NO_OP

    def capabilities(self, module_type: str) -> frozenset[Capability]:
        behavior = self._types.get(module_type)
        return behavior.capabilities if behavior else frozenset()

    def has_capability(self, module_type: str, capability: Capability) -> bool:
        return capability in self.capabilities(module_type)

    def list_types(self) -> list[str]:
        """List all registered module types."""
        return list(self._types)


_NO_OP = ModuleBehavior()
