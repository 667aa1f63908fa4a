"""Module graph, module type registry and the phase scheduler."""

from .context import ConversionContext
from .host import DependencyEdge, ModuleGraph
from .registry import ModuleBehavior, ModuleTypeRegistry
from .scheduler import MutatorScheduler, Phase, PhaseOrder

__all__ = [
    "ConversionContext",
    "DependencyEdge",
    "ModuleGraph",
    "ModuleBehavior",
    "ModuleTypeRegistry",
    "MutatorScheduler",
    "Phase",
    "PhaseOrder",
]
