"""
Module graph host.

Holds the module nodes and their tagged dependency edges on a rustworkx
directed graph. Edges point from a module to its dependency, so topological
generations list dependents before their dependencies.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

import rustworkx as rx

from ..core.exceptions import GraphCycleError, ValidationError
from ..core.logging import get_logger
from ..models.module import Capability, DependencyTag, ModuleNode
from ..paths.filesystem import SourceFileSystem
from .registry import ModuleTypeRegistry

logger = get_logger(__name__)


@dataclass(frozen=True)
class DependencyEdge:
    """A committed dependency edge."""

    module: str
    tag: DependencyTag
    dependency: str


class ModuleGraph:
    """The module graph shared by all phases of a run.

    Nodes are added once, before the first phase. Edges are only added by the
    scheduler at phase barriers, so readers inside a phase see a stable graph.
    """

    def __init__(self, fs: SourceFileSystem, registry: ModuleTypeRegistry) -> None:
        """Initialize the graph.

        Args:
            fs: Source tree the modules were loaded from.
            registry: Behaviours and capabilities of the module types.
        """
        self.fs = fs
        self.registry = registry
        self._graph: rx.PyDiGraph = rx.PyDiGraph(multigraph=True, check_cycle=False)
        self._index: dict[str, int] = {}
        self._nodes: dict[str, ModuleNode] = {}
        self._edges: dict[str, list[DependencyEdge]] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def __iter__(self) -> Iterator[ModuleNode]:
        return iter(self._nodes.values())

    def add_module(self, module: ModuleNode) -> ModuleNode:
        """Add a module node.

        Sets bazel_module.can_convert from the capabilities of the module's type.

        Raises:
            ValidationError: If a module with the same name already exists.
        """
        if module.name in self._nodes:
            raise ValidationError(
                message=f'module "{module.name}" already defined',
                field_name="name",
                actual_value=module.name,
            )
        capabilities = self.registry.capabilities(module.module_type)
        module.bazel_module = module.bazel_module.model_copy(
            update={"can_convert": Capability.CONVERTIBLE in capabilities}
        )
        self._index[module.name] = self._graph.add_node(module.name)
        self._nodes[module.name] = module
        self._edges[module.name] = []
        return module

    def add_modules(self, modules: Iterable[ModuleNode]) -> None:
        for module in modules:
            self.add_module(module)

    def module(self, name: str) -> ModuleNode:
        """Get a module by name.

        Raises:
            KeyError: If no such module exists.
        """
        return self._nodes[name]

    def find(self, name: str) -> ModuleNode | None:
        return self._nodes.get(name)

    def modules(self) -> list[ModuleNode]:
        """All modules in insertion order."""
        return list(self._nodes.values())

    def capabilities(self, module: ModuleNode) -> frozenset[Capability]:
        return self.registry.capabilities(module.module_type)

    def add_dependency(self, module_name: str, tag: DependencyTag, dependency: str) -> bool:
        """Add a tagged edge from module_name to dependency.

        Returns:
            False if an identical edge already existed.

        Raises:
            KeyError: If either module does not exist.
        """
        edge = DependencyEdge(module_name, tag, dependency)
        edges = self._edges[module_name]
        if edge in edges:
            return False
        self._graph.add_edge(self._index[module_name], self._index[dependency], tag)
        edges.append(edge)
        return True

    def edges(self, module_name: str) -> list[DependencyEdge]:
        """Outgoing edges of a module in insertion order."""
        return list(self._edges[module_name])

    def direct_deps(self, module_name: str, tag: DependencyTag | None = None) -> list[ModuleNode]:
        """Direct dependencies of a module, optionally filtered by tag.

        Each dependency is listed once, in the order its first edge was added.
        """
        seen: set[str] = set()
        deps: list[ModuleNode] = []
        for edge in self._edges[module_name]:
            if tag is not None and edge.tag != tag:
                continue
            if edge.dependency not in seen:
                seen.add(edge.dependency)
                deps.append(self._nodes[edge.dependency])
        return deps

    def has_edge(self, module_name: str, dependency: str, tag: DependencyTag | None = None) -> bool:
        return any(
            edge.dependency == dependency and (tag is None or edge.tag == tag)
            for edge in self._edges.get(module_name, ())
        )

    def dependents(self, module_name: str) -> list[str]:
        """Modules with a direct edge to module_name."""
        index = self._index[module_name]
        return self._names(set(self._graph.predecessor_indices(index)))

    def transitive_dependents(self, module_name: str) -> list[str]:
        """Modules that depend on module_name directly or transitively."""
        return self._names(rx.ancestors(self._graph, self._index[module_name]))

    def generations(self, *, dependencies_first: bool, phase: str = "") -> list[list[str]]:
        """Group modules into topological generations.

        Modules in one generation never depend on each other.

        Args:
            dependencies_first: List dependencies before their dependents.
            phase: Phase name used in the error.

        Raises:
            GraphCycleError: If the graph has a cycle.
        """
        if not rx.is_directed_acyclic_graph(self._graph):
            cycle = rx.digraph_find_cycle(self._graph)
            names = [self._graph[source] for source, _ in cycle]
            raise GraphCycleError(
                message=f"dependency cycle: {' -> '.join(names + names[:1])}",
                context={"cycle": names},
                phase=phase,
            )
        generations = [self._names(generation) for generation in rx.topological_generations(self._graph)]
        if dependencies_first:
            generations.reverse()
        return generations

    def _names(self, indices: Iterable[int]) -> list[str]:
        # Node indices follow insertion order.
        return [self._graph[index] for index in sorted(indices)]
