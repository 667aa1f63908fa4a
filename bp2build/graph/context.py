"""
Per-module, per-phase context.

A ConversionContext is handed to every module step. It gives the step
read access to the graph, write access to its own module only, and buffers
the edges the step requests until the scheduler commits them at the phase
barrier.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

from ..allowlist.config import Bp2BuildAllowlist
from ..allowlist.decision import ConversionDecision, should_convert
from ..core.config import Config
from ..core.exceptions import ProviderOrderingError, TargetDirectoryError
from ..core.logging import get_logger
from ..models.module import Capability, DependencyTag, ModuleNode, ProviderKey, TargetInfo
from ..models.target import BazelTarget
from ..paths.boundary import BLUEPRINT_FILE, PackageBoundaryResolver, join_path
from ..paths.expander import ReferenceExpander
from ..paths.filesystem import SourceFileSystem
from .host import ModuleGraph
from .registry import ModuleBehavior

if TYPE_CHECKING:
    from ..mixed.bridge import ExternalExecutor, MixedBuildLog

T = TypeVar("T")

logger = get_logger(__name__)


class ConversionContext:
    """Context of one module step."""

    def __init__(
        self,
        graph: ModuleGraph,
        module: ModuleNode,
        phase: str,
        config: Config,
        allowlist: Bp2BuildAllowlist,
        external: ExternalExecutor | None = None,
        mixed_log: MixedBuildLog | None = None,
    ) -> None:
        self.graph = graph
        self.module = module
        self.phase = phase
        self.config = config
        self.allowlist = allowlist
        self.external = external
        self.mixed_log = mixed_log
        self.resolver = PackageBoundaryResolver(graph.fs, allowlist)
        self.pending_edges: list[tuple[DependencyTag, str]] = []
        self.targets: list[BazelTarget] = []
        self.errors: list[str] = []
        self._expander: ReferenceExpander | None = None

    @property
    def name(self) -> str:
        return self.module.name

    @property
    def module_type(self) -> str:
        return self.module.module_type

    @property
    def module_dir(self) -> str:
        return self.module.directory

    @property
    def fs(self) -> SourceFileSystem:
        return self.graph.fs

    @property
    def behavior(self) -> ModuleBehavior:
        return self.graph.registry.behavior(self.module.module_type)

    @property
    def capabilities(self) -> frozenset[Capability]:
        return self.graph.capabilities(self.module)

    @property
    def expander(self) -> ReferenceExpander:
        """Reference expander bound to this module."""
        if self._expander is None:
            self._expander = ReferenceExpander(self)
        return self._expander

    # Errors

    def module_error(self, message: str) -> None:
        """Record an error against this module.

        The module is marked failed once the step returns.
        """
        self.errors.append(message)
        self.module.status.errors.append(message)
        logger.warning("module_error", module=self.name, phase=self.phase, error=message)

    def property_error(self, prop: str, message: str) -> None:
        self.module_error(f"{prop}: {message}")

    # Graph access

    def module_from_name(self, name: str) -> ModuleNode | None:
        """Look up any module in the graph by name."""
        return self.graph.find(name)

    def direct_deps(self, tag: DependencyTag | None = None) -> list[ModuleNode]:
        """Dependencies committed before this phase started."""
        return self.graph.direct_deps(self.name, tag)

    def add_dependency(self, tag: DependencyTag, *names: str) -> None:
        """Request edges to the named modules.

        Edges are committed at the end of the phase. Unknown names are
        recorded as missing dependencies when missing dependencies are
        allowed, otherwise they are module errors.
        """
        for name in names:
            if name not in self.graph:
                if self.config.conversion.allow_missing_dependencies:
                    self.add_missing_dep(name)
                else:
                    self.module_error(f'depends on undefined module "{name}"')
                continue
            edge = (tag, name)
            if edge not in self.pending_edges:
                self.pending_edges.append(edge)

    def add_missing_dep(self, name: str) -> None:
        self.module.status.add_missing_dep(name)
        logger.debug("missing_dependency", module=self.name, dependency=name)

    def add_unconverted_dep(self, name: str) -> None:
        self.module.status.add_unconverted_dep(name)

    # Conversion decisions

    def decide(self, module: ModuleNode | None = None) -> ConversionDecision:
        """Run the allowlist engine for module (default: this module) without recording anything."""
        module = module or self.module
        return should_convert(module, self.graph.capabilities(module), self.config, self.allowlist)

    def should_convert(self) -> bool:
        """Decide whether this module converts, recording conflicts as module errors."""
        decision = self.decide()
        for diagnostic in decision.diagnostics:
            self.module_error(diagnostic)
        self.module.status.converted = decision.convert
        logger.debug(
            "conversion_decision",
            module=self.name,
            convert=decision.convert,
            reason=decision.reason.value,
            directory=decision.matched_directory,
        )
        return decision.convert

    def converted_to_bazel(self, module: ModuleNode) -> bool:
        """Whether module is available to Bazel, generated or hand-authored."""
        return module.has_handcrafted_label or self.decide(module).convert

    # Providers

    def set_provider(self, key: ProviderKey[T], value: T) -> None:
        self.module.providers.set(key, value, self.phase)

    def provider(self, key: ProviderKey[T]) -> T:
        return self.module.providers.get(key)

    def other_module_provider(self, dep: ModuleNode, key: ProviderKey[T]) -> T:
        """Read a provider published by a direct dependency.

        Raises:
            ProviderOrderingError: If dep is not a direct dependency or has not
                published key.
        """
        if not self.graph.has_edge(self.name, dep.name):
            raise ProviderOrderingError(
                message=f'"{dep.name}" is not a direct dependency of "{self.name}"',
                module_name=self.name,
                provider=key.name,
            )
        return dep.providers.get(key)

    def has_other_module_provider(self, dep: ModuleNode, key: ProviderKey[Any]) -> bool:
        return self.graph.has_edge(self.name, dep.name) and dep.providers.has(key)

    # Targets

    def create_target(
        self,
        rule_class: str,
        name: str,
        attrs: dict[str, Any] | None = None,
        load_location: str | None = None,
        directory: str | None = None,
    ) -> BazelTarget:
        """Create a Bazel target for this module.

        Args:
            rule_class: Bazel rule class.
            name: Target name.
            attrs: Rule attributes.
            load_location: Starlark file defining rule_class, if not native.
            directory: Package to emit into; defaults to the module's directory.

        Raises:
            TargetDirectoryError: If directory is another directory without a
                blueprint file.
        """
        target_dir = self.module_dir if directory is None else directory
        if target_dir != self.module_dir and not self.fs.exists(join_path(target_dir, BLUEPRINT_FILE)):
            raise TargetDirectoryError(
                message=(
                    f"Cannot create a BazelTarget in dir: {target_dir} "
                    f"since it does not contain an {BLUEPRINT_FILE} file"
                ),
                module_name=self.name,
                phase=self.phase,
                directory=target_dir,
            )
        target = BazelTarget(
            name=name,
            rule_class=rule_class,
            directory=target_dir,
            module_name=self.name,
            load_location=load_location,
            attrs=dict(attrs or {}),
        )
        self.targets.append(target)
        self.module.status.targets.append(
            TargetInfo(name=name, rule_class=rule_class, directory=target_dir)
        )
        return target
