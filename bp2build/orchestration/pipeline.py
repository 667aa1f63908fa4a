"""
Conversion pipeline orchestration.

Runs the standard phases over a module graph:

1. deps                    (bottom-up)  declared and path dependencies
2. bp2build_conversion     (top-down)   targets for modules that convert
   or api_bp2build_conversion in API mode
3. mixed_builds_queue      (bottom-up)  only when mixed builds are enabled
4. mixed_builds_process    (bottom-up)

and then gathers the emitted targets per directory, dropping modules whose
dependencies did not convert.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Iterable

from pydantic import BaseModel, Field

from ..allowlist.config import Bp2BuildAllowlist
from ..core.config import BuildMode, Config, get_config
from ..core.exceptions import UnresolvedReferenceError
from ..core.logging import bind_context, clear_context, get_logger
from ..core.types import SchedulerRun
from ..graph.context import ConversionContext
from ..graph.host import ModuleGraph
from ..graph.scheduler import MutatorScheduler, Phase, PhaseOrder
from ..mixed.bridge import ExternalExecutor, MixedBuildLog, process_external_responses, queue_external_queries
from ..models.label import TOP_LEVEL_DIR, parse_module_reference
from ..models.module import DependencyTag, ModuleNode, ProviderKey
from ..models.target import BazelTarget
from ..paths.boundary import BUILD_FILES, join_path
from .metrics import CodegenMetrics

logger = get_logger(__name__)

#: Targets emitted by a module's conversion step.
GENERATED_TARGETS: ProviderKey[tuple] = ProviderKey("bp2build_targets", tuple)

_TARGET_NAME = re.compile(r"""\bname\s*=\s*["']([^"']+)["']""")


class ConversionResult(BaseModel):
    """Outcome of a pipeline run."""

    model_config = {"arbitrary_types_allowed": True}

    run: SchedulerRun
    targets_by_dir: dict[str, list[BazelTarget]] = Field(default_factory=dict)
    errors: dict[str, list[str]] = Field(
        default_factory=dict, description="Module name to the errors reported against it"
    )
    dropped: dict[str, str] = Field(
        default_factory=dict, description="Converted modules left out because of their dependencies"
    )
    mixed_build_enabled: list[str] = Field(default_factory=list)
    metrics: CodegenMetrics = Field(default_factory=CodegenMetrics)

    @property
    def success(self) -> bool:
        return not self.errors

    def targets(self, directory: str) -> list[BazelTarget]:
        return self.targets_by_dir.get(directory, [])

    def render(self, directory: str) -> str:
        """Render the BUILD file contents generated for directory."""
        targets = self.targets(directory)
        loads = sorted({target.load_statement() for target in targets if target.load_location})
        blocks = [target.render() for target in targets]
        if loads:
            blocks.insert(0, "\n".join(loads))
        return "\n\n".join(blocks) + "\n" if blocks else ""


def deps_step(ctx: ConversionContext) -> None:
    """Register declared dependencies and module references in path properties."""
    behavior = ctx.behavior
    behavior.deps(ctx)
    for prop in behavior.path_properties:
        for value in _strings(ctx.module.prop(prop)):
            try:
                reference = parse_module_reference(value)
            except UnresolvedReferenceError as e:
                ctx.property_error(prop, e.message)
                continue
            if reference is None:
                continue
            name = reference.name.rsplit(":", 1)[-1] if reference.name.startswith("//") else reference.name
            ctx.add_dependency(DependencyTag.OUTPUT_OF, name)


def conversion_step(ctx: ConversionContext) -> None:
    """Convert the module if the allowlist says so.

    Targets are published only when conversion reported no errors.
    """
    if not ctx.should_convert():
        return
    if ctx.config.conversion.build_mode == BuildMode.API_BP2BUILD:
        ctx.behavior.convert_api(ctx)
    else:
        ctx.behavior.convert(ctx)
    if ctx.errors:
        return
    ctx.set_provider(GENERATED_TARGETS, tuple(ctx.targets))


def _strings(value: object) -> Iterable[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [item for item in value if isinstance(item, str)]
    return []


class Bp2BuildPipeline:
    """Converts a module graph into Bazel targets."""

    def __init__(
        self,
        graph: ModuleGraph,
        config: Config | None = None,
        allowlist: Bp2BuildAllowlist | None = None,
        external: ExternalExecutor | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            graph: Loaded module graph; its registry supplies the behaviours.
            config: Run configuration; defaults to get_config().
            allowlist: Allowlist tables; defaults to an empty allowlist.
            external: Executor answering mixed-build queries.
        """
        self.graph = graph
        self.config = config or get_config()
        self.allowlist = allowlist or Bp2BuildAllowlist()
        self.external = external
        self.mixed_log = MixedBuildLog()

    def _context(self, graph: ModuleGraph, module_name: str, phase: str) -> ConversionContext:
        return ConversionContext(
            graph,
            graph.module(module_name),
            phase,
            self.config,
            self.allowlist,
            external=self.external,
            mixed_log=self.mixed_log,
        )

    def phases(self) -> list[Phase]:
        """The phases this pipeline runs, in order."""
        conversion = (
            "api_bp2build_conversion"
            if self.config.conversion.build_mode == BuildMode.API_BP2BUILD
            else "bp2build_conversion"
        )
        phases = [
            Phase("deps", PhaseOrder.BOTTOM_UP, deps_step),
            Phase(conversion, PhaseOrder.TOP_DOWN, conversion_step),
        ]
        if self.config.mixed_builds.enabled and self.external is not None:
            phases.append(
                Phase(
                    "mixed_builds_queue",
                    PhaseOrder.BOTTOM_UP,
                    queue_external_queries,
                    on_complete=self.external.invoke,
                )
            )
            phases.append(Phase("mixed_builds_process", PhaseOrder.BOTTOM_UP, process_external_responses))
        return phases

    def run(self) -> ConversionResult:
        """Run all phases and gather the result.

        Raises:
            ProviderOrderingError: If a module type reads providers out of order.
            GraphCycleError: If the dependency graph has a cycle.
        """
        run_id = str(uuid.uuid4())[:8]
        bind_context(run_id=run_id)
        logger.info("pipeline_started", modules=len(self.graph), build_mode=self.config.conversion.build_mode.value)

        try:
            scheduler = MutatorScheduler(self.graph, self.config, self.allowlist, context_factory=self._context)
            run = scheduler.run(self.phases(), run_id=run_id)
            result = self._collect(run)

            logger.info(
                "pipeline_finished",
                converted=result.metrics.converted_count,
                targets=result.metrics.generated_target_count,
                errors=len(result.errors),
                dropped=len(result.dropped),
            )
            return result
        finally:
            clear_context()

    def _collect(self, run: SchedulerRun) -> ConversionResult:
        result = ConversionResult(run=run, mixed_build_enabled=self.mixed_log.enabled_modules)
        validity: dict[str, bool] = {}
        existing: dict[str, set[str]] = {}

        for module in self.graph.modules():
            result.metrics.add_module(module)
            if not module.providers.has(GENERATED_TARGETS):
                result.metrics.add_unconverted(module, _unconverted_reason(module))
                continue
            if not self._transitively_valid(module, validity, set()):
                reason = _dropped_reason(module)
                result.dropped[module.name] = reason
                result.metrics.add_unconverted(module, reason)
                logger.info("module_dropped", module=module.name, reason=reason)
                continue

            emitted: list[BazelTarget] = []
            for target in module.providers.get(GENERATED_TARGETS):
                if target.name in self._existing_targets(target.directory, existing):
                    logger.debug("target_already_defined", module=module.name, target=target.label)
                    continue
                result.targets_by_dir.setdefault(target.directory, []).append(target)
                emitted.append(target)
            result.metrics.add_converted(module, emitted)

        converted = set(result.metrics.converted_modules)
        for name in self.config.conversion.force_enabled_modules:
            if name not in converted:
                result.errors.setdefault(name, []).append(f"Force Enabled Module {name} not converted")

        for module in self.graph.modules():
            if module.status.errors:
                result.errors.setdefault(module.name, []).extend(module.status.errors)
        return result

    def _transitively_valid(self, module: ModuleNode, memo: dict[str, bool], visiting: set[str]) -> bool:
        """Whether module and everything it references through conversion edges converted."""
        conversion = self.config.conversion
        if conversion.allow_missing_dependencies:
            return True
        if module.name in memo:
            return memo[module.name]
        if module.name in visiting:
            return True

        stubbed = set(conversion.stubbed_build_definitions)
        if module.name in stubbed or module.name in conversion.dependency_exemptions.skip_edges_from:
            valid = True
        elif module.status.errors:
            valid = False
        elif not (module.providers.has(GENERATED_TARGETS) or module.has_handcrafted_label):
            valid = False
        elif module.status.missing_deps:
            valid = False
        elif any(dep not in stubbed for dep in module.status.unconverted_deps):
            valid = False
        else:
            visiting.add(module.name)
            valid = all(
                self._transitively_valid(dep, memo, visiting)
                for dep in self.graph.direct_deps(module.name, DependencyTag.BP2BUILD)
            )
            visiting.discard(module.name)
        memo[module.name] = valid
        return valid

    def _existing_targets(self, directory: str, cache: dict[str, set[str]]) -> set[str]:
        """Target names already defined by a kept BUILD file in directory."""
        if directory not in cache:
            names: set[str] = set()
            package = "" if directory == TOP_LEVEL_DIR else directory
            if self.allowlist.should_keep_existing_build_file_for_dir(package):
                for build_file in BUILD_FILES:
                    path = join_path(package, build_file)
                    if self.graph.fs.exists(path):
                        names.update(_TARGET_NAME.findall(self.graph.fs.read_text(path)))
            cache[directory] = names
        return cache[directory]


def _unconverted_reason(module: ModuleNode) -> str:
    if module.status.errors:
        return "error"
    if module.has_handcrafted_label:
        return "handcrafted"
    if not module.bazel_module.can_convert:
        return "type not convertible"
    return "not allowlisted"


def _dropped_reason(module: ModuleNode) -> str:
    if module.status.missing_deps:
        return "missing dependencies: " + ", ".join(module.status.missing_deps)
    if module.status.unconverted_deps:
        return "unconverted dependencies: " + ", ".join(module.status.unconverted_deps)
    return "transitive dependency did not convert"
