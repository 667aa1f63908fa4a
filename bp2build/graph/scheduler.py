"""
Graph mutation scheduler.

Runs an ordered list of phases over the module graph. Each phase visits every
module once, either in dependency order (generation by generation, modules of
one generation in parallel) or all at once. Phases are separated by full
barriers: edges requested during a phase are committed only after all of its
steps have finished.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from ..allowlist.config import Bp2BuildAllowlist
from ..core.config import Config
from ..core.exceptions import ModuleError
from ..core.logging import get_logger, module_context
from ..core.types import PhaseResult, PhaseStatus, SchedulerRun
from .context import ConversionContext
from .host import ModuleGraph

logger = get_logger(__name__)


class PhaseOrder(str, Enum):
    """Order in which a phase visits modules."""

    BOTTOM_UP = "bottom_up"
    TOP_DOWN = "top_down"
    UNORDERED = "unordered"


@dataclass(frozen=True)
class Phase:
    """A named pass over every module."""

    name: str
    order: PhaseOrder
    step: Callable[[ConversionContext], None]
    #: Called once after the barrier, e.g. to answer queued external queries.
    on_complete: Callable[[], None] | None = None


class MutatorScheduler:
    """Runs phases over a module graph.

    A module fails when its step raises a ModuleError or records errors on
    its context. Failed modules, and everything that depends on them, are
    skipped by all later steps. Any other exception aborts the run.
    """

    def __init__(
        self,
        graph: ModuleGraph,
        config: Config,
        allowlist: Bp2BuildAllowlist,
        context_factory: Callable[[ModuleGraph, str, str], ConversionContext] | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            graph: Graph to run over.
            config: Run configuration.
            allowlist: Allowlist tables.
            context_factory: Builds the context for (graph, module, phase);
                defaults to a plain ConversionContext.
        """
        self.graph = graph
        self.config = config
        self.allowlist = allowlist
        self._context_factory = context_factory or self._default_context
        self.failed: dict[str, str] = {}

    def _default_context(self, graph: ModuleGraph, module_name: str, phase: str) -> ConversionContext:
        return ConversionContext(graph, graph.module(module_name), phase, self.config, self.allowlist)

    def run(self, phases: list[Phase], run_id: str | None = None) -> SchedulerRun:
        """Run phases in order.

        Args:
            phases: Phases to run.
            run_id: Identifier for the run; generated if omitted.

        Returns:
            One PhaseResult per phase that ran.

        Raises:
            ProviderOrderingError: If a step reads or writes a provider out of order.
            GraphCycleError: If an ordered phase runs over a cyclic graph.
        """
        run = SchedulerRun(run_id=run_id or str(uuid.uuid4())[:8])
        logger.info("scheduler_started", run_id=run.run_id, phases=[phase.name for phase in phases])

        for phase in phases:
            try:
                result = self.run_phase(phase)
            except Exception:
                run.final_status = PhaseStatus.FAILED
                run.completed_at = datetime.now(timezone.utc)
                raise
            run.phases.append(result)
            if self.config.scheduler.fail_fast and result.failed_modules:
                logger.error("scheduler_stopped", phase=phase.name, failed=result.failed_modules)
                run.final_status = PhaseStatus.FAILED
                break
        else:
            run.final_status = PhaseStatus.COMPLETED

        run.completed_at = datetime.now(timezone.utc)
        logger.info(
            "scheduler_finished",
            run_id=run.run_id,
            status=run.final_status.value,
            failed_modules=len(self.failed),
        )
        return run

    def run_phase(self, phase: Phase) -> PhaseResult:
        """Run one phase and commit the edges its steps requested."""
        result = PhaseResult(phase_name=phase.name, status=PhaseStatus.RUNNING)
        logger.info("phase_started", phase=phase.name, order=phase.order.value)

        try:
            if phase.order == PhaseOrder.UNORDERED:
                waves = [[module.name for module in self.graph.modules()]]
            else:
                waves = self.graph.generations(
                    dependencies_first=phase.order == PhaseOrder.BOTTOM_UP, phase=phase.name
                )

            processed = 0
            skipped = 0
            failed_now: list[str] = []
            contexts: dict[str, ConversionContext] = {}

            with ThreadPoolExecutor(max_workers=self.config.scheduler.max_workers) as pool:
                for wave in waves:
                    runnable = [name for name in wave if name not in self.failed]
                    skipped += len(wave) - len(runnable)
                    futures: dict[str, Future[ConversionContext]] = {
                        name: pool.submit(self._run_step, phase, name) for name in runnable
                    }
                    # Collected in wave order so failures are recorded deterministically.
                    for name, future in futures.items():
                        ctx = future.result()
                        contexts[name] = ctx
                        processed += 1
                        if ctx.errors:
                            failed_now.append(name)
                            self._fail(name, ctx.errors[0], phase.name)

            self._commit_edges(contexts)
            # Edges requested alongside a failure only exist after the barrier.
            for name in failed_now:
                self._propagate(name)
            if phase.on_complete is not None:
                phase.on_complete()
        except Exception as e:
            result.mark_failed(str(e))
            logger.error("phase_failed", phase=phase.name, error=str(e))
            raise

        result.generations = len(waves)
        result.mark_completed(processed, skipped, failed_now)
        logger.info(
            "phase_completed",
            phase=phase.name,
            processed=processed,
            skipped=skipped,
            failed=len(failed_now),
            duration_seconds=result.duration_seconds,
        )
        return result

    def _run_step(self, phase: Phase, module_name: str) -> ConversionContext:
        ctx = self._context_factory(self.graph, module_name, phase.name)
        with module_context(module_name, phase.name):
            try:
                phase.step(ctx)
            except ModuleError as e:
                ctx.module_error(e.message)
        return ctx

    def _fail(self, module_name: str, reason: str, phase: str) -> None:
        if module_name in self.failed:
            return
        self.failed[module_name] = reason
        self._propagate(module_name)
        logger.warning("module_failed", module=module_name, phase=phase, reason=reason)

    def _propagate(self, module_name: str) -> None:
        for dependent in self.graph.transitive_dependents(module_name):
            self.failed.setdefault(dependent, f'depends on failed module "{module_name}"')

    def _commit_edges(self, contexts: dict[str, ConversionContext]) -> None:
        # Insertion order of modules, then request order within a module.
        for module in self.graph.modules():
            ctx = contexts.get(module.name)
            if ctx is None:
                continue
            for tag, dependency in ctx.pending_edges:
                self.graph.add_dependency(module.name, tag, dependency)
