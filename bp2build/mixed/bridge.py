"""
Mixed-execution bridge.

In a mixed build, some converted modules are built by the external build
system and their outputs fed back into the native graph. Each such module
queues a query during one phase, all queries are answered in one batch at the
barrier, and the module reads its answer in the next phase and publishes it
as a provider.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..core.exceptions import ProviderOrderingError
from ..core.logging import get_logger
from ..graph.context import ConversionContext
from ..models.module import Capability

logger = get_logger(__name__)


@dataclass(frozen=True)
class ConfigKey:
    """Configuration a query is answered for."""

    arch: str
    os: str

    def __str__(self) -> str:
        return f"{self.arch}|{self.os}"


COMMON_CONFIG = ConfigKey(arch="common", os="common_os")


class RequestType(str, Enum):
    """Kinds of information a module can ask the external executor for."""

    OUTPUT_FILES = "output_files"
    CC_INFO = "cc_info"


QueryKey = tuple[str, RequestType, ConfigKey]


class ExternalExecutor(ABC):
    """Batches queries to the external build system.

    Queries can be queued from concurrent module steps. Answers are only
    available after invoke() has run.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._queued: list[QueryKey] = []
        self._results: dict[QueryKey, Any] = {}

    def queue_query(self, label: str, request_type: RequestType, key: ConfigKey) -> None:
        """Queue a query; duplicates are answered once."""
        query = (label, request_type, key)
        with self._lock:
            if query not in self._queued and query not in self._results:
                self._queued.append(query)

    @property
    def pending(self) -> list[QueryKey]:
        with self._lock:
            return list(self._queued)

    def invoke(self) -> None:
        """Answer every queued query."""
        with self._lock:
            queued, self._queued = self._queued, []
        if not queued:
            return
        answers = self.answer(queued)
        with self._lock:
            self._results.update(answers)
        logger.info("external_queries_answered", count=len(answers))

    @abstractmethod
    def answer(self, queries: list[QueryKey]) -> dict[QueryKey, Any]:
        """Answer a batch of queries.

        Args:
            queries: Queued (label, request type, config) triples.

        Returns:
            An answer for every query.
        """
        ...

    def result(self, label: str, request_type: RequestType, key: ConfigKey) -> Any:
        """Get the answer to a query.

        Raises:
            ProviderOrderingError: If the query was never answered.
        """
        with self._lock:
            query = (label, request_type, key)
            if query not in self._results:
                raise ProviderOrderingError(
                    message=f"query for {request_type.value} of '{label}' ({key}) was never answered",
                    module_name=label,
                    provider=request_type.value,
                )
            return self._results[query]

    def get_output_files(self, label: str, key: ConfigKey = COMMON_CONFIG) -> list[str]:
        return list(self.result(label, RequestType.OUTPUT_FILES, key))


class MockExternalExecutor(ExternalExecutor):
    """Answers queries from canned responses.

    Responses are keyed by label, or by "label|arch|os" to answer one
    configuration differently.
    """

    def __init__(
        self,
        output_files: Mapping[str, list[str]] | None = None,
        cc_info: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__()
        self.responses: dict[RequestType, dict[str, Any]] = {
            RequestType.OUTPUT_FILES: dict(output_files or {}),
            RequestType.CC_INFO: dict(cc_info or {}),
        }
        self.invocations = 0

    def answer(self, queries: list[QueryKey]) -> dict[QueryKey, Any]:
        self.invocations += 1
        answers: dict[QueryKey, Any] = {}
        for label, request_type, key in queries:
            canned = self.responses[request_type]
            specific = f"{label}|{key}"
            answers[(label, request_type, key)] = canned.get(specific, canned.get(label))
        return answers


class MixedBuildLog:
    """Which modules were found to be mixed-build enabled."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._enabled: set[str] = set()
        self._disabled: set[str] = set()

    def record(self, module_name: str, enabled: bool) -> None:
        with self._lock:
            (self._enabled if enabled else self._disabled).add(module_name)

    def is_enabled(self, module_name: str) -> bool:
        with self._lock:
            return module_name in self._enabled

    @property
    def enabled_modules(self) -> list[str]:
        with self._lock:
            return sorted(self._enabled)

    @property
    def disabled_modules(self) -> list[str]:
        with self._lock:
            return sorted(self._disabled)


def mixed_build_possible(ctx: ConversionContext) -> bool:
    """Whether the module could be replaced by an external target."""
    module = ctx.module
    if module.os == ctx.config.mixed_builds.excluded_os:
        return False
    if not module.enabled:
        return False
    if not ctx.converted_to_bazel(module):
        return False
    return module.name in ctx.config.mixed_builds.allowlist


def mixed_builds_enabled(ctx: ConversionContext) -> bool:
    """Like mixed_build_possible(), and records the outcome in the run's MixedBuildLog."""
    enabled = mixed_build_possible(ctx)
    if ctx.mixed_log is not None:
        ctx.mixed_log.record(ctx.name, enabled)
    logger.debug("mixed_build_decision", module=ctx.name, enabled=enabled)
    return enabled


def config_key(ctx: ConversionContext) -> ConfigKey:
    return ConfigKey(arch=ctx.module.arch, os=ctx.module.os)


def queue_external_queries(ctx: ConversionContext) -> None:
    """Phase step queueing the module's queries when it is mixed-build enabled."""
    if ctx.external is None or Capability.MIXED_BUILD not in ctx.capabilities:
        return
    if ctx.module.status.missing_deps or not ctx.behavior.is_mixed_build_supported(ctx):
        return
    if mixed_builds_enabled(ctx):
        ctx.behavior.queue_external_query(ctx)


def process_external_responses(ctx: ConversionContext) -> None:
    """Phase step letting queued modules publish their answers."""
    if ctx.external is None or ctx.mixed_log is None:
        return
    if ctx.mixed_log.is_enabled(ctx.name):
        ctx.behavior.process_query_response(ctx)
