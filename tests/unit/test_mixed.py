"""Unit tests for the mixed-execution bridge."""

import pytest

from bp2build.core.exceptions import ProviderOrderingError
from bp2build.graph import ConversionContext
from bp2build.mixed import (
    COMMON_CONFIG,
    ConfigKey,
    MixedBuildLog,
    MockExternalExecutor,
    RequestType,
    config_key,
    mixed_build_possible,
)
from bp2build.models import ModuleNode
from bp2build.orchestration import Bp2BuildPipeline

from conftest import OUTPUT_FILES, FileGroup, make_config, opted_in


class OptionalFileGroup(FileGroup):
    """A filegroup that can opt out of mixed builds."""

    def is_mixed_build_supported(self, ctx):
        return not ctx.module.prop("mixed_build_incompatible", False)


@pytest.fixture
def executor():
    return MockExternalExecutor(output_files={"//:fg": ["out/fg.txt"], "//:other": ["out/other.txt"]})


def run_mixed(graph, executor, allowlist_names=("fg",), **config):
    pipeline = Bp2BuildPipeline(graph, make_config(mixed_allowlist=list(allowlist_names), **config), external=executor)
    return pipeline, pipeline.run()


class TestMixedBuildsEnabled:
    """Tests for which modules are handed to the external executor."""

    def test_works(self, graph, executor):
        """Test that an allowlisted converted module is queued and answered."""
        graph.add_module(opted_in("fg"))
        pipeline, result = run_mixed(graph, executor)

        assert result.mixed_build_enabled == ["fg"]
        assert pipeline.mixed_log.is_enabled("fg")
        assert graph.module("fg").providers.get(OUTPUT_FILES) == ["out/fg.txt"]
        assert executor.invocations == 1

    def test_missing_deps(self, graph, executor):
        """Test that a module with missing dependencies is never queued."""
        graph.add_module(opted_in("fg", srcs=[":ghost"]))
        pipeline, result = run_mixed(graph, executor, allow_missing_dependencies=True)

        assert graph.module("fg").status.missing_deps == ["ghost"]
        assert result.mixed_build_enabled == []
        assert pipeline.mixed_log.disabled_modules == []
        assert executor.invocations == 0

    def test_windows_os(self, graph, executor):
        module = opted_in("fg")
        module.os = "windows"
        graph.add_module(module)
        pipeline, result = run_mixed(graph, executor)

        assert result.mixed_build_enabled == []
        assert pipeline.mixed_log.disabled_modules == ["fg"]
        assert not graph.module("fg").providers.has(OUTPUT_FILES)

    def test_mixed_build_incompatible(self, graph, registry, executor):
        """Test the per-module escape hatch of the module type."""
        registry.register("optional_filegroup", OptionalFileGroup())
        graph.add_module(opted_in("fg", module_type="optional_filegroup", mixed_build_incompatible=True))
        pipeline, result = run_mixed(graph, executor)

        assert result.mixed_build_enabled == []
        assert pipeline.mixed_log.disabled_modules == []

    def test_bp2build_available_false(self, graph, executor):
        """Test that a module which does not convert cannot be built externally."""
        module = ModuleNode(name="fg", module_type="filegroup")
        module.bazel_module = module.bazel_module.model_copy(update={"bp2build_available": False})
        graph.add_module(module)
        pipeline, result = run_mixed(graph, executor)

        assert result.mixed_build_enabled == []
        assert pipeline.mixed_log.disabled_modules == ["fg"]

    def test_not_in_allowlist(self, graph, executor):
        graph.add_module(opted_in("fg"))
        _, result = run_mixed(graph, executor, allowlist_names=["other"])
        assert result.mixed_build_enabled == []

    def test_disabled_mixed_builds_skip_phases(self, graph, executor, allowlist):
        graph.add_module(opted_in("fg"))
        pipeline = Bp2BuildPipeline(graph, make_config(), allowlist, external=executor)
        assert [phase.name for phase in pipeline.phases()] == ["deps", "bp2build_conversion"]
        pipeline.run()
        assert executor.invocations == 0

    def test_queries_answered_in_one_batch(self, graph, executor):
        """Test that all modules' queries are answered by a single invocation."""
        graph.add_modules([opted_in("fg"), opted_in("other")])
        _, result = run_mixed(graph, executor, allowlist_names=["fg", "other"])

        assert result.mixed_build_enabled == ["fg", "other"]
        assert executor.invocations == 1
        assert graph.module("other").providers.get(OUTPUT_FILES) == ["out/other.txt"]


class TestMixedBuildPossible:
    """Tests for the mixed build predicate on a single module."""

    def context(self, graph, name, config, allowlist):
        return ConversionContext(graph, graph.module(name), "test", config, allowlist, mixed_log=MixedBuildLog())

    def test_disabled_module(self, graph, allowlist):
        module = opted_in("fg")
        module.enabled = False
        graph.add_module(module)
        assert not mixed_build_possible(self.context(graph, "fg", make_config(mixed_allowlist=["fg"]), allowlist))

    def test_handcrafted_module(self, graph, allowlist):
        """Test that a module with a hand-authored label counts as converted."""
        module = ModuleNode(name="fg", module_type="native_only")
        module.bazel_module = module.bazel_module.model_copy(update={"label": "//hand:fg"})
        graph.add_module(module)
        assert mixed_build_possible(self.context(graph, "fg", make_config(mixed_allowlist=["fg"]), allowlist))

    def test_config_key(self, graph, allowlist, config):
        module = opted_in("fg")
        module.arch = "arm64"
        graph.add_module(module)
        assert config_key(self.context(graph, "fg", config, allowlist)) == ConfigKey("arm64", "android")


class TestMockExternalExecutor:
    """Tests for the canned-response executor."""

    def test_unanswered_query(self):
        """Test that reading before invoke() is an ordering error."""
        executor = MockExternalExecutor(output_files={"//a:b": ["x"]})
        executor.queue_query("//a:b", RequestType.OUTPUT_FILES, COMMON_CONFIG)
        with pytest.raises(ProviderOrderingError):
            executor.get_output_files("//a:b")

    def test_duplicate_queries_answered_once(self):
        executor = MockExternalExecutor(output_files={"//a:b": ["x"]})
        executor.queue_query("//a:b", RequestType.OUTPUT_FILES, COMMON_CONFIG)
        executor.queue_query("//a:b", RequestType.OUTPUT_FILES, COMMON_CONFIG)
        assert len(executor.pending) == 1
        executor.invoke()
        assert executor.pending == []
        assert executor.get_output_files("//a:b") == ["x"]

    def test_configuration_specific_answer(self):
        """Test that "label|arch|os" keys override the plain label."""
        arm = ConfigKey("arm64", "android")
        executor = MockExternalExecutor(cc_info={"//a:b": "common", "//a:b|arm64|android": "arm"})
        executor.queue_query("//a:b", RequestType.CC_INFO, arm)
        executor.queue_query("//a:b", RequestType.CC_INFO, COMMON_CONFIG)
        executor.invoke()
        assert executor.result("//a:b", RequestType.CC_INFO, arm) == "arm"
        assert executor.result("//a:b", RequestType.CC_INFO, COMMON_CONFIG) == "common"

    def test_invoke_without_queries(self):
        executor = MockExternalExecutor()
        executor.invoke()
        assert executor.invocations == 0

    def test_config_key_str(self):
        assert str(COMMON_CONFIG) == "common|common_os"
