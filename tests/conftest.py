"""Test configuration for bp2build."""

import pytest

from bp2build.allowlist import Bp2BuildAllowlist
from bp2build.core.config import Config, ConversionConfig, MixedBuildConfig, SchedulerConfig
from bp2build.graph import ConversionContext, ModuleBehavior, ModuleGraph, ModuleTypeRegistry
from bp2build.mixed import COMMON_CONFIG, RequestType
from bp2build.models import Capability, DependencyTag, ModuleNode, ProviderKey
from bp2build.paths import InMemoryFileSystem
from bp2build.paths.expander import bazel_module_label

OUTPUT_FILES = ProviderKey("output_files", list)


class FileGroup(ModuleBehavior):
    """A filegroup: sources only, buildable externally."""

    capabilities = frozenset({Capability.CONVERTIBLE, Capability.MIXED_BUILD})
    path_properties = ("srcs", "exclude_srcs")

    def convert(self, ctx: ConversionContext) -> None:
        srcs = ctx.expander.label_for_module_src_excludes(
            ctx.module.prop("srcs", []), ctx.module.prop("exclude_srcs", [])
        )
        ctx.create_target("filegroup", ctx.name, {"srcs": srcs})

    def queue_external_query(self, ctx: ConversionContext) -> None:
        ctx.external.queue_query(bazel_module_label(ctx.module), RequestType.OUTPUT_FILES, COMMON_CONFIG)

    def process_query_response(self, ctx: ConversionContext) -> None:
        files = ctx.external.get_output_files(bazel_module_label(ctx.module))
        ctx.set_provider(OUTPUT_FILES, files)


class CustomLibrary(ModuleBehavior):
    """A library with declared deps and sources."""

    capabilities = frozenset({Capability.CONVERTIBLE})
    path_properties = ("srcs",)

    def deps(self, ctx: ConversionContext) -> None:
        ctx.add_dependency(DependencyTag.DEPS, *ctx.module.prop("deps", []))

    def convert(self, ctx: ConversionContext) -> None:
        attrs = {
            "srcs": ctx.expander.label_for_module_src(ctx.module.prop("srcs", [])),
            "deps": ctx.expander.label_for_module_deps(ctx.module.prop("deps", [])),
        }
        ctx.create_target("custom", ctx.name, attrs, load_location="//build/bazel/rules:custom.bzl")


class ApiSurface(ModuleBehavior):
    """A module contributing to an API surface."""

    capabilities = frozenset({Capability.CONVERTIBLE, Capability.API_PROVIDER})

    def convert(self, ctx: ConversionContext) -> None:
        ctx.create_target("api_surface", ctx.name)

    def convert_api(self, ctx: ConversionContext) -> None:
        ctx.create_target("api_contribution", f"{ctx.name}.contribution")


class NativeOnly(ModuleBehavior):
    """A module type that never converts."""


def make_config(
    allow_missing_dependencies: bool = False,
    mixed_allowlist: list[str] | None = None,
    max_workers: int = 4,
    **conversion,
) -> Config:
    """Build a configuration for tests without reading the environment.

    Args:
        allow_missing_dependencies: Emit targets despite missing dependencies.
        mixed_allowlist: Enables mixed builds for these modules when given.
        max_workers: Scheduler pool size.
        **conversion: Further ConversionConfig fields.

    Returns:
        Config: A frozen configuration.
    """
    return Config(
        scheduler=SchedulerConfig(max_workers=max_workers),
        conversion=ConversionConfig(allow_missing_dependencies=allow_missing_dependencies, **conversion),
        mixed_builds=MixedBuildConfig(
            enabled=mixed_allowlist is not None, allowlist=mixed_allowlist or []
        ),
    )


@pytest.fixture
def registry():
    """Create a registry of fake module types.

    Returns:
        ModuleTypeRegistry: filegroup, custom, api_surface and native_only types.
    """
    registry = ModuleTypeRegistry()
    registry.register("filegroup", FileGroup())
    registry.register("custom", CustomLibrary())
    registry.register("api_surface", ApiSurface())
    registry.register("native_only", NativeOnly())
    return registry


@pytest.fixture
def fs():
    """Create an empty in-memory source tree."""
    return InMemoryFileSystem()


@pytest.fixture
def graph(fs, registry):
    """Create an empty module graph over the in-memory source tree."""
    return ModuleGraph(fs, registry)


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def allowlist():
    return Bp2BuildAllowlist()


@pytest.fixture
def make_context(graph, config, allowlist):
    """Create a factory for conversion contexts of modules in the graph.

    Returns:
        Callable: (module_name, phase="test", config=None, allowlist=None) -> ConversionContext.
    """

    def factory(module_name, phase="test", config_override=None, allowlist_override=None):
        return ConversionContext(
            graph,
            graph.module(module_name),
            phase,
            config_override or config,
            allowlist_override or allowlist,
        )

    return factory


def opted_in(name, module_type="filegroup", directory=".", **properties):
    """Create a module in the top-level directory that opts into conversion."""
    module = ModuleNode(name=name, module_type=module_type, directory=directory, properties=properties)
    module.bazel_module = module.bazel_module.model_copy(update={"bp2build_available": True})
    return module
