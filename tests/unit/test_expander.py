"""Unit tests for reference expansion."""

import pytest

from bp2build.core.exceptions import CrossPackageError
from bp2build.models import BazelModuleProperties, DependencyTag, Label, ModuleNode

from conftest import opted_in


@pytest.fixture
def tree(fs, graph):
    """Populate a small source tree and graph.

    Returns:
        ModuleGraph: Modules fg and lib2 in m, lib in other, plus special modules.
    """
    for path in ["m/Android.bp", "m/a.c", "m/b.c", "m/sub/c.c", "m/y/Android.bp", "m/y/d.c", "m/file.txt"]:
        fs.add_file(path)
    graph.add_modules(
        [
            ModuleNode(name="fg", module_type="filegroup", directory="m"),
            ModuleNode(name="lib2", module_type="filegroup", directory="m"),
            ModuleNode(name="lib", module_type="custom", directory="other"),
            opted_in("ready"),
            ModuleNode(name="framework-res", module_type="native_only", directory="frameworks/base/core/res"),
            ModuleNode(name="flags", module_type="java_aconfig_library", directory="a"),
            ModuleNode(name="prebuilt_tool", module_type="native_only", directory="p"),
            ModuleNode(
                name="hand",
                module_type="native_only",
                directory="h",
                bazel_module=BazelModuleProperties(label="//hand:crafted"),
            ),
            ModuleNode(name="libc", module_type="custom", directory="bionic"),
            ModuleNode(name="mke2fs.conf", module_type="native_only", directory="conf"),
        ]
    )
    return graph


class TestLabelForModuleSrc:
    """Tests for source list expansion."""

    def test_globs_literals_and_subpackages(self, tree, make_context):
        """Test globs, excludes and paths reaching into another package."""
        ctx = make_context("fg")
        labels = ctx.expander.label_for_module_src_excludes(["*.c", "sub/*.c", "y/d.c"], ["b.c"])
        assert labels.addresses == ["a.c", "sub/c.c", "//m/y:d.c"]
        assert labels.exclude_addresses == ["b.c"]

    def test_excluded_literal_dropped(self, tree, make_context):
        ctx = make_context("fg")
        labels = ctx.expander.label_for_module_src_excludes(["a.c", "b.c"], ["b.c"])
        assert labels.addresses == ["a.c"]

    def test_exclude_matches_other_spelling(self, tree, make_context):
        """Test that an exclude is compared by path, not by spelling."""
        ctx = make_context("fg")
        labels = ctx.expander.label_for_module_src_excludes(["a.c", "b.c", "./sub/../y/d.c"], ["./a.c", "y/d.c"])
        assert labels.addresses == ["b.c"]
        assert not set(labels.addresses) & set(labels.exclude_addresses)

    def test_expansion_is_idempotent(self, tree, make_context):
        """Test that expanding twice gives the same result."""
        ctx = make_context("fg")
        first = ctx.expander.label_for_module_src_excludes(["**/*.c", ":lib"], ["sub/*.c"])
        second = ctx.expander.label_for_module_src_excludes(["**/*.c", ":lib"], ["sub/*.c"])
        assert first == second
        assert "sub/c.c" not in first.addresses

    def test_module_reference(self, tree, make_context):
        """Test that a module reference resolves to its label and records an edge."""
        ctx = make_context("fg")
        labels = ctx.expander.label_for_module_src([":lib"])
        assert labels.addresses == ["//other:lib"]
        assert labels.includes[0].original_module_name == ":lib"
        assert ctx.pending_edges == [(DependencyTag.BP2BUILD, "lib")]
        assert tree.module("fg").status.unconverted_deps == ["lib"]

    def test_converted_dependency_not_unconverted(self, tree, make_context):
        ctx = make_context("fg")
        ctx.expander.label_for_module_src([":ready"])
        assert tree.module("fg").status.unconverted_deps == []

    def test_same_package_shortened(self, tree, make_context):
        """Test that a module in the caller's package gets a short label."""
        ctx = make_context("fg")
        assert ctx.expander.label_for_module_src([":lib2"]).addresses == [":lib2"]

    def test_missing_module(self, tree, make_context):
        """Test that an unknown module yields the missing dependency sentinel."""
        ctx = make_context("fg")
        labels = ctx.expander.label_for_module_src([":nope"])
        assert labels.addresses == [":nope__BP2BUILD__MISSING__DEP"]
        assert labels.includes[0].is_missing_dep
        assert tree.module("fg").status.missing_deps == ["nope"]
        assert ctx.pending_edges == []

    def test_excluded_module_reference(self, tree, make_context):
        """Test that an excluded reference is dropped from includes."""
        ctx = make_context("fg")
        labels = ctx.expander.label_for_module_src_excludes([":lib", "a.c"], [":lib"])
        assert labels.addresses == ["a.c"]
        assert labels.exclude_addresses == ["//other:lib"]

    def test_namespaced_reference(self, tree, make_context):
        ctx = make_context("fg")
        labels = ctx.expander.label_for_module_src(["//vendor/ns:lib"])
        assert labels.addresses == ["//other:lib"]
        assert labels.includes[0].original_module_name == "//vendor/ns:lib"

    def test_malformed_reference_is_module_error(self, tree, make_context):
        ctx = make_context("fg")
        assert ctx.expander.label_for_module_src([":lib{.tag", "a.c"]).addresses == ["a.c"]
        assert len(ctx.errors) == 1

    def test_single(self, tree, make_context):
        ctx = make_context("fg")
        assert ctx.expander.label_for_module_src_single("y/d.c") == Label("//m/y:d.c")
        assert ctx.expander.label_for_module_src_single("*.none") == Label("")

    def test_src_pattern_in_other_directory(self, tree, make_context):
        """Test globbing relative to an arbitrary directory."""
        ctx = make_context("lib")
        labels = ctx.expander.label_for_src_pattern_excludes("m", "y/*.c")
        assert labels.addresses == ["//m/y:d.c"]
        assert ctx.expander.label_for_src_pattern_excludes("m", "*.c", ["a.c"]).addresses == ["b.c"]


class TestModuleLabels:
    """Tests for labels of referenced modules."""

    def test_tag_passthrough_module(self, tree, make_context):
        """Test that framework-res keeps any output tag."""
        ctx = make_context("fg")
        labels = ctx.expander.label_for_module_src([":framework-res{.export-package.apk}"])
        assert labels.addresses == ["//frameworks/base/core/res:framework-res.export-package.apk"]

    def test_tag_passthrough_type(self, tree, make_context):
        """Test that only the configured tag is kept for a passthrough type."""
        ctx = make_context("fg")
        assert ctx.expander.label_for_module_src([":flags{.generated_srcjars}"]).addresses == [
            "//a:flags.generated_srcjars"
        ]
        assert ctx.expander.label_for_module_src([":flags{.other}"]).addresses == ["//a:flags"]

    def test_other_tags_dropped(self, tree, make_context):
        ctx = make_context("fg")
        assert ctx.expander.label_for_module_src([":lib{.out}"]).addresses == ["//other:lib"]

    def test_prebuilt_prefix_removed(self, tree, make_context):
        ctx = make_context("fg")
        assert ctx.expander.label_for_module_src([":prebuilt_tool"]).addresses == ["//p:tool"]

    def test_handcrafted_label(self, tree, make_context):
        """Test that a hand-authored label is used and counts as converted."""
        ctx = make_context("fg")
        assert ctx.expander.label_for_module_src([":hand"]).addresses == ["//hand:crafted"]
        assert tree.module("fg").status.unconverted_deps == []

    def test_exempt_module_records_no_edges(self, tree, make_context):
        """Test modules whose outgoing conversion edges are skipped."""
        ctx = make_context("libc")
        ctx.expander.label_for_module_src([":lib"])
        assert ctx.pending_edges == []

    def test_exempt_dependency_receives_no_edges(self, tree, make_context):
        ctx = make_context("fg")
        assert ctx.expander.label_for_module_src([":mke2fs.conf"]).addresses == ["//conf:mke2fs.conf"]
        assert ctx.pending_edges == []


class TestLabelForModuleDeps:
    """Tests for dependency list expansion."""

    def test_deps_deduplicated(self, tree, make_context):
        """Test that repeated names resolve once, keeping the first spelling."""
        ctx = make_context("fg")
        labels = ctx.expander.label_for_module_deps(["lib", "lib2", "lib"])
        assert labels.addresses == ["//other:lib", ":lib2"]
        assert labels.includes[0].original_module_name == "lib"

    def test_empty(self, tree, make_context):
        ctx = make_context("fg")
        assert ctx.expander.label_for_module_deps([]).is_empty()
        assert ctx.expander.label_for_module_deps(None).is_empty()

    def test_not_a_reference(self, tree, make_context):
        """Test that entries naming no module are module errors."""
        ctx = make_context("fg")
        assert ctx.expander.label_for_module_deps([""]).is_empty()
        assert ctx.errors == ['":", is not a module reference']

    def test_excludes(self, tree, make_context):
        ctx = make_context("fg")
        labels = ctx.expander.label_for_module_deps_excludes(["lib", "lib2"], ["lib2"])
        assert labels.addresses == ["//other:lib", ":lib2"]
        assert labels.exclude_addresses == [":lib2"]

    def test_dep_single(self, tree, make_context):
        ctx = make_context("fg")
        assert ctx.expander.label_for_module_dep_single(":lib") == Label("//other:lib")


class TestStringOrLabelFromProp:
    """Tests for properties holding a module, a file or a literal."""

    def test_module(self, tree, make_context):
        ctx = make_context("fg")
        assert ctx.expander.string_or_label_from_prop(":lib") == (Label("//other:lib"), None)

    def test_file(self, tree, make_context):
        ctx = make_context("fg")
        assert ctx.expander.string_or_label_from_prop("file.txt") == (Label("file.txt"), None)

    def test_literal(self, tree, make_context):
        ctx = make_context("fg")
        assert ctx.expander.string_or_label_from_prop("--flag") == (None, "--flag")
        assert ctx.expander.string_or_label_from_prop(None) == (None, None)


class TestRequireSinglePackage:
    """Tests for rules restricted to sources from one package."""

    def test_single_package(self, tree, make_context):
        ctx = make_context("fg")
        labels = ctx.expander.label_for_module_src(["a.c", "sub/c.c"])
        assert ctx.expander.require_single_package(labels) is labels

    def test_sources_across_packages(self, tree, make_context):
        """Test that a source in a subpackage is rejected."""
        ctx = make_context("fg")
        labels = ctx.expander.label_for_module_src(["a.c", "y/d.c"])
        with pytest.raises(CrossPackageError) as excinfo:
            ctx.expander.require_single_package(labels)
        assert excinfo.value.packages == ["m", "m/y"]
