"""
Reference expansion.

Turns the source and dependency lists of a module into label lists:

    ":lib"            -> "//other/dir:lib"   (or ":lib" in the same package)
    ":gen{.srcjar}"   -> the module label, tag kept only for configured pairs
    "src/*.c"         -> the matching files, relative to the module
    "y/a.c"           -> "//x/y:a.c" when x/y is its own package

Every module reference also records a conversion-only dependency edge, a
missing-dependency sentinel for unknown modules, and unconverted dependencies
for the transitive validity check.
"""

from __future__ import annotations

import posixpath
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from ..core.exceptions import CrossPackageError, UnresolvedReferenceError
from ..models.label import (
    MISSING_DEP_SUFFIX,
    TOP_LEVEL_DIR,
    Label,
    LabelList,
    ModuleReference,
    bazel_short_label,
    is_module_reference,
    module_label,
    parse_module_reference,
    partition_by_package,
    same_package,
)
from ..models.module import DependencyTag, ModuleNode
from .boundary import join_path
from .filesystem import is_glob

if TYPE_CHECKING:
    from ..graph.context import ConversionContext

PREBUILT_PREFIX = "prebuilt_"


def strip_prebuilt_prefix(name: str) -> str:
    return name[len(PREBUILT_PREFIX) :] if name.startswith(PREBUILT_PREFIX) else name


def bazel_module_label(module: ModuleNode) -> str:
    """Label of a module in the Bazel workspace.

    A hand-authored label wins; otherwise the generated "//dir:name", with any
    prebuilt prefix removed since prebuilts share the source module's target.
    """
    if module.has_handcrafted_label:
        return module.handcrafted_label
    return module_label(module.directory, strip_prebuilt_prefix(module.name))


def _relative_to(directory: str, path: str) -> str:
    if directory in ("", TOP_LEVEL_DIR):
        return path
    return path[len(directory) + 1 :] if path.startswith(directory + "/") else path


class ReferenceExpander:
    """Expands source and dependency lists for the module of a context."""

    def __init__(self, ctx: ConversionContext) -> None:
        self.ctx = ctx

    # Sources

    def label_for_module_src(self, paths: Sequence[str]) -> LabelList:
        """Expand module sources; see label_for_module_src_excludes()."""
        return self.label_for_module_src_excludes(paths, ())

    def label_for_module_src_excludes(self, paths: Sequence[str], excludes: Sequence[str]) -> LabelList:
        """Expand module sources, leaving out excludes.

        Args:
            paths: Paths relative to the module directory, globs and module
                references.
            excludes: Entries of the same forms to leave out.

        Returns:
            Includes with everything in excludes removed, and the expanded
            excludes, both resolved against package boundaries.
        """
        exclude_labels = self._expand_srcs(excludes, (), mark_as_deps=False)
        excluded = exclude_labels.addresses
        labels = self._expand_srcs(paths, excluded, mark_as_deps=True)
        labels.excludes = exclude_labels.includes
        resolved = self.ctx.resolver.resolve_all(self.ctx.module_dir, labels)
        # Different spellings of one path only agree once resolved.
        excluded_addresses = set(resolved.exclude_addresses)
        resolved.includes = [label for label in resolved.includes if label.label not in excluded_addresses]
        return resolved

    def label_for_module_src_single(self, path: str) -> Label:
        """Expand a single source; an empty label if it expands to nothing."""
        srcs = self.label_for_module_src_excludes([path], ()).includes
        return srcs[0] if srcs else Label("")

    def label_for_src_pattern_excludes(
        self, directory: str, pattern: str, excludes: Sequence[str] = ()
    ) -> LabelList:
        """Glob pattern in an arbitrary directory and resolve the matches against it.

        Args:
            directory: Root-relative directory the pattern and excludes are relative to.
            pattern: Glob pattern.
            excludes: Paths or patterns to leave out.
        """
        root_excludes = [join_path(directory, exclude) for exclude in excludes]
        matches = self.ctx.fs.glob(join_path(directory, pattern), root_excludes)
        labels = LabelList(includes=[Label(_relative_to(directory, path)) for path in matches])
        return self.ctx.resolver.resolve_all(directory, labels)

    def _expand_srcs(self, paths: Iterable[str], excluded: Sequence[str], mark_as_deps: bool) -> LabelList:
        module_dir = self.ctx.module_dir
        root_excludes = [join_path(module_dir, exclude) for exclude in excluded]
        labels = LabelList()
        for path in paths:
            if is_module_reference(path):
                reference = self._parse(path)
                if reference is None:
                    continue
                label = self.module_label_for_reference(reference.name, reference.tag, mark_as_deps)
                if label.label in excluded:
                    continue
                spelling = reference.name if reference.name.startswith("//") else f":{reference.name}"
                labels.includes.append(Label(label.label, spelling))
            elif is_glob(path):
                for match in self.ctx.fs.glob(join_path(module_dir, path), root_excludes):
                    labels.includes.append(Label(_relative_to(module_dir, match)))
            else:
                path = posixpath.normpath(path)
                if path not in excluded:
                    labels.includes.append(Label(path))
        return labels

    def _parse(self, path: str) -> ModuleReference | None:
        try:
            return parse_module_reference(path)
        except UnresolvedReferenceError as e:
            # Reported against the module; the entry is dropped.
            self.ctx.module_error(e.message)
            return None

    # Dependencies

    def label_for_module_deps(self, modules: Sequence[str] | None) -> LabelList:
        """Resolve dependency names to labels, dropping duplicates."""
        if not modules:
            return LabelList()
        labels = LabelList()
        for module in dict.fromkeys(modules):
            spelling = module
            if not module.startswith((":", "//")):
                module = f":{module}"
            try:
                reference = parse_module_reference(module)
            except UnresolvedReferenceError:
                reference = None
            if reference is None:
                self.ctx.module_error(f'"{module}", is not a module reference')
                continue
            label = self.module_label_for_reference(reference.name, reference.tag, True)
            labels.includes.append(Label(label.label, spelling))
        return labels

    def label_for_module_deps_excludes(
        self, modules: Sequence[str] | None, excludes: Sequence[str] | None
    ) -> LabelList:
        """Resolve dependency names, with excludes kept as a separate list."""
        labels = self.label_for_module_deps(modules)
        if not excludes:
            return labels
        labels.excludes = self.label_for_module_deps(excludes).includes
        return labels

    def label_for_module_dep_single(self, module: str) -> Label:
        deps = self.label_for_module_deps([module]).includes
        return deps[0] if deps else Label("")

    # Properties

    def string_or_label_from_prop(self, value: str | None) -> tuple[Label | None, str | None]:
        """Classify a property that may hold a module, a file or a literal.

        Returns:
            (label, None) for module references and existing files in the
            module directory, (None, value) for anything else.
        """
        if value is None:
            return None, None
        if value.startswith((":", "//")):
            return self.label_for_module_dep_single(value), None
        if value and self.ctx.fs.exists(join_path(self.ctx.module_dir, value)):
            return self.label_for_module_src_single(value), None
        return None, value

    def require_single_package(self, labels: LabelList) -> LabelList:
        """Check that resolved labels stay within one package.

        For rules whose sources must all live in a single package.

        Raises:
            CrossPackageError: If the includes span more than one package.
        """
        packages = list(partition_by_package(self.ctx.module_dir, labels))
        if len(packages) > 1:
            raise CrossPackageError(
                message="sources span packages: " + ", ".join(package or TOP_LEVEL_DIR for package in packages),
                module_name=self.ctx.name,
                phase=self.ctx.phase,
                packages=packages,
            )
        return labels

    # Module references

    def module_label_for_reference(self, name: str, tag: str = "", mark_as_deps: bool = True) -> Label:
        """Resolve a referenced module to its label.

        Args:
            name: Module name, or "//namespace:name".
            tag: Output tag from ":name{tag}" syntax.
            mark_as_deps: Record a conversion-only edge to the module.

        Returns:
            The module's label, shortened to ":name" in the caller's package,
            or the missing-dependency sentinel.
        """
        ctx = self.ctx
        lookup = name.rsplit(":", 1)[-1] if name.startswith("//") else name
        dep = ctx.module_from_name(lookup)
        if dep is None:
            ctx.add_missing_dep(lookup)
            return Label(f":{lookup}{MISSING_DEP_SUFFIX}")

        conversion = ctx.config.conversion
        if (
            mark_as_deps
            and dep.name != ctx.name
            and not conversion.dependency_exemptions.should_skip(ctx.name, dep.name)
        ):
            ctx.add_dependency(DependencyTag.BP2BUILD, dep.name)
        if not ctx.converted_to_bazel(dep):
            ctx.add_unconverted_dep(dep.name)

        own_label = bazel_module_label(ctx.module)
        other_label = bazel_module_label(dep)
        if tag and (
            dep.name in conversion.tag_passthrough_modules
            or conversion.tag_passthrough_types.get(dep.module_type) == tag
        ):
            other_label += tag
        if ":" in other_label and same_package(own_label, other_label):
            other_label = bazel_short_label(other_label)
        return Label(other_label)
