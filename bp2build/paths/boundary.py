"""
Package-boundary resolution.

Source paths are expanded relative to a module's directory and may reach into
subdirectories that Bazel treats as separate packages. The resolver rewrites
such paths into absolute labels, e.g. with a package at x/y:

    y/a.c   (module in x)   ->   //x/y:a.c

Paths that stay inside the module's own package are returned unchanged.
"""

from __future__ import annotations

import posixpath

from ..allowlist.config import Bp2BuildAllowlist
from ..models.label import TOP_LEVEL_DIR, Label, LabelList
from .filesystem import SourceFileSystem

BLUEPRINT_FILE = "Android.bp"
BUILD_FILES = ("BUILD", "BUILD.bazel")


def join_path(directory: str, *parts: str) -> str:
    """Join root-relative path parts, rendering the top-level directory as empty."""
    joined = posixpath.normpath(posixpath.join(directory, *parts))
    return "" if joined == "." else joined


class PackageBoundaryResolver:
    """Maps module-relative paths onto Bazel package boundaries.

    Nothing is cached between calls: the filesystem and allowlist are stable
    within one build but not across builds.
    """

    def __init__(self, fs: SourceFileSystem, allowlist: Bp2BuildAllowlist) -> None:
        self.fs = fs
        self.allowlist = allowlist

    def is_package_boundary(self, directory: str) -> bool:
        """Whether directory is its own Bazel package.

        This holds when it has a blueprint file (always converted to a sibling
        BUILD file), or when it has a checked-in BUILD/BUILD.bazel file and is
        either kept by the allowlist or a symlink.

        Args:
            directory: Root-relative directory.
        """
        if self.fs.exists(join_path(directory, BLUEPRINT_FILE)):
            return True
        if self.allowlist.should_keep_existing_build_file_for_dir(directory) or self.fs.is_symlink(directory):
            return any(self.fs.exists(join_path(directory, name)) for name in BUILD_FILES)
        return False

    def resolve(self, directory: str, path: Label) -> Label:
        """Rewrite path to acknowledge package boundaries beneath directory.

        Args:
            directory: Directory the path is relative to.
            path: A package-relative path or an absolute label.

        Returns:
            The path unchanged if it stays in directory's package, otherwise an
            absolute label. The original spelling is preserved.
        """
        original = path.original_module_name or path.label

        # Absolute labels are already correct.
        if path.label.startswith("//"):
            return Label(path.label, original)

        # "./" must not be mistaken for a package boundary.
        relative = path.label[2:] if path.label.startswith("./") else path.label
        components = relative.split("/")

        new_label = ""
        found_boundary = False
        for i in range(len(components) - 1, -1, -1):
            component = components[i]
            if not found_boundary and self.is_package_boundary(join_path(directory, *components[: i + 1])):
                sep = ":"
                found_boundary = True
            else:
                sep = "/"
            new_label = component if not new_label else component + sep + new_label

        if found_boundary:
            module_dir = "" if directory == TOP_LEVEL_DIR else directory
            new_label = f"//{new_label}" if not module_dir else f"//{module_dir}/{new_label}"
        return Label(new_label, original)

    def resolve_all(self, directory: str, paths: LabelList) -> LabelList:
        """Resolve every include and exclude of paths."""
        return LabelList(
            includes=[self.resolve(directory, label) for label in paths.includes],
            excludes=[self.resolve(directory, label) for label in paths.excludes],
        )


def is_package_boundary(fs: SourceFileSystem, allowlist: Bp2BuildAllowlist, prefix: str) -> bool:
    return PackageBoundaryResolver(fs, allowlist).is_package_boundary(prefix)


def transform_subpackage_path(
    fs: SourceFileSystem, allowlist: Bp2BuildAllowlist, base_dir: str, path: Label
) -> Label:
    """Resolve one path relative to base_dir; see PackageBoundaryResolver.resolve()."""
    return PackageBoundaryResolver(fs, allowlist).resolve(base_dir, path)


def transform_subpackage_paths(
    fs: SourceFileSystem, allowlist: Bp2BuildAllowlist, base_dir: str, paths: LabelList
) -> LabelList:
    return PackageBoundaryResolver(fs, allowlist).resolve_all(base_dir, paths)
