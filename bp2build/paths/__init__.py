"""Source tree access, package-boundary resolution and reference expansion."""

from .boundary import (
    BLUEPRINT_FILE,
    BUILD_FILES,
    PackageBoundaryResolver,
    is_package_boundary,
    join_path,
    transform_subpackage_path,
    transform_subpackage_paths,
)
from .expander import ReferenceExpander, bazel_module_label, strip_prebuilt_prefix
from .filesystem import (
    InMemoryFileSystem,
    LocalFileSystem,
    SourceFileSystem,
    compile_globs,
    is_glob,
    match_glob,
)

__all__ = [
    "BLUEPRINT_FILE",
    "BUILD_FILES",
    "PackageBoundaryResolver",
    "is_package_boundary",
    "join_path",
    "transform_subpackage_path",
    "transform_subpackage_paths",
    "ReferenceExpander",
    "bazel_module_label",
    "strip_prebuilt_prefix",
    "InMemoryFileSystem",
    "LocalFileSystem",
    "SourceFileSystem",
    "compile_globs",
    "is_glob",
    "match_glob",
]
