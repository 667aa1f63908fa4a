"""
Conversion allowlist configuration.

The allowlist combines per-directory defaults with per-module and per-type
lists. It is built once at process start through the with_* builder methods,
each of which returns a new value, and is read concurrently afterwards.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum

from pydantic import BaseModel, Field


class DirectoryDefault(str, Enum):
    """Default conversion setting for the modules of a directory."""

    TRUE = "true"
    TRUE_RECURSIVELY = "true_recursively"
    FALSE = "false"
    FALSE_RECURSIVELY = "false_recursively"


class Bp2BuildAllowlist(BaseModel):
    """Immutable allowlist tables."""

    model_config = {"frozen": True}

    default_config: dict[str, DirectoryDefault] = Field(
        default_factory=dict, description="Directory to default conversion setting"
    )
    keep_existing_build_file: dict[str, bool] = Field(
        default_factory=dict,
        description="Directories whose checked-in BUILD file is kept; value marks subtrees",
    )
    module_always_convert: frozenset[str] = Field(default_factory=frozenset)
    module_type_always_convert: frozenset[str] = Field(default_factory=frozenset)
    module_do_not_convert: frozenset[str] = Field(default_factory=frozenset)

    def with_default_config(self, default_config: Mapping[str, DirectoryDefault]) -> Bp2BuildAllowlist:
        """Return a copy with default_config entries merged in."""
        merged = {**self.default_config, **default_config}
        return self.model_copy(update={"default_config": merged})

    def with_keep_existing_build_file(self, keep: Mapping[str, bool]) -> Bp2BuildAllowlist:
        merged = {**self.keep_existing_build_file, **keep}
        return self.model_copy(update={"keep_existing_build_file": merged})

    def with_module_always_convert(self, modules: Iterable[str]) -> Bp2BuildAllowlist:
        return self.model_copy(update={"module_always_convert": self.module_always_convert | set(modules)})

    def with_module_type_always_convert(self, module_types: Iterable[str]) -> Bp2BuildAllowlist:
        return self.model_copy(
            update={"module_type_always_convert": self.module_type_always_convert | set(module_types)}
        )

    def with_module_do_not_convert(self, modules: Iterable[str]) -> Bp2BuildAllowlist:
        return self.model_copy(update={"module_do_not_convert": self.module_do_not_convert | set(modules)})

    def should_keep_existing_build_file_for_dir(self, directory: str) -> bool:
        """Whether the checked-in BUILD file of directory is kept.

        An exact entry matches whatever its value; a True entry also matches
        every directory beneath it.
        """
        if directory in self.keep_existing_build_file:
            return True
        for prefix, recursive in self.keep_existing_build_file.items():
            if recursive and directory.startswith(prefix + "/"):
                return True
        return False


def default_true_recursively(
    package_path: str, default_config: Mapping[str, DirectoryDefault]
) -> tuple[bool, str]:
    """Resolve the directory default for package_path.

    An exact entry wins outright: TRUE or TRUE_RECURSIVELY converts, FALSE or
    FALSE_RECURSIVELY does not. Otherwise the path is walked from the root
    inward and the deepest recursive entry decides. Non-recursive entries
    never apply to descendants.

    Args:
        package_path: Directory of the module.
        default_config: Directory default table.

    Returns:
        Whether modules convert by default, and the entry that decided it
        (package_path itself when nothing matched).
    """
    exact = default_config.get(package_path)
    if exact in (DirectoryDefault.TRUE, DirectoryDefault.TRUE_RECURSIVELY):
        return True, package_path
    if exact in (DirectoryDefault.FALSE, DirectoryDefault.FALSE_RECURSIVELY):
        return False, package_path

    result = (False, package_path)
    prefix = ""
    for part in package_path.split("/"):
        prefix = f"{prefix}/{part}" if prefix else part
        setting = default_config.get(prefix)
        if setting == DirectoryDefault.TRUE_RECURSIVELY:
            result = (True, prefix)
        elif setting == DirectoryDefault.FALSE_RECURSIVELY:
            result = (False, prefix)
    return result
