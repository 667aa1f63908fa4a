"""Data models for bp2build."""

from .label import (
    MISSING_DEP_SUFFIX,
    TOP_LEVEL_DIR,
    Label,
    LabelList,
    ModuleReference,
    bazel_package,
    bazel_short_label,
    is_module_reference,
    module_label,
    parse_module_reference,
    partition_by_package,
    same_package,
)
from .module import (
    BazelModuleProperties,
    Capability,
    ConversionStatus,
    DependencyTag,
    ModuleNode,
    ProviderKey,
    ProviderStore,
    TargetInfo,
)
from .target import BazelTarget

__all__ = [
    "MISSING_DEP_SUFFIX",
    "TOP_LEVEL_DIR",
    "Label",
    "LabelList",
    "ModuleReference",
    "bazel_package",
    "bazel_short_label",
    "is_module_reference",
    "module_label",
    "parse_module_reference",
    "partition_by_package",
    "same_package",
    "BazelModuleProperties",
    "Capability",
    "ConversionStatus",
    "DependencyTag",
    "ModuleNode",
    "ProviderKey",
    "ProviderStore",
    "TargetInfo",
    "BazelTarget",
]
