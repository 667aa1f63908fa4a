"""
Per-module conversion decision.

Decides whether a module is converted by combining, in precedence order, the
build mode, the explicit test opt-in, the name/type allowlists, the denylist,
the directory defaults and the module's own bazel_module.bp2build_available
setting. Conflicting configuration is reported as a diagnostic and denies
conversion for that module only.
"""

from __future__ import annotations

from collections.abc import Collection
from enum import Enum

from pydantic import BaseModel, Field

from ..core.config import BuildMode, Config
from ..models.label import TOP_LEVEL_DIR
from ..models.module import Capability, ModuleNode
from .config import Bp2BuildAllowlist, default_true_recursively


class DecisionReason(str, Enum):
    """Which rule produced a decision."""

    NOT_CONVERTIBLE = "not_convertible"
    API_MODE = "api_mode"
    TEST_OPT_IN = "test_opt_in"
    CONFLICT = "conflict"
    DENYLISTED = "denylisted"
    DIRECTORY_DEFAULT = "directory_default"
    EXPLICIT = "explicit"
    ALLOWLISTED = "allowlisted"
    DEFAULT = "default"


class ConversionDecision(BaseModel):
    """Outcome of the allowlist engine for one module."""

    convert: bool = Field(description="Whether the module is converted")
    reason: DecisionReason = Field(description="Rule that decided")
    diagnostics: list[str] = Field(default_factory=list, description="Configuration conflicts")
    matched_directory: str | None = Field(
        default=None, description="Directory default entry that applied, if any"
    )


def should_convert(
    module: ModuleNode,
    capabilities: Collection[Capability],
    config: Config,
    allowlist: Bp2BuildAllowlist,
) -> ConversionDecision:
    """Decide whether module is converted.

    Args:
        module: The module being decided.
        capabilities: Capabilities registered for the module's type.
        config: Run configuration (build mode).
        allowlist: Allowlist tables.

    Returns:
        The decision, with any conflict diagnostics.
    """
    if not module.bazel_module.can_convert:
        return ConversionDecision(convert=False, reason=DecisionReason.NOT_CONVERTIBLE)

    # API-surface runs convert every API contributor regardless of allowlists.
    if config.conversion.build_mode == BuildMode.API_BP2BUILD:
        return ConversionDecision(
            convert=Capability.API_PROVIDER in capabilities, reason=DecisionReason.API_MODE
        )

    prop_value = module.bazel_module.bp2build_available
    package_path = module.directory

    # Unit tests define modules in the top-level directory and opt in directly.
    if package_path == TOP_LEVEL_DIR and prop_value is True:
        return ConversionDecision(convert=True, reason=DecisionReason.TEST_OPT_IN)

    name = module.name
    name_allowed = name in allowlist.module_always_convert
    type_allowed = module.module_type in allowlist.module_type_always_convert

    if name_allowed and type_allowed:
        return ConversionDecision(
            convert=False,
            reason=DecisionReason.CONFLICT,
            diagnostics=[
                f'A module "{name}" of type "{module.module_type}" cannot be in '
                "moduleAlwaysConvert and also be in moduleTypeAlwaysConvert"
            ],
        )

    if name in allowlist.module_do_not_convert:
        if name_allowed:
            return ConversionDecision(
                convert=False,
                reason=DecisionReason.CONFLICT,
                diagnostics=[
                    f'a module "{name}" cannot be in moduleDoNotConvert and also be in moduleAlwaysConvert'
                ],
            )
        return ConversionDecision(convert=False, reason=DecisionReason.DENYLISTED)

    enabled, directory = default_true_recursively(package_path, allowlist.default_config)
    if enabled:
        if name_allowed:
            return ConversionDecision(
                convert=False,
                reason=DecisionReason.CONFLICT,
                matched_directory=directory,
                diagnostics=[
                    "A module cannot be in a directory marked Bp2BuildDefaultTrue"
                    " or Bp2BuildDefaultTrueRecursively and also be in moduleAlwaysConvert."
                    f" Directory: '{directory}' Module: '{name}'"
                ],
            )
        # Modules may still opt out explicitly.
        return ConversionDecision(
            convert=True if prop_value is None else prop_value,
            reason=DecisionReason.DIRECTORY_DEFAULT if prop_value is None else DecisionReason.EXPLICIT,
            matched_directory=directory,
        )

    if prop_value is not None:
        return ConversionDecision(
            convert=prop_value, reason=DecisionReason.EXPLICIT, matched_directory=directory
        )
    if name_allowed or type_allowed:
        return ConversionDecision(convert=True, reason=DecisionReason.ALLOWLISTED)
    return ConversionDecision(convert=False, reason=DecisionReason.DEFAULT, matched_directory=directory)
