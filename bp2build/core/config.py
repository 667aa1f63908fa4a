"""
Configuration management for bp2build.

Provides centralized, type-safe configuration with environment variable overrides
and sensible defaults for the scheduler, the conversion pass and mixed builds.
Configuration values are immutable once constructed.
"""

from __future__ import annotations

import os
from enum import Enum
from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load .env file if it exists (looks in cwd and parent directories)
load_dotenv()


class BuildMode(str, Enum):
    """Which conversion pass the pipeline runs."""

    BP2BUILD = "bp2build"
    API_BP2BUILD = "api_bp2build"


class SchedulerConfig(BaseModel):
    """Worker pool configuration for phase execution."""

    model_config = {"frozen": True}

    max_workers: int = Field(default=8, ge=1, description="Concurrent module steps per phase")
    fail_fast: bool = Field(
        default=False, description="Abort the run when any module step fails"
    )


class DependencyExemptions(BaseModel):
    """Modules excluded from conversion-only dependency edges.

    Some modules depend on a variant of themselves, which a variantless graph
    cannot represent without a cycle. Edges from or to the listed modules are
    never recorded.
    """

    model_config = {"frozen": True}

    skip_edges_from: list[str] = Field(
        default_factory=lambda: ["libc", "crtbegin_dynamic"],
        description="Modules whose outgoing conversion edges are not recorded",
    )
    skip_edges_to: list[str] = Field(
        default_factory=lambda: ["mke2fs.conf"],
        description="Dependencies that never receive conversion edges",
    )

    def should_skip(self, module_name: str, dep_name: str) -> bool:
        """Check whether a conversion edge from module_name to dep_name is exempt.

        Args:
            module_name: The module resolving the reference.
            dep_name: The referenced module.

        Returns:
            True if no edge should be recorded.
        """
        return module_name in self.skip_edges_from or dep_name in self.skip_edges_to


class ConversionConfig(BaseModel):
    """Conversion pass configuration."""

    model_config = {"frozen": True}

    build_mode: BuildMode = Field(default=BuildMode.BP2BUILD, description="Conversion mode")
    allow_missing_dependencies: bool = Field(
        default=False,
        description="Emit targets even when dependencies are missing or unconverted",
    )
    force_enabled_modules: list[str] = Field(
        default_factory=list, description="Modules that must convert or fail the run"
    )
    stubbed_build_definitions: list[str] = Field(
        default_factory=list,
        description="Modules already defined by a checked-in build file",
    )
    dependency_exemptions: DependencyExemptions = Field(default_factory=DependencyExemptions)
    tag_passthrough_modules: list[str] = Field(
        default_factory=lambda: ["framework-res"],
        description="Modules whose output tags are kept on their labels",
    )
    tag_passthrough_types: dict[str, str] = Field(
        default_factory=lambda: {"java_aconfig_library": ".generated_srcjars"},
        description="Module type to the single output tag kept on its labels",
    )


class MixedBuildConfig(BaseModel):
    """Mixed build configuration."""

    model_config = {"frozen": True}

    enabled: bool = Field(default=False, description="Queue external executor queries")
    allowlist: list[str] = Field(
        default_factory=list, description="Modules allowed to be executed externally"
    )
    excluded_os: str = Field(default="windows", description="Platform never built externally")


class Config(BaseModel):
    """Root configuration for bp2build."""

    model_config = {"extra": "ignore", "frozen": True}

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    conversion: ConversionConfig = Field(default_factory=ConversionConfig)
    mixed_builds: MixedBuildConfig = Field(default_factory=MixedBuildConfig)

    @classmethod
    def from_env(cls) -> Config:
        """Create configuration from environment variables."""
        return cls(
            log_level=os.environ.get("BP2BUILD_LOG_LEVEL", "INFO"),  # type: ignore
            scheduler=SchedulerConfig(
                max_workers=int(os.environ.get("BP2BUILD_MAX_WORKERS", "8")),
                fail_fast=os.environ.get("BP2BUILD_FAIL_FAST", "false").lower() == "true",
            ),
            conversion=ConversionConfig(
                build_mode=BuildMode(os.environ.get("BP2BUILD_BUILD_MODE", "bp2build")),
                allow_missing_dependencies=(
                    os.environ.get("BP2BUILD_ALLOW_MISSING_DEPENDENCIES", "false").lower() == "true"
                ),
                force_enabled_modules=_split_list(os.environ.get("BP2BUILD_FORCE_ENABLED_MODULES", "")),
            ),
            mixed_builds=MixedBuildConfig(
                enabled=os.environ.get("BP2BUILD_MIXED_BUILDS", "false").lower() == "true",
                allowlist=_split_list(os.environ.get("BP2BUILD_MIXED_BUILD_ALLOWLIST", "")),
            ),
        )


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.from_env()
