"""Mixed-execution bridge to the external build system."""

from .bridge import (
    COMMON_CONFIG,
    ConfigKey,
    ExternalExecutor,
    MixedBuildLog,
    MockExternalExecutor,
    RequestType,
    config_key,
    mixed_build_possible,
    mixed_builds_enabled,
    process_external_responses,
    queue_external_queries,
)

__all__ = [
    "COMMON_CONFIG",
    "ConfigKey",
    "ExternalExecutor",
    "MixedBuildLog",
    "MockExternalExecutor",
    "RequestType",
    "config_key",
    "mixed_build_possible",
    "mixed_builds_enabled",
    "process_external_responses",
    "queue_external_queries",
]
