"""Pipeline orchestration for bp2build."""

from .metrics import CodegenMetrics
from .pipeline import (
    GENERATED_TARGETS,
    Bp2BuildPipeline,
    ConversionResult,
    conversion_step,
    deps_step,
)

__all__ = [
    "CodegenMetrics",
    "GENERATED_TARGETS",
    "Bp2BuildPipeline",
    "ConversionResult",
    "conversion_step",
    "deps_step",
]
