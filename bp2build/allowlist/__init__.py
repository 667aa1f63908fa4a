"""Allowlist configuration and the per-module conversion decision."""

from .config import Bp2BuildAllowlist, DirectoryDefault, default_true_recursively
from .decision import ConversionDecision, DecisionReason, should_convert

__all__ = [
    "Bp2BuildAllowlist",
    "DirectoryDefault",
    "default_true_recursively",
    "ConversionDecision",
    "DecisionReason",
    "should_convert",
]
