"""
bp2build: incremental conversion of a declarative module graph to Bazel targets.

This package resolves module references into a dependency graph, decides per
module whether conversion applies, and maps source-tree references into Bazel
labels while respecting package boundaries. It also tracks which modules can
be handed to Bazel in a mixed build.
"""

__version__ = "1.0.0"
__author__ = "bp2build Team"
