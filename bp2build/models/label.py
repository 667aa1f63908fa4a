"""
Label data models.

A label addresses a Bazel target or file ("//pkg/dir:name", ":name" or a
package-relative path). Labels remember the spelling that produced them so
later passes can substitute occurrences verbatim. Equality is by address only.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import NamedTuple

from ..core.exceptions import UnresolvedReferenceError

# Directory of modules defined in the top-level description file.
TOP_LEVEL_DIR = "."

MISSING_DEP_SUFFIX = "__BP2BUILD__MISSING__DEP"


@dataclass(frozen=True)
class Label:
    """A reference to a Bazel target coordinate."""

    label: str
    original_module_name: str = field(default="", compare=False)

    def __str__(self) -> str:
        return self.label

    @property
    def is_absolute(self) -> bool:
        """Whether the label starts at the workspace root."""
        return self.label.startswith("//")

    @property
    def is_missing_dep(self) -> bool:
        """Whether this is the sentinel emitted for an unresolved module."""
        return self.label.endswith(MISSING_DEP_SUFFIX)

    def with_label(self, label: str) -> Label:
        return Label(label=label, original_module_name=self.original_module_name)


@dataclass
class LabelList:
    """Ordered includes with a separate set of excludes.

    Excludes are subtracted from includes by address equality, never by the
    original spelling.
    """

    includes: list[Label] = field(default_factory=list)
    excludes: list[Label] = field(default_factory=list)

    @classmethod
    def of(cls, *labels: str) -> LabelList:
        """Build an include-only list from label strings."""
        return cls(includes=[Label(label) for label in labels])

    def is_empty(self) -> bool:
        return not self.includes and not self.excludes

    @property
    def addresses(self) -> list[str]:
        """Include addresses in order."""
        return [label.label for label in self.includes]

    @property
    def exclude_addresses(self) -> list[str]:
        return [label.label for label in self.excludes]

    def append(self, other: LabelList) -> None:
        """Append the includes and excludes of other to this list."""
        self.includes.extend(other.includes)
        self.excludes.extend(other.excludes)

    def first_unique(self) -> LabelList:
        """Return a copy with duplicate addresses removed, keeping first occurrences."""
        return LabelList(
            includes=first_unique_labels(self.includes),
            excludes=first_unique_labels(self.excludes),
        )

    def resolved(self) -> LabelList:
        """Return the includes with every excluded address removed."""
        excluded = {label.label for label in self.excludes}
        return LabelList(includes=[label for label in self.includes if label.label not in excluded])


class ModuleReference(NamedTuple):
    """A parsed ":name{.tag}" reference."""

    name: str
    tag: str = ""


def first_unique_labels(labels: Iterable[Label]) -> list[Label]:
    seen: set[str] = set()
    unique: list[Label] = []
    for label in labels:
        if label.label in seen:
            continue
        seen.add(label.label)
        unique.append(label)
    return unique


def parse_module_reference(src: str) -> ModuleReference | None:
    """Parse module-reference syntax.

    Accepts ":name", ":name{.tag}" and namespaced "//namespace:name" forms.

    Args:
        src: A source list entry.

    Returns:
        The parsed reference, or None if src is a plain path.

    Raises:
        UnresolvedReferenceError: If src uses the reference marker but names no module.
    """
    if src.startswith("//"):
        body = src
    elif src.startswith(":"):
        body = src[1:]
    else:
        return None

    tag = ""
    if body.endswith("}"):
        brace = body.find("{")
        if brace == -1:
            raise UnresolvedReferenceError(
                message=f"unbalanced output tag in {src!r}", reference=src
            )
        tag = body[brace + 1 : -1]
        body = body[:brace]
    elif "{" in body:
        raise UnresolvedReferenceError(message=f"unterminated output tag in {src!r}", reference=src)

    if not body or body == "//" or body.endswith(":"):
        raise UnresolvedReferenceError(message=f"{src!r} does not name a module", reference=src)
    return ModuleReference(name=body, tag=tag)


def is_module_reference(src: str) -> bool:
    return src.startswith(":") or src.startswith("//")


def module_label(directory: str, name: str) -> str:
    """Absolute label for a module defined in directory."""
    if directory == TOP_LEVEL_DIR:
        directory = ""
    return f"//{directory}:{name}"


def bazel_package(label: str) -> str:
    """Package part of a fully qualified label ("//a/b:c" -> "//a/b").

    Raises:
        ValueError: If label has no target separator.
    """
    index = label.find(":")
    if index == -1:
        raise ValueError(f"Could not find the ':' character in '{label}', expected a fully qualified label.")
    return label[:index]


def bazel_short_label(label: str) -> str:
    """Target part of a fully qualified label ("//a/b:c" -> ":c")."""
    index = label.find(":")
    if index == -1:
        raise ValueError(f"Could not find the ':' character in '{label}', expected a fully qualified label.")
    return label[index:]


def same_package(label1: str, label2: str) -> bool:
    return bazel_package(label1) == bazel_package(label2)


def label_package_dir(label: Label, module_dir: str) -> str:
    """Directory of the package that owns label, relative to the workspace root."""
    if label.is_absolute:
        return bazel_package(label.label)[2:] if ":" in label.label else label.label[2:]
    return "" if module_dir == TOP_LEVEL_DIR else module_dir


def partition_by_package(module_dir: str, labels: LabelList) -> dict[str, LabelList]:
    """Group resolved includes by the package that owns them.

    Conversion routines that only support sources from one package use this to
    detect sources spread across package boundaries.

    Args:
        module_dir: Directory of the module owning the labels.
        labels: Labels already passed through the package-boundary resolver.

    Returns:
        Mapping of package directory to the labels it owns, in first-seen order.
    """
    partitions: dict[str, LabelList] = {}
    for label in labels.includes:
        package = label_package_dir(label, module_dir)
        partitions.setdefault(package, LabelList()).includes.append(label)
    return partitions
