"""
Bazel target declarations produced by conversion routines.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, Field

from .label import Label, LabelList

_INDENT = "    "


class BazelTarget(BaseModel):
    """One generated Bazel target."""

    model_config = {"arbitrary_types_allowed": True}

    name: str = Field(description="Target name")
    rule_class: str = Field(description="Bazel rule class, e.g. filegroup")
    directory: str = Field(description="Package directory the target is emitted into")
    module_name: str = Field(description="Module that produced this target")
    load_location: str | None = Field(default=None, description="Starlark file defining the rule")
    attrs: dict[str, Any] = Field(default_factory=dict)

    @property
    def label(self) -> str:
        directory = "" if self.directory == "." else self.directory
        return f"//{directory}:{self.name}"

    def render(self) -> str:
        """Render the target as a Starlark rule invocation.

        Attributes with empty values are omitted; the rest follow name in
        sorted order.
        """
        lines = [f"{self.rule_class}(", f'{_INDENT}name = "{self.name}",']
        for attr in sorted(self.attrs):
            rendered = _render_value(self.attrs[attr], depth=1)
            if rendered is None:
                continue
            lines.append(f"{_INDENT}{attr} = {rendered},")
        lines.append(")")
        return "\n".join(lines)

    def load_statement(self) -> str | None:
        if not self.load_location:
            return None
        return f'load("{self.load_location}", "{self.rule_class}")'


def _render_value(value: Any, depth: int) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return json.dumps(value)
    if isinstance(value, Label):
        return json.dumps(value.label)
    if isinstance(value, LabelList):
        value = value.resolved().addresses
    if isinstance(value, (list, tuple)):
        items = [_render_value(item, depth + 1) for item in value]
        items = [item for item in items if item is not None]
        if not items:
            return None
        if len(items) == 1:
            return f"[{items[0]}]"
        inner = _INDENT * (depth + 1)
        body = "\n".join(f"{inner}{item}," for item in items)
        return f"[\n{body}\n{_INDENT * depth}]"
    if isinstance(value, dict):
        if not value:
            return None
        inner = _INDENT * (depth + 1)
        entries = []
        for key in sorted(value):
            rendered = _render_value(value[key], depth + 1)
            if rendered is not None:
                entries.append(f"{inner}{json.dumps(key)}: {rendered},")
        return "{\n" + "\n".join(entries) + f"\n{_INDENT * depth}}}"
    raise TypeError(f"cannot render attribute value of type {type(value).__name__}")
