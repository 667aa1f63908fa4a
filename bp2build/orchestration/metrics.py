"""
Conversion metrics.

Counts what a run converted, per module type and per generated rule class,
and renders the summary as a rich table.
"""

from __future__ import annotations

from collections import Counter

from pydantic import BaseModel, Field
from rich.table import Table

from ..models.module import ModuleNode
from ..models.target import BazelTarget


class CodegenMetrics(BaseModel):
    """Metrics of one conversion run."""

    generated_target_count: int = Field(default=0, description="Targets emitted")
    handcrafted_module_count: int = Field(default=0, description="Modules with hand-authored labels")
    rule_class_count: dict[str, int] = Field(default_factory=dict)
    converted_modules: list[str] = Field(default_factory=list)
    converted_module_type_count: dict[str, int] = Field(default_factory=dict)
    total_module_type_count: dict[str, int] = Field(default_factory=dict)
    unconverted_modules: dict[str, str] = Field(
        default_factory=dict, description="Module name to the reason it was not converted"
    )

    @property
    def converted_count(self) -> int:
        return len(self.converted_modules)

    @property
    def total_count(self) -> int:
        return sum(self.total_module_type_count.values())

    @property
    def conversion_rate(self) -> float:
        total = self.total_count
        return self.converted_count / total if total else 0.0

    def add_module(self, module: ModuleNode) -> None:
        """Count a module towards its type's total."""
        counts = Counter(self.total_module_type_count)
        counts[module.module_type] += 1
        self.total_module_type_count = dict(counts)
        if module.has_handcrafted_label:
            self.handcrafted_module_count += 1

    def add_converted(self, module: ModuleNode, targets: list[BazelTarget]) -> None:
        """Record a converted module and the targets it emitted."""
        self.converted_modules.append(module.name)
        types = Counter(self.converted_module_type_count)
        types[module.module_type] += 1
        self.converted_module_type_count = dict(types)

        rules = Counter(self.rule_class_count)
        rules.update(target.rule_class for target in targets)
        self.rule_class_count = dict(rules)
        self.generated_target_count += len(targets)

    def add_unconverted(self, module: ModuleNode, reason: str) -> None:
        self.unconverted_modules[module.name] = reason

    def to_table(self) -> Table:
        """Render per-type conversion counts as a table."""
        table = Table(title="Conversion Metrics")
        table.add_column("Module Type", style="cyan")
        table.add_column("Converted", justify="right", style="green")
        table.add_column("Total", justify="right")

        for module_type in sorted(self.total_module_type_count):
            table.add_row(
                module_type,
                str(self.converted_module_type_count.get(module_type, 0)),
                str(self.total_module_type_count[module_type]),
            )
        table.add_section()
        table.add_row("All", str(self.converted_count), str(self.total_count))
        table.add_row("Generated Targets", str(self.generated_target_count), "")
        table.add_row("Handcrafted Modules", str(self.handcrafted_module_count), "")
        return table

    def summary(self) -> str:
        return (
            f"Converted {self.converted_count}/{self.total_count} modules "
            f"({self.conversion_rate:.1%}) into {self.generated_target_count} targets"
        )
