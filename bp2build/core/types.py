"""
Core type definitions for bp2build.

Provides the status and result types recorded for each scheduler phase and for
a complete scheduler run.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PhaseStatus(str, Enum):
    """Status of a scheduler phase."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class PhaseResult(BaseModel):
    """Result of running one phase over the module graph."""

    phase_name: str = Field(description="Name of the phase")
    status: PhaseStatus = Field(default=PhaseStatus.PENDING, description="Execution status")
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime | None = Field(default=None)
    duration_seconds: float = Field(default=0.0)
    modules_processed: int = Field(default=0, description="Module steps that ran")
    modules_skipped: int = Field(default=0, description="Steps skipped for failed modules")
    failed_modules: list[str] = Field(default_factory=list)
    generations: int = Field(default=0, description="Number of ordered waves")
    metadata: dict[str, Any] = Field(default_factory=dict)

    def mark_completed(self, processed: int, skipped: int, failed: list[str]) -> None:
        """Mark phase as finished.

        A phase completes even when individual modules failed; the failures
        are recorded rather than aborting the phase.
        """
        self.status = PhaseStatus.COMPLETED
        self.completed_at = _utcnow()
        self.modules_processed = processed
        self.modules_skipped = skipped
        self.failed_modules = sorted(failed)
        self.duration_seconds = (self.completed_at - self.started_at).total_seconds()

    def mark_failed(self, error: str) -> None:
        """Mark phase as aborted by a fatal error."""
        self.status = PhaseStatus.FAILED
        self.completed_at = _utcnow()
        self.metadata["error"] = error
        self.duration_seconds = (self.completed_at - self.started_at).total_seconds()


class SchedulerRun(BaseModel):
    """Represents a complete run of ordered phases."""

    run_id: str = Field(description="Unique run identifier")
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime | None = Field(default=None)
    phases: list[PhaseResult] = Field(default_factory=list)
    final_status: PhaseStatus = Field(default=PhaseStatus.PENDING)

    def get_phase(self, name: str) -> PhaseResult | None:
        """Get a phase result by name."""
        for phase in self.phases:
            if phase.phase_name == name:
                return phase
        return None

    @property
    def failed_modules(self) -> set[str]:
        """All modules that failed in any phase."""
        failed: set[str] = set()
        for phase in self.phases:
            failed.update(phase.failed_modules)
        return failed
