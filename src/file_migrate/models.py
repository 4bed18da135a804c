"""Typed models for manifest entries and replication jobs."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

JobKind = Literal["FILE", "DIRECTORY"]
JobOutcome = Literal["SUCCESS", "PARTIAL_FAILURE", "FAILURE", "SKIPPED"]
JOB_OUTCOME_VALUES: tuple[JobOutcome, ...] = ("SUCCESS", "PARTIAL_FAILURE", "FAILURE", "SKIPPED")


@dataclass(frozen=True, slots=True)
class ManifestEntry:
    """One valid manifest row with trimmed path strings."""

    source_path: str
    destination_path: str
    line_no: int


@dataclass(frozen=True, slots=True)
class InvalidManifestRow:
    """Manifest row rejected because a required field was blank."""

    line_no: int
    source_path: str | None
    destination_path: str | None
    reason: str


@dataclass(slots=True)
class ReplicationJob:
    """Runtime unit of work derived from one manifest entry.

    `outcome` is assigned exactly once through `finish`, after every copy attempt
    for the job (including fallback) has completed.
    """

    entry: ManifestEntry
    resolved_source: Path
    resolved_destination: Path
    kind: JobKind | None = None
    outcome: JobOutcome | None = None
    reason: str | None = None
    message: str | None = None
    used_fallback: bool = False
    files_copied: int = 0
    files_failed: int = 0
    permission_failures: int = 0

    def finish(self, outcome: JobOutcome, reason: str | None = None, message: str | None = None) -> None:
        """Record the terminal outcome."""

        if outcome not in JOB_OUTCOME_VALUES:
            raise ValueError(f"Unknown job outcome: {outcome}")
        if self.outcome is not None:
            raise RuntimeError(
                f"Outcome already set to {self.outcome} for source {self.resolved_source}; refusing {outcome}"
            )
        self.outcome = outcome
        self.reason = reason
        self.message = message

    @property
    def is_finished(self) -> bool:
        return self.outcome is not None

    def as_dict(self) -> dict[str, object]:
        """Return a JSON-friendly view of the job for run artifacts."""

        return {
            "line_no": self.entry.line_no,
            "source_path": self.entry.source_path,
            "destination_path": self.entry.destination_path,
            "resolved_source": str(self.resolved_source),
            "resolved_destination": str(self.resolved_destination),
            "kind": self.kind,
            "outcome": self.outcome,
            "reason": self.reason,
            "message": self.message,
            "used_fallback": self.used_fallback,
            "files_copied": self.files_copied,
            "files_failed": self.files_failed,
            "permission_failures": self.permission_failures,
        }
