"""Run-level outcome counters and the final report."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from file_migrate.models import ReplicationJob


@dataclass(slots=True)
class RunSummary:
    """Counters updated exactly once per finished replication job."""

    entries_total: int = 0
    invalid: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    failed_jobs: list[ReplicationJob] = field(default_factory=list)

    def record(self, job: ReplicationJob) -> None:
        """Fold a finished job into the counters."""

        if job.outcome is None:
            raise ValueError(f"Job for {job.resolved_source} has no outcome yet")
        self.processed += 1
        if job.outcome == "SUCCESS":
            self.succeeded += 1
        elif job.outcome == "SKIPPED":
            self.skipped += 1
        else:
            self.failed += 1
            self.failed_jobs.append(job)

    def as_dict(self) -> dict[str, int]:
        return {
            "entries_total": self.entries_total,
            "invalid": self.invalid,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
        }

    def render_lines(self, log_file: Path | None = None) -> list[str]:
        """Human-readable summary block."""

        lines = [
            "===== Migration summary =====",
            f"processed: {self.processed}",
            f"succeeded: {self.succeeded}",
            f"failed: {self.failed}",
            f"skipped: {self.skipped}",
            f"invalid: {self.invalid}",
        ]
        if log_file is not None:
            lines.append(f"log_file: {log_file}")
        return lines
