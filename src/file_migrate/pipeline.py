"""Sequential migration run over manifest entries."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from uuid import uuid4

from file_migrate.config import AppSettings
from file_migrate.dedup import ProcessedSet
from file_migrate.manifest.reader import read_manifest
from file_migrate.manifest.resolve import resolve_entry
from file_migrate.models import ManifestEntry, ReplicationJob
from file_migrate.permissions import PermissionPropagator, default_permission_backend
from file_migrate.replicate.bulk import BulkCopier, BulkCopyOptions, build_bulk_copier
from file_migrate.replicate.tree import ReplicatorOptions, TreeReplicator
from file_migrate.summary import RunSummary
from file_migrate.utils.paths import write_json_atomically
from file_migrate.utils.time_utils import now_utc

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MigrationRunOptions:
    """Runtime options for one migration run."""

    dry_run: bool = False
    limit: int | None = None
    progress_every: int = 25


@dataclass(frozen=True, slots=True)
class MigrationRunResult:
    """Return object for migration run outcomes."""

    run_id: str
    summary: RunSummary
    jobs: list[ReplicationJob]
    summary_path: Path | None
    failed_entries_path: Path | None
    log_file: Path | None


def build_replicator(
    settings: AppSettings,
    *,
    bulk_copier: BulkCopier | None = None,
    logger: logging.Logger | None = None,
) -> TreeReplicator:
    """Wire a `TreeReplicator` from settings."""

    effective_logger = logger or LOGGER
    transfer = settings.transfer
    copier = bulk_copier or build_bulk_copier(
        transfer.backend,
        robocopy_executable=transfer.robocopy_executable,
        logger=effective_logger,
    )
    permissions: PermissionPropagator | None = None
    if settings.permissions.enabled:
        permissions = PermissionPropagator(
            backend=default_permission_backend(include_audit=settings.permissions.include_audit),
            logger=effective_logger,
        )
    options = ReplicatorOptions(
        copy=BulkCopyOptions(
            threads=transfer.threads,
            retries=transfer.retries,
            retry_wait_sec=transfer.retry_wait_sec,
            exclude_older=transfer.exclude_older,
            copy_security=settings.permissions.enabled,
            copy_audit=settings.permissions.include_audit,
        ),
        fallback_enabled=transfer.fallback_enabled,
        permissions_enabled=settings.permissions.enabled,
    )
    return TreeReplicator(copier, options=options, permissions=permissions, logger=effective_logger)


def process_entry(
    entry: ManifestEntry,
    *,
    settings: AppSettings,
    processed: ProcessedSet,
    replicator: TreeReplicator,
    dry_run: bool = False,
    logger: logging.Logger | None = None,
) -> ReplicationJob:
    """Resolve, dedup-check and replicate one entry; always returns a finished job."""

    effective_logger = logger or LOGGER
    resolved = resolve_entry(entry, settings.paths.source_root, settings.paths.destination_root)
    job = ReplicationJob(entry=entry, resolved_source=resolved.source, resolved_destination=resolved.destination)

    if processed.should_skip(job.resolved_source):
        job.finish("SKIPPED", reason="parent_already_processed")
        effective_logger.info(
            "migrate_run.entry_skipped line=%s reason=%s source=%s parent=%s",
            entry.line_no,
            job.reason,
            job.resolved_source,
            job.resolved_source.parent,
        )
        return job

    if dry_run:
        if job.resolved_source.is_dir() and not job.resolved_source.is_symlink():
            job.kind = "DIRECTORY"
            processed.mark(job.resolved_source)
        elif job.resolved_source.exists():
            job.kind = "FILE"
        job.finish("SKIPPED", reason="dry_run")
        effective_logger.info(
            "migrate_run.would_copy line=%s kind=%s source=%s destination=%s source_exists=%s",
            entry.line_no,
            job.kind,
            job.resolved_source,
            job.resolved_destination,
            job.kind is not None,
        )
        return job

    try:
        replicator.replicate(job)
    except Exception as exc:
        effective_logger.exception(
            "migrate_run.entry_failed line=%s source=%s destination=%s",
            entry.line_no,
            job.resolved_source,
            job.resolved_destination,
        )
        if not job.is_finished:
            job.finish("FAILURE", reason=type(exc).__name__, message=str(exc))

    if job.kind == "DIRECTORY":
        processed.mark(job.resolved_source)
    return job


def run_migration(
    settings: AppSettings,
    manifest_path: Path,
    *,
    options: MigrationRunOptions | None = None,
    replicator: TreeReplicator | None = None,
    log_file: Path | None = None,
    logger: logging.Logger | None = None,
) -> MigrationRunResult:
    """Process every manifest entry in order, one at a time.

    `ManifestNotFound` and `ManifestUnreadable` propagate to the caller; every
    other failure is scoped to its entry and reflected in the summary.
    """

    effective_logger = logger or LOGGER
    run_options = options or MigrationRunOptions()
    progress_every = max(1, run_options.progress_every)

    run_id = f"migrate-run-{uuid4().hex[:12]}"
    started_ts = now_utc()
    started_mono = time.monotonic()

    manifest = read_manifest(
        manifest_path,
        source_column=settings.manifest.source_column,
        destination_column=settings.manifest.destination_column,
        separator=settings.manifest.separator,
        encoding=settings.manifest.encoding,
        logger=effective_logger,
    )
    entries = manifest.entries
    if run_options.limit is not None:
        entries = entries[: max(0, run_options.limit)]

    active_replicator = replicator or build_replicator(settings, logger=effective_logger)
    summary = RunSummary(entries_total=manifest.rows_total, invalid=len(manifest.invalid_rows))
    processed = ProcessedSet()
    jobs: list[ReplicationJob] = []

    effective_logger.info(
        "migrate_run.start run_id=%s manifest=%s entries=%s invalid=%s source_root=%s destination_root=%s backend=%s dry_run=%s limit=%s",
        run_id,
        manifest_path,
        len(entries),
        len(manifest.invalid_rows),
        settings.paths.source_root,
        settings.paths.destination_root,
        active_replicator.bulk_copier.name,
        run_options.dry_run,
        run_options.limit,
    )

    for processed_idx, entry in enumerate(entries, start=1):
        job = process_entry(
            entry,
            settings=settings,
            processed=processed,
            replicator=active_replicator,
            dry_run=run_options.dry_run,
            logger=effective_logger,
        )
        summary.record(job)
        jobs.append(job)

        if processed_idx % progress_every == 0 or processed_idx == len(entries):
            effective_logger.info(
                "migrate_run.progress processed=%s/%s succeeded=%s failed=%s skipped=%s elapsed_sec=%.2f",
                processed_idx,
                len(entries),
                summary.succeeded,
                summary.failed,
                summary.skipped,
                time.monotonic() - started_mono,
            )

    finished_ts = now_utc()
    artifacts_dir = settings.paths.artifacts_root / "run_summaries"
    summary_path: Path | None = artifacts_dir / f"{run_id}_migration_summary.json"
    failed_entries_path: Path | None = artifacts_dir / f"{run_id}_failed_entries.json"

    payload: dict[str, Any] = {
        "run_id": run_id,
        "started_ts": started_ts.isoformat(),
        "finished_ts": finished_ts.isoformat(),
        "duration_sec": round(time.monotonic() - started_mono, 3),
        "manifest_path": str(manifest_path),
        "source_root": str(settings.paths.source_root),
        "destination_root": str(settings.paths.destination_root),
        "backend": active_replicator.bulk_copier.name,
        "dry_run": run_options.dry_run,
        "log_file": str(log_file) if log_file else None,
        "counts": summary.as_dict(),
        "invalid_rows": [
            {"line_no": row.line_no, "reason": row.reason} for row in manifest.invalid_rows[:200]
        ],
        "failed_entries": [job.as_dict() for job in summary.failed_jobs[:200]],
    }
    try:
        write_json_atomically(payload, summary_path)
        write_json_atomically(
            {"run_id": run_id, "failed_entries": [job.as_dict() for job in summary.failed_jobs]},
            failed_entries_path,
        )
    except OSError as exc:
        # Report write failures never change entry outcomes or the exit status.
        effective_logger.warning(
            "migrate_run.artifacts_failed run_id=%s artifacts_dir=%s error=%s",
            run_id,
            artifacts_dir,
            exc,
        )
        summary_path = None
        failed_entries_path = None

    effective_logger.info(
        "migrate_run.complete run_id=%s processed=%s succeeded=%s failed=%s skipped=%s invalid=%s summary_path=%s",
        run_id,
        summary.processed,
        summary.succeeded,
        summary.failed,
        summary.skipped,
        summary.invalid,
        summary_path,
    )
    return MigrationRunResult(
        run_id=run_id,
        summary=summary,
        jobs=jobs,
        summary_path=summary_path,
        failed_entries_path=failed_entries_path,
        log_file=log_file,
    )
