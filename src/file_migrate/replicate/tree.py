"""Replicate one resolved source file or tree into its destination."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from file_migrate.errors import (
    DestinationSetupFailed,
    EntryMigrationError,
    FallbackCopyFailed,
    PrimaryCopyFatal,
    PrimaryCopyPartialFailure,
    SourceMissing,
)
from file_migrate.models import ReplicationJob
from file_migrate.permissions import PermissionPropagator
from file_migrate.replicate.bulk import BulkCopier, BulkCopyOptions, BulkCopyResult
from file_migrate.replicate.fallback import FallbackResult, fallback_copy
from file_migrate.replicate.files import copy_file_with_retry

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReplicatorOptions:
    """Per-run replication switches."""

    copy: BulkCopyOptions = BulkCopyOptions()
    fallback_enabled: bool = True
    permissions_enabled: bool = True


class TreeReplicator:
    """Copy a job's source into its destination, falling back to a slower copy on failure.

    `replicate` always sets the job outcome exactly once and never raises for
    per-entry failures; those are logged with context and folded into the outcome.
    """

    def __init__(
        self,
        bulk_copier: BulkCopier,
        *,
        options: ReplicatorOptions | None = None,
        permissions: PermissionPropagator | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.bulk_copier = bulk_copier
        self.options = options or ReplicatorOptions()
        self._logger = logger or LOGGER
        self.permissions = permissions
        if self.permissions is None and self.options.permissions_enabled:
            self.permissions = PermissionPropagator(logger=self._logger)

    def replicate(self, job: ReplicationJob) -> ReplicationJob:
        try:
            self._replicate(job)
        except EntryMigrationError as exc:
            outcome = "PARTIAL_FAILURE" if job.files_copied > 0 else "FAILURE"
            self._logger.error("replicate.failed %s error=%s", exc.context(), exc.message)
            job.finish(outcome, reason=exc.reason, message=exc.message)
        return job

    def _replicate(self, job: ReplicationJob) -> None:
        source = job.resolved_source
        destination = job.resolved_destination

        if not os.path.lexists(source):
            raise SourceMissing(f"Source path does not exist: {source}", source=source, destination=destination)

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DestinationSetupFailed(
                f"Could not create destination parent {destination.parent}: {exc}",
                source=source,
                destination=destination,
            ) from exc

        job.kind = "DIRECTORY" if source.is_dir() and not source.is_symlink() else "FILE"
        if job.kind == "FILE" and destination.is_dir() and not destination.is_symlink():
            # An existing folder is a sub-folder target: the file lands inside it under its own name.
            destination = destination / source.name
            job.resolved_destination = destination
        self._logger.info(
            "replicate.start kind=%s source=%s destination=%s backend=%s",
            job.kind,
            source,
            destination,
            self.bulk_copier.name,
        )

        if job.kind == "DIRECTORY":
            primary_error = self._copy_directory(job)
        else:
            primary_error = self._copy_file(job)

        if primary_error is None:
            self._propagate_permissions(job)
            job.finish("SUCCESS")
            self._logger.info(
                "replicate.success kind=%s source=%s destination=%s files_copied=%s",
                job.kind,
                source,
                destination,
                job.files_copied,
            )
            return

        self._logger.warning("replicate.primary_failed %s error=%s", primary_error.context(), primary_error.message)
        if not self.options.fallback_enabled:
            raise primary_error

        job.used_fallback = True
        self._logger.info("replicate.fallback_start source=%s destination=%s", source, destination)
        fallback = fallback_copy(
            source,
            destination,
            exclude_older=self.options.copy.exclude_older,
            logger=self._logger,
        )
        job.files_copied += fallback.files_copied
        if fallback.ok:
            job.files_failed = 0
            self._propagate_permissions(job)
            job.finish("SUCCESS", reason="fallback")
            self._logger.info(
                "replicate.fallback_success source=%s destination=%s files_copied=%s",
                source,
                destination,
                fallback.files_copied,
            )
            return

        self._finish_after_fallback_failure(job, primary_error, fallback)

    def _copy_directory(self, job: ReplicationJob) -> EntryMigrationError | None:
        source = job.resolved_source
        destination = job.resolved_destination
        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DestinationSetupFailed(
                f"Could not create destination directory {destination}: {exc}",
                source=source,
                destination=destination,
            ) from exc

        result = self.bulk_copier.copy(source, destination, self.options.copy)
        job.files_copied += result.files_copied
        job.files_failed = result.files_failed
        return self._primary_error(result, source, destination)

    def _copy_file(self, job: ReplicationJob) -> EntryMigrationError | None:
        source = job.resolved_source
        destination = job.resolved_destination
        try:
            action = copy_file_with_retry(
                source,
                destination,
                retries=self.options.copy.retries,
                retry_wait_sec=self.options.copy.retry_wait_sec,
                exclude_older=self.options.copy.exclude_older,
                logger=self._logger,
            )
        except OSError as exc:
            job.files_failed = 1
            return PrimaryCopyFatal(f"File copy failed: {exc}", source=source, destination=destination)
        if action == "copied":
            job.files_copied += 1
        return None

    @staticmethod
    def _primary_error(result: BulkCopyResult, source: Path, destination: Path) -> EntryMigrationError | None:
        if result.severity == "SUCCESS":
            return None
        detail = result.message or "no detail"
        if result.return_code is not None:
            detail = f"return_code={result.return_code} {detail}"
        if result.severity == "PARTIAL_FAILURE":
            return PrimaryCopyPartialFailure(
                f"Bulk copy left {result.files_failed or 'some'} item(s) uncopied: {detail}",
                source=source,
                destination=destination,
            )
        return PrimaryCopyFatal(f"Bulk copy could not run: {detail}", source=source, destination=destination)

    def _finish_after_fallback_failure(
        self,
        job: ReplicationJob,
        primary_error: EntryMigrationError,
        fallback: FallbackResult,
    ) -> None:
        source = job.resolved_source
        destination = job.resolved_destination
        job.files_failed = fallback.files_failed
        error = FallbackCopyFailed(
            f"Fallback copy failed after {primary_error.reason}: {fallback.message or 'no detail'}",
            source=source,
            destination=destination,
        )
        self._logger.error("replicate.failed %s error=%s", error.context(), error.message)

        progress_made = job.files_copied > 0 or isinstance(primary_error, PrimaryCopyPartialFailure)
        if progress_made and not fallback.fatal:
            # Content that did arrive keeps its permissions in step with the source.
            self._propagate_permissions(job)
        job.finish("PARTIAL_FAILURE" if progress_made else "FAILURE", reason=error.reason, message=error.message)

    def _propagate_permissions(self, job: ReplicationJob) -> None:
        if self.permissions is None:
            return
        report = self.permissions.propagate(job.resolved_source, job.resolved_destination)
        job.permission_failures = report.failed
        if report.failed:
            self._logger.warning(
                "replicate.permissions_incomplete source=%s destination=%s applied=%s failed=%s",
                job.resolved_source,
                job.resolved_destination,
                report.applied,
                report.failed,
            )
