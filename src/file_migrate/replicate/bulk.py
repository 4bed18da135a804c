"""Bulk directory-tree copy backends behind one `BulkCopier` interface."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Protocol

from file_migrate.replicate.files import copy_file_with_retry

LOGGER = logging.getLogger(__name__)

BulkCopySeverity = Literal["SUCCESS", "PARTIAL_FAILURE", "FATAL"]
BULK_COPY_SEVERITY_VALUES: tuple[BulkCopySeverity, ...] = ("SUCCESS", "PARTIAL_FAILURE", "FATAL")

# Robocopy exit codes are bit flags: 1 copied, 2 extra, 4 mismatched, 8 failures, 16 fatal.
ROBOCOPY_FAILURE_THRESHOLD = 8
ROBOCOPY_FATAL_CODE = 16
MAX_REPORTED_FAILURES = 200


@dataclass(frozen=True, slots=True)
class BulkCopyOptions:
    """Copy semantics shared by every backend."""

    threads: int = 8
    retries: int = 1
    retry_wait_sec: float = 1.0
    exclude_older: bool = True
    copy_security: bool = True
    copy_audit: bool = False


@dataclass(frozen=True, slots=True)
class BulkCopyResult:
    """Outcome of one bulk copy, classified into three severity tiers."""

    severity: BulkCopySeverity
    files_copied: int = 0
    files_skipped: int = 0
    files_failed: int = 0
    dirs_created: int = 0
    return_code: int | None = None
    message: str = ""
    failures: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        if self.severity not in BULK_COPY_SEVERITY_VALUES:
            raise ValueError(f"Unknown bulk copy severity: {self.severity}")

    @property
    def ok(self) -> bool:
        return self.severity == "SUCCESS"


class BulkCopier(Protocol):
    """Blocking, non-destructive tree copy: never deletes destination-only files."""

    name: str

    def copy(self, source: Path, destination: Path, options: BulkCopyOptions) -> BulkCopyResult: ...


def classify_robocopy_exit_code(return_code: int) -> BulkCopySeverity:
    """Map a robocopy exit code onto the three severity tiers."""

    if 0 <= return_code < ROBOCOPY_FAILURE_THRESHOLD:
        return "SUCCESS"
    if return_code == ROBOCOPY_FATAL_CODE or return_code < 0:
        return "FATAL"
    return "PARTIAL_FAILURE"


class NativeBulkCopier:
    """Thread-pooled tree copy built on `shutil`.

    Directories are walked iteratively and created on the calling thread; file
    copies run on a pool of `options.threads` workers. Symbolic links are recreated
    as links and junctions are not traversed.
    """

    name = "native"

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or LOGGER

    def copy(self, source: Path, destination: Path, options: BulkCopyOptions) -> BulkCopyResult:
        if not source.is_dir():
            return BulkCopyResult(severity="FATAL", message=f"Source is not a directory: {source}")
        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            return BulkCopyResult(severity="FATAL", message=f"Cannot create destination {destination}: {exc}")

        files_copied = 0
        files_skipped = 0
        dirs_created = 0
        failures: list[tuple[str, str]] = []
        directory_pairs: list[tuple[Path, Path]] = [(source, destination)]
        pending: list[tuple[Path, Path]] = [(source, destination)]
        futures: dict[Future[str], Path] = {}

        with ThreadPoolExecutor(max_workers=max(1, options.threads), thread_name_prefix="bulk-copy") as pool:
            while pending:
                source_dir, destination_dir = pending.pop()
                try:
                    with os.scandir(source_dir) as iterator:
                        children = sorted(iterator, key=lambda item: item.name)
                except OSError as exc:
                    if source_dir == source:
                        return BulkCopyResult(severity="FATAL", message=f"Cannot list source {source}: {exc}")
                    failures.append((str(source_dir), str(exc)))
                    continue

                for child in children:
                    child_source = Path(child.path)
                    child_destination = destination_dir / child.name
                    if child.is_junction():
                        files_skipped += 1
                        self._logger.warning("bulk_copy.junction_skipped path=%s", child_source)
                        continue
                    if child.is_dir(follow_symlinks=False):
                        try:
                            if not child_destination.is_dir():
                                child_destination.mkdir()
                                dirs_created += 1
                        except OSError as exc:
                            failures.append((str(child_source), str(exc)))
                            continue
                        pending.append((child_source, child_destination))
                        directory_pairs.append((child_source, child_destination))
                        continue
                    future = pool.submit(
                        copy_file_with_retry,
                        child_source,
                        child_destination,
                        retries=options.retries,
                        retry_wait_sec=options.retry_wait_sec,
                        exclude_older=options.exclude_older,
                        logger=self._logger,
                    )
                    futures[future] = child_source

            for future in as_completed(futures):
                child_source = futures[future]
                try:
                    action = future.result()
                except OSError as exc:
                    failures.append((str(child_source), str(exc)))
                    continue
                if action == "copied":
                    files_copied += 1
                else:
                    files_skipped += 1

        # Directory timestamps change while children are written; apply them last, deepest first.
        for source_dir, destination_dir in reversed(directory_pairs):
            try:
                shutil.copystat(source_dir, destination_dir)
            except OSError as exc:
                self._logger.warning("bulk_copy.dir_stat_failed path=%s error=%s", destination_dir, exc)

        for failed_path, error in failures[:MAX_REPORTED_FAILURES]:
            self._logger.error("bulk_copy.item_failed path=%s error=%s", failed_path, error)

        severity: BulkCopySeverity = "PARTIAL_FAILURE" if failures else "SUCCESS"
        return BulkCopyResult(
            severity=severity,
            files_copied=files_copied,
            files_skipped=files_skipped,
            files_failed=len(failures),
            dirs_created=dirs_created,
            message=f"{len(failures)} item(s) failed" if failures else "",
            failures=tuple(failures[:MAX_REPORTED_FAILURES]),
        )


class RobocopyBulkCopier:
    """Runs robocopy as a blocking subprocess and classifies its exit code."""

    name = "robocopy"

    def __init__(self, executable: str = "robocopy", logger: logging.Logger | None = None) -> None:
        self.executable = executable
        self._logger = logger or LOGGER

    def build_command(self, source: Path, destination: Path, options: BulkCopyOptions) -> list[str]:
        """Build a non-destructive command line; /MIR and /PURGE are never used."""

        if options.copy_security:
            copy_flags = "/COPY:DATSOU" if options.copy_audit else "/COPY:DATSO"
        else:
            copy_flags = "/COPY:DAT"
        command = [
            self.executable,
            str(source),
            str(destination),
            "/E",
            copy_flags,
            "/DCOPY:DAT",
            "/SL",
            f"/R:{options.retries}",
            f"/W:{int(round(options.retry_wait_sec))}",
            f"/MT:{options.threads}",
            "/NFL",
            "/NDL",
            "/NP",
        ]
        if options.exclude_older:
            command.append("/XO")
        return command

    def copy(self, source: Path, destination: Path, options: BulkCopyOptions) -> BulkCopyResult:
        command = self.build_command(source, destination, options)
        self._logger.debug("bulk_copy.robocopy_command command=%s", subprocess.list2cmdline(command))
        try:
            completed = subprocess.run(command, capture_output=True, text=True, errors="replace", check=False)
        except FileNotFoundError:
            return BulkCopyResult(
                severity="FATAL",
                message=f"{self.executable} not found. Is it in your system's PATH?",
            )
        except OSError as exc:
            return BulkCopyResult(severity="FATAL", message=f"Could not start {self.executable}: {exc}")

        severity = classify_robocopy_exit_code(completed.returncode)
        output_tail = "\n".join((completed.stdout or "").strip().splitlines()[-12:])
        if severity != "SUCCESS":
            stderr_text = (completed.stderr or "").strip()
            self._logger.error(
                "bulk_copy.robocopy_failed return_code=%s source=%s destination=%s output=%s stderr=%s",
                completed.returncode,
                source,
                destination,
                output_tail,
                stderr_text,
            )
        return BulkCopyResult(
            severity=severity,
            return_code=completed.returncode,
            message=output_tail,
        )


def build_bulk_copier(
    backend: str = "auto",
    *,
    robocopy_executable: str = "robocopy",
    logger: logging.Logger | None = None,
) -> BulkCopier:
    """Select a backend; `auto` prefers robocopy on Windows when it is on PATH."""

    if backend == "native":
        return NativeBulkCopier(logger=logger)
    if backend == "robocopy":
        return RobocopyBulkCopier(executable=robocopy_executable, logger=logger)
    if backend == "auto":
        if os.name == "nt" and shutil.which(robocopy_executable):
            return RobocopyBulkCopier(executable=robocopy_executable, logger=logger)
        return NativeBulkCopier(logger=logger)
    raise ValueError(f"Unknown copy backend: {backend}")
