"""Best-effort sequential copy used after the primary copy reports failures."""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from file_migrate.replicate.files import copy_entry

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FallbackResult:
    """Counts from one fallback pass; `fatal` means nothing could be attempted."""

    files_copied: int
    files_skipped: int
    files_failed: int
    fatal: bool
    message: str = ""
    failures: tuple[tuple[str, str], ...] = ()

    @property
    def ok(self) -> bool:
        return not self.fatal and self.files_failed == 0


def fallback_copy(
    source: Path,
    destination: Path,
    *,
    exclude_older: bool = True,
    logger: logging.Logger | None = None,
) -> FallbackResult:
    """Copy `source` into `destination` one item at a time.

    Failures are recorded and the walk continues with the remaining items. Works for
    a single file as well as for a directory tree, and never deletes anything at the
    destination.
    """

    effective_logger = logger or LOGGER
    if not os.path.lexists(source):
        return FallbackResult(0, 0, 0, fatal=True, message=f"Source does not exist: {source}")

    if not source.is_dir() or source.is_symlink():
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            action = copy_entry(source, destination, exclude_older=exclude_older)
        except OSError as exc:
            effective_logger.error("fallback.item_failed path=%s error=%s", source, exc)
            return FallbackResult(0, 0, 1, fatal=True, message=str(exc), failures=((str(source), str(exc)),))
        copied = 1 if action == "copied" else 0
        return FallbackResult(copied, 1 - copied, 0, fatal=False)

    try:
        destination.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        return FallbackResult(0, 0, 0, fatal=True, message=f"Cannot create destination {destination}: {exc}")

    copied = 0
    skipped = 0
    failures: list[tuple[str, str]] = []
    directory_pairs: list[tuple[Path, Path]] = [(source, destination)]
    pending: list[tuple[Path, Path]] = [(source, destination)]
    while pending:
        source_dir, destination_dir = pending.pop()
        try:
            children = sorted(os.listdir(source_dir))
        except OSError as exc:
            if source_dir == source:
                return FallbackResult(0, 0, 0, fatal=True, message=f"Cannot list source {source}: {exc}")
            failures.append((str(source_dir), str(exc)))
            continue

        for name in children:
            child_source = source_dir / name
            child_destination = destination_dir / name
            try:
                if child_source.is_dir() and not child_source.is_symlink() and not child_source.is_junction():
                    child_destination.mkdir(exist_ok=True)
                    pending.append((child_source, child_destination))
                    directory_pairs.append((child_source, child_destination))
                    continue
                if child_source.is_junction():
                    skipped += 1
                    continue
                if copy_entry(child_source, child_destination, exclude_older=exclude_older) == "copied":
                    copied += 1
                else:
                    skipped += 1
            except OSError as exc:
                effective_logger.error("fallback.item_failed path=%s error=%s", child_source, exc)
                failures.append((str(child_source), str(exc)))

    for source_dir, destination_dir in reversed(directory_pairs):
        try:
            shutil.copystat(source_dir, destination_dir)
        except OSError as exc:
            effective_logger.warning("fallback.dir_stat_failed path=%s error=%s", destination_dir, exc)

    return FallbackResult(
        files_copied=copied,
        files_skipped=skipped,
        files_failed=len(failures),
        fatal=False,
        message=f"{len(failures)} item(s) failed" if failures else "",
        failures=tuple(failures),
    )
