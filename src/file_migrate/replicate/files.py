"""Single-entry copy helpers shared by the native, fallback and file-job paths."""

from __future__ import annotations

import logging
import os
import shutil
import time
from pathlib import Path
from typing import Literal

LOGGER = logging.getLogger(__name__)

CopyAction = Literal["copied", "skipped_newer"]


def _is_real_directory(path: Path) -> bool:
    return os.path.isdir(path) and not os.path.islink(path)


def destination_is_current(source: Path, destination: Path) -> bool:
    """True when the destination exists, has the same kind and is at least as new as the source."""

    try:
        destination_stat = os.lstat(destination)
    except FileNotFoundError:
        return False
    if _is_real_directory(destination) != _is_real_directory(source):
        return False
    source_stat = os.lstat(source)
    return destination_stat.st_mtime_ns >= source_stat.st_mtime_ns


def copy_symlink(source: Path, destination: Path) -> None:
    """Recreate `source` as a link at `destination` without dereferencing it."""

    target = os.readlink(source)
    if os.path.lexists(destination):
        if os.path.islink(destination) and os.readlink(destination) == target:
            return
        if _is_real_directory(destination):
            raise IsADirectoryError(f"Cannot replace directory {destination} with a symbolic link")
        os.unlink(destination)
    os.symlink(target, destination, target_is_directory=source.is_dir())
    shutil.copystat(source, destination, follow_symlinks=False)


def copy_entry(source: Path, destination: Path, *, exclude_older: bool = True) -> CopyAction:
    """Copy one file or link preserving data, attributes and timestamps.

    A directory already sitting at `destination` is never copied into or replaced.
    """

    if _is_real_directory(destination):
        raise IsADirectoryError(f"Destination is a directory, expected a file: {destination}")
    if exclude_older and destination_is_current(source, destination):
        return "skipped_newer"
    if source.is_symlink():
        copy_symlink(source, destination)
    else:
        shutil.copy2(source, destination, follow_symlinks=False)
    return "copied"


def copy_file_with_retry(
    source: Path,
    destination: Path,
    *,
    retries: int = 1,
    retry_wait_sec: float = 1.0,
    exclude_older: bool = True,
    logger: logging.Logger | None = None,
) -> CopyAction:
    """Copy one entry, retrying failed attempts after `retry_wait_sec`.

    The last failure is re-raised once `retries` extra attempts are exhausted.
    """

    effective_logger = logger or LOGGER
    attempts = max(0, retries) + 1
    attempt = 1
    while True:
        try:
            return copy_entry(source, destination, exclude_older=exclude_older)
        except OSError as exc:
            if attempt >= attempts:
                raise
            effective_logger.warning(
                "copy_file.retry source=%s destination=%s attempt=%s/%s error=%s",
                source,
                destination,
                attempt,
                attempts,
                exc,
            )
            time.sleep(retry_wait_sec)
            attempt += 1
