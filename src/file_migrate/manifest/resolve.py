"""Map raw manifest path strings to absolute filesystem paths."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path, PureWindowsPath

from file_migrate.models import ManifestEntry


@dataclass(frozen=True, slots=True)
class ResolvedEntry:
    """Absolute source and destination for one manifest entry."""

    entry: ManifestEntry
    source: Path
    destination: Path


def _is_fully_qualified(raw: str) -> bool:
    """Return True for drive-qualified/UNC paths on Windows and rooted paths on POSIX.

    On POSIX, drive letters and UNC prefixes are kept as path segments under the root.
    """

    if os.name == "nt":
        return bool(PureWindowsPath(raw).drive)
    return raw.startswith("/")


def _native_separators(raw: str) -> str:
    if os.name == "nt":
        return raw.replace("/", "\\")
    return raw.replace("\\", "/")


def resolve_path(raw: str, root: Path) -> Path:
    """Join a manifest path to `root` unless it is already fully qualified.

    Both separator styles are accepted. A leading separator without a drive is
    treated as relative to `root`. The result is normalized but symbolic links are
    not followed, so a manifest entry that is itself a link stays a link.
    """

    cleaned = raw.strip().strip('"')
    if _is_fully_qualified(cleaned):
        candidate = Path(_native_separators(cleaned))
    else:
        relative = _native_separators(cleaned).lstrip("\\/")
        candidate = root / relative if relative else root
    return Path(os.path.abspath(candidate))


def resolve_entry(entry: ManifestEntry, source_root: Path, destination_root: Path) -> ResolvedEntry:
    """Resolve both sides of a manifest entry."""

    return ResolvedEntry(
        entry=entry,
        source=resolve_path(entry.source_path, source_root),
        destination=resolve_path(entry.destination_path, destination_root),
    )
