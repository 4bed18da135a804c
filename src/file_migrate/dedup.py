"""Skip entries whose parent directory was already replicated earlier in the run."""

from __future__ import annotations

import os
from pathlib import Path


def _key(path: Path) -> str:
    return os.path.normcase(os.path.normpath(str(path)))


class ProcessedSet:
    """Source directories already replicated during this run.

    Grows monotonically. An entry is skipped when the immediate parent of its
    resolved source was recorded by an earlier directory job; deeper descendants
    are not matched.
    """

    def __init__(self) -> None:
        self._paths: set[str] = set()

    def __contains__(self, path: Path) -> bool:
        return _key(path) in self._paths

    def __len__(self) -> int:
        return len(self._paths)

    def should_skip(self, source: Path) -> bool:
        """Return True when the parent of `source` was already processed."""

        parent = source.parent
        if parent == source:
            return False
        return parent in self

    def mark(self, source: Path) -> None:
        """Record a directory source once its replication attempt has finished."""

        self._paths.add(_key(source))
