"""Manifest package for reading and resolving migration entries."""

from file_migrate.manifest.reader import (
    DEFAULT_DESTINATION_COLUMN,
    DEFAULT_SOURCE_COLUMN,
    ManifestReadResult,
    read_manifest,
)
from file_migrate.manifest.resolve import ResolvedEntry, resolve_entry, resolve_path

__all__ = [
    "DEFAULT_SOURCE_COLUMN",
    "DEFAULT_DESTINATION_COLUMN",
    "ManifestReadResult",
    "read_manifest",
    "ResolvedEntry",
    "resolve_entry",
    "resolve_path",
]
