"""Shared utility helpers."""

from file_migrate.utils.paths import atomic_temp_path, write_json_atomically
from file_migrate.utils.time_utils import now_local, now_utc

__all__ = [
    "atomic_temp_path",
    "write_json_atomically",
    "now_local",
    "now_utc",
]
