"""Time utility helpers for UTC-safe timestamps."""

from __future__ import annotations

from datetime import datetime, timezone


def now_utc() -> datetime:
    """Return current timezone-aware UTC timestamp."""

    return datetime.now(timezone.utc)


def now_local() -> datetime:
    """Return current local wall-clock time, used for operator-facing file names."""

    return datetime.now().astimezone()
