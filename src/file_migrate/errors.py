"""Error taxonomy for manifest loading and per-entry replication."""

from __future__ import annotations

from pathlib import Path


class MigrationError(Exception):
    """Base class for migration failures; `reason` names the failure class in logs."""

    reason = "MigrationError"

    def __init__(
        self,
        message: str,
        *,
        source: Path | None = None,
        destination: Path | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.source = source
        self.destination = destination

    def context(self) -> str:
        """Render `reason=... source=... destination=...` for log lines."""

        parts = [f"reason={self.reason}"]
        if self.source is not None:
            parts.append(f"source={self.source}")
        if self.destination is not None:
            parts.append(f"destination={self.destination}")
        return " ".join(parts)


class FatalMigrationError(MigrationError):
    """Raised when the whole run must abort before any entry is processed."""


class ManifestNotFound(FatalMigrationError):
    """Raised when the manifest file does not exist."""

    reason = "ManifestNotFound"


class ManifestUnreadable(FatalMigrationError):
    """Raised when the manifest cannot be parsed or lacks required columns."""

    reason = "ManifestUnreadable"


class EntryMigrationError(MigrationError):
    """Raised for failures scoped to a single manifest entry."""


class SourceMissing(EntryMigrationError):
    reason = "SourceMissing"


class DestinationSetupFailed(EntryMigrationError):
    reason = "DestinationSetupFailed"


class PrimaryCopyPartialFailure(EntryMigrationError):
    reason = "PrimaryCopyPartialFailure"


class PrimaryCopyFatal(EntryMigrationError):
    reason = "PrimaryCopyFatal"


class FallbackCopyFailed(EntryMigrationError):
    reason = "FallbackCopyFailed"


class PermissionApplyFailed(EntryMigrationError):
    """Raised when access-control metadata could not be applied to a destination item."""

    reason = "PermissionApplyFailed"
