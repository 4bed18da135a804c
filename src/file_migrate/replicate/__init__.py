"""Replication stage: bulk copy backends, fallback copy and the tree replicator."""

from file_migrate.replicate.bulk import (
    BULK_COPY_SEVERITY_VALUES,
    BulkCopier,
    BulkCopyOptions,
    BulkCopyResult,
    BulkCopySeverity,
    NativeBulkCopier,
    RobocopyBulkCopier,
    build_bulk_copier,
    classify_robocopy_exit_code,
)
from file_migrate.replicate.fallback import FallbackResult, fallback_copy
from file_migrate.replicate.files import copy_entry, copy_file_with_retry, destination_is_current
from file_migrate.replicate.tree import ReplicatorOptions, TreeReplicator

__all__ = [
    "BULK_COPY_SEVERITY_VALUES",
    "BulkCopier",
    "BulkCopyOptions",
    "BulkCopyResult",
    "BulkCopySeverity",
    "NativeBulkCopier",
    "RobocopyBulkCopier",
    "build_bulk_copier",
    "classify_robocopy_exit_code",
    "FallbackResult",
    "fallback_copy",
    "copy_entry",
    "copy_file_with_retry",
    "destination_is_current",
    "ReplicatorOptions",
    "TreeReplicator",
]
