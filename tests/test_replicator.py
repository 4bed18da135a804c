"""Tests for the tree replicator's primary/fallback flow and outcome rules."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from file_migrate.models import ManifestEntry, ReplicationJob
from file_migrate.permissions import PermissionPropagator
from file_migrate.replicate import tree
from file_migrate.replicate.bulk import BulkCopyOptions, BulkCopyResult, NativeBulkCopier
from file_migrate.replicate.fallback import FallbackResult
from file_migrate.replicate.tree import ReplicatorOptions, TreeReplicator

FAST = BulkCopyOptions(threads=2, retries=0, retry_wait_sec=0.0)


class StubCopier:
    """Bulk copier that returns a canned result without touching the filesystem."""

    name = "stub"

    def __init__(self, result: BulkCopyResult) -> None:
        self.result = result
        self.calls: list[tuple[Path, Path]] = []

    def copy(self, source: Path, destination: Path, options: BulkCopyOptions) -> BulkCopyResult:
        self.calls.append((source, destination))
        return self.result


class RejectingBackend:
    """Permission backend that refuses every apply."""

    def read(self, path: Path) -> object:
        return None

    def apply(self, source: Path, destination: Path) -> None:
        raise PermissionError(f"cannot set owner on {destination}")


def _job(source: Path, destination: Path) -> ReplicationJob:
    entry = ManifestEntry(source_path=source.name, destination_path=destination.name, line_no=2)
    return ReplicationJob(entry=entry, resolved_source=source, resolved_destination=destination)


def _replicator(copier: object, *, fallback_enabled: bool = True, permissions: PermissionPropagator | None = None) -> TreeReplicator:
    return TreeReplicator(
        copier,
        options=ReplicatorOptions(copy=FAST, fallback_enabled=fallback_enabled, permissions_enabled=permissions is not None),
        permissions=permissions,
    )


@pytest.fixture
def tree_source(tmp_path: Path) -> Path:
    source = tmp_path / "src" / "Docs"
    (source / "sub").mkdir(parents=True)
    (source / "a.txt").write_text("hi", encoding="utf-8")
    (source / "sub" / "b.txt").write_text("bee", encoding="utf-8")
    return source


def test_missing_source_fails_with_source_missing(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    job = _job(tmp_path / "src" / "nope", tmp_path / "dst" / "nope")

    with caplog.at_level(logging.ERROR):
        _replicator(NativeBulkCopier()).replicate(job)

    assert job.outcome == "FAILURE"
    assert job.reason == "SourceMissing"
    assert job.kind is None
    assert any("reason=SourceMissing" in record.getMessage() for record in caplog.records)
    assert not (tmp_path / "dst").exists()


def test_directory_job_copies_tree(tree_source: Path, tmp_path: Path) -> None:
    destination = tmp_path / "dst" / "Backup" / "Docs"
    job = _job(tree_source, destination)

    _replicator(NativeBulkCopier()).replicate(job)

    assert job.outcome == "SUCCESS"
    assert job.kind == "DIRECTORY"
    assert job.files_copied == 2
    assert not job.used_fallback
    assert (destination / "sub" / "b.txt").read_text(encoding="utf-8") == "bee"


def test_file_job_copies_single_file(tree_source: Path, tmp_path: Path) -> None:
    destination = tmp_path / "dst" / "deep" / "copy.txt"
    job = _job(tree_source / "a.txt", destination)

    _replicator(NativeBulkCopier()).replicate(job)

    assert job.outcome == "SUCCESS"
    assert job.kind == "FILE"
    assert destination.read_text(encoding="utf-8") == "hi"


def test_partial_primary_failure_recovers_through_fallback(tree_source: Path, tmp_path: Path) -> None:
    destination = tmp_path / "dst" / "Docs"
    copier = StubCopier(BulkCopyResult(severity="PARTIAL_FAILURE", files_failed=2, message="2 failed"))
    job = _job(tree_source, destination)

    _replicator(copier).replicate(job)

    assert copier.calls == [(tree_source, destination)]
    assert job.outcome == "SUCCESS"
    assert job.used_fallback
    assert job.reason == "fallback"
    assert (destination / "a.txt").read_text(encoding="utf-8") == "hi"
    assert (destination / "sub" / "b.txt").read_text(encoding="utf-8") == "bee"


def test_fatal_primary_failure_also_triggers_fallback(tree_source: Path, tmp_path: Path) -> None:
    destination = tmp_path / "dst" / "Docs"
    copier = StubCopier(BulkCopyResult(severity="FATAL", return_code=16, message="invalid parameter"))
    job = _job(tree_source, destination)

    _replicator(copier).replicate(job)

    assert job.outcome == "SUCCESS"
    assert job.used_fallback


def test_both_strategies_failing_without_progress_is_failure(
    tree_source: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    copier = StubCopier(BulkCopyResult(severity="FATAL", return_code=16))
    monkeypatch.setattr(
        tree,
        "fallback_copy",
        lambda *args, **kwargs: FallbackResult(0, 0, 0, fatal=True, message="access denied"),
    )
    job = _job(tree_source, tmp_path / "dst" / "Docs")

    _replicator(copier).replicate(job)

    assert job.outcome == "FAILURE"
    assert job.reason == "FallbackCopyFailed"


def test_fallback_failure_after_progress_is_partial(
    tree_source: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    copier = StubCopier(BulkCopyResult(severity="PARTIAL_FAILURE", files_copied=5, files_failed=1))
    monkeypatch.setattr(
        tree,
        "fallback_copy",
        lambda *args, **kwargs: FallbackResult(1, 4, 1, fatal=False, message="1 item(s) failed"),
    )
    job = _job(tree_source, tmp_path / "dst" / "Docs")

    _replicator(copier).replicate(job)

    assert job.outcome == "PARTIAL_FAILURE"
    assert job.reason == "FallbackCopyFailed"
    assert job.files_copied == 6
    assert job.files_failed == 1


def test_disabled_fallback_reports_primary_error(tree_source: Path, tmp_path: Path) -> None:
    copier = StubCopier(BulkCopyResult(severity="PARTIAL_FAILURE", files_failed=1))
    job = _job(tree_source, tmp_path / "dst" / "Docs")

    _replicator(copier, fallback_enabled=False).replicate(job)

    assert job.outcome == "FAILURE"
    assert job.reason == "PrimaryCopyPartialFailure"
    assert not job.used_fallback


def test_destination_setup_failure(tree_source: Path, tmp_path: Path) -> None:
    blocker = tmp_path / "dst" / "blocker"
    blocker.parent.mkdir(parents=True)
    blocker.write_text("not a directory", encoding="utf-8")
    job = _job(tree_source, blocker / "Docs")

    _replicator(NativeBulkCopier()).replicate(job)

    assert job.outcome == "FAILURE"
    assert job.reason == "DestinationSetupFailed"


def test_permission_failures_do_not_downgrade_success(tree_source: Path, tmp_path: Path) -> None:
    destination = tmp_path / "dst" / "Docs"
    permissions = PermissionPropagator(backend=RejectingBackend())
    job = _job(tree_source, destination)

    _replicator(NativeBulkCopier(), permissions=permissions).replicate(job)

    assert job.outcome == "SUCCESS"
    # root, a.txt, sub, sub/b.txt
    assert job.permission_failures == 4
    assert (destination / "a.txt").read_text(encoding="utf-8") == "hi"


@pytest.mark.parametrize("folder_mtime", [1_000.0, 2_000_000_000.0])
def test_file_job_into_existing_folder_lands_inside_it(tmp_path: Path, folder_mtime: float) -> None:
    source = tmp_path / "src" / "notes.txt"
    source.parent.mkdir(parents=True)
    source.write_text("n", encoding="utf-8")
    os.utime(source, (1_000_000, 1_000_000))
    archive = tmp_path / "dst" / "Archive"
    archive.mkdir(parents=True)
    os.utime(archive, (folder_mtime, folder_mtime))
    job = _job(source, archive)

    _replicator(NativeBulkCopier()).replicate(job)

    assert job.outcome == "SUCCESS"
    assert job.files_copied == 1
    assert job.resolved_destination == archive / "notes.txt"
    assert (archive / "notes.txt").read_text(encoding="utf-8") == "n"
