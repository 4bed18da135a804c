"""Shared fixtures for file_migrate tests."""

from __future__ import annotations

import csv
from collections.abc import Callable
from pathlib import Path

import pytest

from file_migrate.config import AppSettings, PathsConfig, PermissionsConfig, TransferConfig

MANIFEST_HEADER = ("Source Path", "Destination Sub Folder")


def write_manifest(path: Path, rows: list[tuple[str, str]], header: tuple[str, ...] = MANIFEST_HEADER) -> Path:
    """Write a manifest CSV with the standard header."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(header)
        for row in rows:
            writer.writerow(row)
    return path


@pytest.fixture
def source_root(tmp_path: Path) -> Path:
    root = tmp_path / "source"
    root.mkdir()
    return root


@pytest.fixture
def destination_root(tmp_path: Path) -> Path:
    root = tmp_path / "destination"
    root.mkdir()
    return root


@pytest.fixture
def make_settings(tmp_path: Path, source_root: Path, destination_root: Path) -> Callable[..., AppSettings]:
    """Build settings rooted in the test's temporary directory."""

    def _factory(**transfer_overrides: object) -> AppSettings:
        transfer = {"backend": "native", "threads": 4, "retries": 1, "retry_wait_sec": 0.0}
        transfer.update(transfer_overrides)
        return AppSettings(
            paths=PathsConfig(
                source_root=source_root,
                destination_root=destination_root,
                logs_root=tmp_path / "logs",
                artifacts_root=tmp_path / "artifacts",
            ),
            transfer=TransferConfig(**transfer),
            permissions=PermissionsConfig(enabled=True),
        )

    return _factory


@pytest.fixture
def docs_tree(source_root: Path) -> Path:
    """Source `Docs` with one file `a.txt` ("hi") and one empty subdirectory."""

    docs = source_root / "Docs"
    docs.mkdir()
    (docs / "a.txt").write_text("hi", encoding="utf-8")
    (docs / "empty").mkdir()
    return docs
