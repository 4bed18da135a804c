"""CLI tests driven through Typer's test runner."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from conftest import write_manifest
from file_migrate.cli import FATAL_EXIT_CODE, app

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path: Path, source_root: Path, destination_root: Path) -> Path:
    """Settings file whose relative paths resolve under the temporary project root."""

    settings = {
        "paths": {
            "source_root": "./source",
            "destination_root": "./destination",
            "logs_root": "./logs",
            "artifacts_root": "./artifacts",
        },
        "transfer": {"backend": "native", "threads": 2, "retries": 0, "retry_wait_sec": 0.0},
        "logging": {"level": "INFO", "file_prefix": "migration"},
    }
    path = tmp_path / "configs" / "settings.yaml"
    path.parent.mkdir()
    path.write_text(yaml.safe_dump(settings), encoding="utf-8")
    return path


def test_run_copies_manifest_entries(
    tmp_path: Path, config_file: Path, docs_tree: Path, destination_root: Path
) -> None:
    manifest = write_manifest(tmp_path / "manifest.csv", [("Docs", r"Backup\Docs")])

    result = runner.invoke(app, ["run", "--manifest", str(manifest), "--config-file", str(config_file)])

    assert result.exit_code == 0, result.output
    assert "processed: 1" in result.stdout
    assert "succeeded: 1" in result.stdout
    assert "failed: 0" in result.stdout
    assert (destination_root / "Backup" / "Docs" / "a.txt").read_text(encoding="utf-8") == "hi"
    log_files = list((tmp_path / "logs").glob("migration_*.log"))
    assert len(log_files) == 1
    assert "migrate_run.complete" in log_files[0].read_text(encoding="utf-8")


def test_run_with_missing_manifest_exits_without_summary(tmp_path: Path, config_file: Path) -> None:
    result = runner.invoke(
        app,
        ["run", "--manifest", str(tmp_path / "absent.csv"), "--config-file", str(config_file)],
    )

    assert result.exit_code == FATAL_EXIT_CODE
    assert "processed:" not in result.output
    log_files = list((tmp_path / "logs").glob("migration_*.log"))
    assert len(log_files) == 1
    log_text = log_files[0].read_text(encoding="utf-8")
    assert "ManifestNotFound" in log_text
    assert "[ERROR]" in log_text


def test_run_rejects_unknown_backend(tmp_path: Path, config_file: Path) -> None:
    manifest = write_manifest(tmp_path / "manifest.csv", [("Docs", "Backup")])

    result = runner.invoke(
        app,
        ["run", "--manifest", str(manifest), "--backend", "ftp", "--config-file", str(config_file)],
    )

    assert result.exit_code != 0


def test_dry_run_leaves_destination_empty(
    tmp_path: Path, config_file: Path, docs_tree: Path, destination_root: Path
) -> None:
    manifest = write_manifest(tmp_path / "manifest.csv", [("Docs", "Backup")])

    result = runner.invoke(
        app,
        ["run", "--manifest", str(manifest), "--dry-run", "--config-file", str(config_file)],
    )

    assert result.exit_code == 0, result.output
    assert "skipped: 1" in result.stdout
    assert list(destination_root.iterdir()) == []


def test_show_config_prints_resolved_settings(tmp_path: Path, config_file: Path) -> None:
    result = runner.invoke(app, ["show-config", "--config-file", str(config_file)])

    assert result.exit_code == 0, result.output
    rendered = yaml.safe_load(result.stdout)
    assert rendered["transfer"]["backend"] == "native"
    assert Path(rendered["paths"]["source_root"]) == (tmp_path / "source").resolve()


def test_check_manifest_lists_resolved_pairs(tmp_path: Path, config_file: Path) -> None:
    manifest = write_manifest(tmp_path / "manifest.csv", [("Docs", r"Backup\Docs"), ("", "Nowhere")])

    result = runner.invoke(app, ["check-manifest", "-m", str(manifest), "--config-file", str(config_file)])

    assert result.exit_code == 0, result.output
    expected_source = (tmp_path / "source").resolve() / "Docs"
    expected_destination = (tmp_path / "destination").resolve() / "Backup" / "Docs"
    assert f"line 2: {expected_source} -> {expected_destination}" in result.stdout
    assert "entries: 1" in result.stdout
    assert "invalid: 1" in result.stdout


def test_check_manifest_missing_file_is_fatal(tmp_path: Path, config_file: Path) -> None:
    result = runner.invoke(
        app,
        ["check-manifest", "-m", str(tmp_path / "absent.csv"), "--config-file", str(config_file)],
    )

    assert result.exit_code == FATAL_EXIT_CODE
    assert "entries:" not in result.output


def test_missing_source_still_exits_zero(tmp_path: Path, config_file: Path) -> None:
    manifest = write_manifest(tmp_path / "manifest.csv", [("Ghost", "Backup")])

    result = runner.invoke(app, ["run", "--manifest", str(manifest), "--config-file", str(config_file)])

    assert result.exit_code == 0, result.output
    assert "processed: 1" in result.stdout
    assert "succeeded: 0" in result.stdout
    assert "failed: 1" in result.stdout
    log_files = list((tmp_path / "logs").glob("migration_*.log"))
    assert len(log_files) == 1
    assert "SourceMissing" in log_files[0].read_text(encoding="utf-8")


def test_unwritable_artifacts_root_keeps_summary_and_exit_code(
    tmp_path: Path, config_file: Path, docs_tree: Path, destination_root: Path
) -> None:
    (tmp_path / "artifacts").write_text("not a directory", encoding="utf-8")
    manifest = write_manifest(tmp_path / "manifest.csv", [("Docs", "Backup/Docs")])

    result = runner.invoke(app, ["run", "--manifest", str(manifest), "--config-file", str(config_file)])

    assert result.exit_code == 0, result.output
    assert "succeeded: 1" in result.stdout
    assert "summary_path: not written" in result.stdout
    assert (destination_root / "Backup" / "Docs" / "a.txt").read_text(encoding="utf-8") == "hi"
    log_text = next((tmp_path / "logs").glob("migration_*.log")).read_text(encoding="utf-8")
    assert "migrate_run.artifacts_failed" in log_text
