"""Typer CLI entrypoint for file_migrate."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import typer
import yaml

from file_migrate.config import AppSettings, load_settings
from file_migrate.errors import FatalMigrationError
from file_migrate.logging_utils import build_run_log_path, run_logging
from file_migrate.manifest.reader import read_manifest
from file_migrate.manifest.resolve import resolve_entry
from file_migrate.pipeline import MigrationRunOptions, run_migration
from file_migrate.utils.time_utils import now_local

FATAL_EXIT_CODE = 1

app = typer.Typer(
    add_completion=False,
    help="Copy files and directory trees listed in a CSV manifest, preserving permissions.",
    no_args_is_help=True,
)


def _config_file_option() -> Any:
    return typer.Option(
        None,
        "--config-file",
        help="Optional settings YAML path.",
        exists=False,
        file_okay=True,
        dir_okay=False,
        readable=True,
    )


def _apply_overrides(
    settings: AppSettings,
    *,
    source_root: Path | None = None,
    destination_root: Path | None = None,
    backend: str | None = None,
    threads: int | None = None,
    permissions: bool | None = None,
    fallback: bool | None = None,
) -> AppSettings:
    path_updates: dict[str, Path] = {}
    if source_root is not None:
        path_updates["source_root"] = source_root.resolve()
    if destination_root is not None:
        path_updates["destination_root"] = destination_root.resolve()

    transfer_updates: dict[str, object] = {}
    if backend is not None:
        normalized = backend.strip().lower()
        if normalized not in {"auto", "native", "robocopy"}:
            raise typer.BadParameter("backend must be one of: auto, native, robocopy")
        transfer_updates["backend"] = normalized
    if threads is not None:
        transfer_updates["threads"] = threads
    if fallback is not None:
        transfer_updates["fallback_enabled"] = fallback

    updates: dict[str, object] = {}
    if path_updates:
        updates["paths"] = settings.paths.model_copy(update=path_updates)
    if transfer_updates:
        updates["transfer"] = settings.transfer.model_copy(update=transfer_updates)
    if permissions is not None:
        updates["permissions"] = settings.permissions.model_copy(update={"enabled": permissions})
    return settings.model_copy(update=updates) if updates else settings


@app.command("show-config")
def show_config(config_file: Path | None = _config_file_option()) -> None:
    """Print the effective configuration after env overrides."""

    settings = load_settings(config_file=config_file)
    rendered = yaml.safe_dump(settings.as_dict(), sort_keys=False)
    typer.echo(rendered)


@app.command("check-manifest")
def check_manifest(
    manifest: Path = typer.Option(..., "--manifest", "-m", help="CSV manifest to inspect."),
    source_root: Path | None = typer.Option(None, "--source-root", help="Override paths.source_root."),
    destination_root: Path | None = typer.Option(None, "--destination-root", help="Override paths.destination_root."),
    config_file: Path | None = _config_file_option(),
) -> None:
    """Parse and resolve the manifest without copying anything."""

    settings = _apply_overrides(
        load_settings(config_file=config_file),
        source_root=source_root,
        destination_root=destination_root,
    )
    logger = logging.getLogger("file_migrate")
    try:
        result = read_manifest(
            manifest,
            source_column=settings.manifest.source_column,
            destination_column=settings.manifest.destination_column,
            separator=settings.manifest.separator,
            encoding=settings.manifest.encoding,
            logger=logger,
        )
    except FatalMigrationError as exc:
        typer.echo(f"error: {exc.reason}: {exc.message}", err=True)
        raise typer.Exit(code=FATAL_EXIT_CODE) from exc

    for entry in result.entries:
        resolved = resolve_entry(entry, settings.paths.source_root, settings.paths.destination_root)
        typer.echo(f"line {entry.line_no}: {resolved.source} -> {resolved.destination}")
    for row in result.invalid_rows:
        typer.echo(f"line {row.line_no}: invalid ({row.reason})")
    typer.echo(f"entries: {len(result.entries)}")
    typer.echo(f"invalid: {len(result.invalid_rows)}")


@app.command("run")
def run(
    manifest: Path = typer.Option(..., "--manifest", "-m", help="CSV manifest with source/destination columns."),
    source_root: Path | None = typer.Option(None, "--source-root", help="Override paths.source_root."),
    destination_root: Path | None = typer.Option(None, "--destination-root", help="Override paths.destination_root."),
    backend: str | None = typer.Option(None, "--backend", help="Bulk copy backend: auto, native or robocopy."),
    threads: int | None = typer.Option(None, "--threads", min=1, max=128, help="Bulk copy worker threads."),
    permissions: bool | None = typer.Option(
        None,
        "--permissions/--no-permissions",
        help="Propagate access-control metadata after copying.",
    ),
    fallback: bool | None = typer.Option(
        None,
        "--fallback/--no-fallback",
        help="Retry failed bulk copies with the sequential fallback copy.",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Resolve and log entries without copying."),
    limit: int | None = typer.Option(None, "--limit", min=1, help="Process at most N valid entries."),
    progress_every: int = typer.Option(25, "--progress-every", min=1, help="Log progress every N entries."),
    config_file: Path | None = _config_file_option(),
) -> None:
    """Copy every manifest entry into the destination root and report a summary."""

    settings = _apply_overrides(
        load_settings(config_file=config_file),
        source_root=source_root,
        destination_root=destination_root,
        backend=backend,
        threads=threads,
        permissions=permissions,
        fallback=fallback,
    )
    log_file = build_run_log_path(settings.paths.logs_root, settings.logging.file_prefix, now_local())

    with run_logging(log_file, level=settings.logging.level) as logger:
        try:
            result = run_migration(
                settings,
                manifest,
                options=MigrationRunOptions(dry_run=dry_run, limit=limit, progress_every=progress_every),
                log_file=log_file,
                logger=logger,
            )
        except FatalMigrationError as exc:
            logger.error("migrate_run.aborted %s error=%s", exc.context(), exc.message)
            typer.echo(f"error: {exc.reason}: {exc.message}", err=True)
            typer.echo(f"log_file: {log_file}", err=True)
            raise typer.Exit(code=FATAL_EXIT_CODE) from exc

        for line in result.summary.render_lines(log_file):
            logger.info(line)

    summary = result.summary
    typer.echo(f"run_id: {result.run_id}")
    typer.echo(f"processed: {summary.processed}")
    typer.echo(f"succeeded: {summary.succeeded}")
    typer.echo(f"failed: {summary.failed}")
    typer.echo(f"skipped: {summary.skipped}")
    typer.echo(f"invalid: {summary.invalid}")
    typer.echo(f"log_file: {log_file}")
    typer.echo(f"summary_path: {result.summary_path or 'not written'}")
