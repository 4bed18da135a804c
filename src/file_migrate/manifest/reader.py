"""Read the migration manifest CSV into ordered entries."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import polars as pl

from file_migrate.errors import ManifestNotFound, ManifestUnreadable
from file_migrate.models import InvalidManifestRow, ManifestEntry

LOGGER = logging.getLogger(__name__)

DEFAULT_SOURCE_COLUMN = "Source Path"
DEFAULT_DESTINATION_COLUMN = "Destination Sub Folder"
# Header occupies line 1; first data row is line 2.
FIRST_DATA_LINE_NO = 2


@dataclass(frozen=True, slots=True)
class ManifestReadResult:
    """Valid entries in manifest order plus rows rejected for blank fields."""

    path: Path
    entries: list[ManifestEntry]
    invalid_rows: list[InvalidManifestRow]

    @property
    def rows_total(self) -> int:
        return len(self.entries) + len(self.invalid_rows)


def _normalize_column_name(name: str) -> str:
    """Drop BOM markers and surrounding whitespace from header cells."""

    return name.replace("\ufeff", "").strip()


def _clean_field(value: object) -> str | None:
    """Trim a raw cell and map blanks to null."""

    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned if cleaned != "" else None


def _load_frame(path: Path, separator: str, encoding: str) -> pl.DataFrame:
    try:
        frame = pl.read_csv(
            path,
            separator=separator,
            has_header=True,
            infer_schema_length=0,
            encoding=encoding,
        )
    except (pl.exceptions.PolarsError, OSError, UnicodeDecodeError) as exc:
        raise ManifestUnreadable(f"Could not parse manifest {path}: {exc}", source=path) from exc
    return frame.rename({column: _normalize_column_name(column) for column in frame.columns})


def read_manifest(
    path: Path,
    *,
    source_column: str = DEFAULT_SOURCE_COLUMN,
    destination_column: str = DEFAULT_DESTINATION_COLUMN,
    separator: str = ",",
    encoding: str = "utf8-lossy",
    logger: logging.Logger | None = None,
) -> ManifestReadResult:
    """Parse the manifest, preserving row order.

    Raises `ManifestNotFound` when the file does not exist and `ManifestUnreadable`
    when it cannot be parsed or lacks either required column. Rows with a blank
    source or destination are logged and returned in `invalid_rows`.
    """

    effective_logger = logger or LOGGER
    if not path.exists():
        raise ManifestNotFound(f"Manifest file not found: {path}", source=path)
    if not path.is_file():
        raise ManifestUnreadable(f"Manifest path is not a file: {path}", source=path)

    frame = _load_frame(path, separator=separator, encoding=encoding)

    missing = [column for column in (source_column, destination_column) if column not in frame.columns]
    if missing:
        raise ManifestUnreadable(
            f"Manifest {path} missing required columns: {', '.join(missing)}; found: {', '.join(frame.columns)}",
            source=path,
        )

    entries: list[ManifestEntry] = []
    invalid_rows: list[InvalidManifestRow] = []
    selected = frame.select([pl.col(source_column), pl.col(destination_column)])
    for line_no, (raw_source, raw_destination) in enumerate(selected.iter_rows(), start=FIRST_DATA_LINE_NO):
        source_value = _clean_field(raw_source)
        destination_value = _clean_field(raw_destination)
        if source_value is None or destination_value is None:
            blank = [
                name
                for name, value in ((source_column, source_value), (destination_column, destination_value))
                if value is None
            ]
            reason = f"blank_fields:{','.join(blank)}"
            effective_logger.error(
                "manifest.invalid_row path=%s line=%s reason=%s source=%r destination=%r",
                path,
                line_no,
                reason,
                raw_source,
                raw_destination,
            )
            invalid_rows.append(
                InvalidManifestRow(
                    line_no=line_no,
                    source_path=source_value,
                    destination_path=destination_value,
                    reason=reason,
                )
            )
            continue
        entries.append(ManifestEntry(source_path=source_value, destination_path=destination_value, line_no=line_no))

    effective_logger.info(
        "manifest.loaded path=%s rows_total=%s entries=%s invalid=%s",
        path,
        len(entries) + len(invalid_rows),
        len(entries),
        len(invalid_rows),
    )
    return ManifestReadResult(path=path, entries=entries, invalid_rows=invalid_rows)
