"""Logging utilities for CLI and pipeline modules."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER_NAME = "file_migrate"
DEFAULT_LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


def build_run_log_path(logs_root: Path, prefix: str = "migration", started: datetime | None = None) -> Path:
    """Return the per-run log file path named after its creation timestamp."""

    stamp = (started or datetime.now()).strftime(LOG_FILE_TIMESTAMP_FORMAT)
    return logs_root / f"{prefix}_{stamp}.log"


def configure_logging(log_file: Path, level: int = logging.INFO) -> tuple[logging.Logger, list[logging.Handler]]:
    """Attach file and console handlers to the package logger.

    Returns the logger together with the handlers that were added so the caller
    can detach them when the run ends.
    """

    log_file.parent.mkdir(parents=True, exist_ok=True)
    log_file.touch(exist_ok=True)

    logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    logger.setLevel(level)

    file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(fmt=DEFAULT_LOG_FORMAT, datefmt=DEFAULT_DATE_FORMAT))
    file_handler.setLevel(level)

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=False,
        log_time_format=f"[{DEFAULT_DATE_FORMAT}]",
    )
    console_handler.setFormatter(logging.Formatter(fmt="%(message)s"))
    console_handler.setLevel(level)

    handlers: list[logging.Handler] = [file_handler, console_handler]
    for handler in handlers:
        logger.addHandler(handler)
    return logger, handlers


def release_handlers(logger: logging.Logger, handlers: list[logging.Handler]) -> None:
    """Flush, detach and close handlers previously added by `configure_logging`."""

    for handler in handlers:
        try:
            handler.flush()
        finally:
            logger.removeHandler(handler)
            handler.close()


@contextmanager
def run_logging(log_file: Path, level: int | str = logging.INFO) -> Iterator[logging.Logger]:
    """Scope a run logger to a `with` block; handlers are closed on every exit path."""

    numeric_level = logging.getLevelName(level) if isinstance(level, str) else level
    logger, handlers = configure_logging(log_file, level=numeric_level)
    try:
        yield logger
    finally:
        release_handlers(logger, handlers)
