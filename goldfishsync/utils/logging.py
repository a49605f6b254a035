"""Logging configuration for CLI runs and long-running sync sessions."""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Mapping

from rich.logging import RichHandler

from goldfishsync.core.config import AppConfig

LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Only worth seeing when debugging the sync itself
QUIET_LOGGERS = ("httpx", "httpcore", "apscheduler", "aiosqlite", "markdown_it")


def level_number(level: str | int) -> int:
    if isinstance(level, int):
        return level
    name = str(level).upper()
    if name not in LEVELS:
        raise ValueError(f"Unsupported log level: {level}")
    return logging.getLevelNamesMapping()[name]


class LoggerLevelOverrides(logging.Filter):
    """Re-level records of selected loggers, e.g. ``{"goldfishsync.core.attachments": "DEBUG"}``.

    The most specific logger prefix wins.
    """

    def __init__(self, overrides: Mapping[str, str]):
        super().__init__()
        self._levels = sorted(
            ((prefix, level_number(level)) for prefix, level in overrides.items()),
            key=lambda item: len(item[0]),
            reverse=True,
        )

    def filter(self, record: logging.LogRecord) -> bool:
        for prefix, levelno in self._levels:
            if record.name == prefix or record.name.startswith(f"{prefix}."):
                record.levelno = levelno
                record.levelname = logging.getLevelName(levelno)
                break
        return True


def log_file_path(config: AppConfig) -> Path:
    return config.general.data_dir / "logs" / config.general.log_file_name


def _console_handler(levelno: int) -> logging.Handler:
    handler = RichHandler(rich_tracebacks=True, show_time=False, show_path=False)
    handler.setLevel(levelno)
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def _file_handler(config: AppConfig) -> logging.Handler:
    path = log_file_path(config)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        path,
        maxBytes=config.general.log_file_max_bytes,
        backupCount=config.general.log_file_backup_count,
        encoding="utf-8",
    )
    # The file always keeps the full story
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
    return handler


def setup_logging(config: AppConfig, *, level_name: str | None = None, log_to_file: bool = True) -> Path:
    """Install console (and file) handlers on the root logger.

    Args:
        config: Application configuration (log level, data dir, overrides)
        level_name: Console level overriding ``config.general.log_level``
        log_to_file: Also write a rotating log under ``<data_dir>/logs``

    Returns:
        Path of the log file
    """
    levelno = level_number(level_name or config.general.log_level)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.DEBUG if log_to_file else levelno)

    overrides = LoggerLevelOverrides(config.general.log_overrides)
    handlers = [_console_handler(levelno)]
    if log_to_file:
        handlers.append(_file_handler(config))
    for handler in handlers:
        handler.addFilter(overrides)
        root.addHandler(handler)

    logging.captureWarnings(True)
    quiet_level = logging.WARNING if levelno > logging.DEBUG else logging.NOTSET
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    return log_file_path(config)

