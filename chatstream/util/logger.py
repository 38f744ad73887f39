"""Project logger: stderr plus an optional rotating file under ``settings.log_dir``."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from chatstream.config.settings import settings

LOGGER_NAME = "chatstream"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
MAX_BYTES = 5 * 1024 * 1024
BACKUP_COUNT = 5

_LEVELS = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def resolve_level(raw: str | int | None) -> int:
    if isinstance(raw, int):
        return raw
    return _LEVELS.get(str(raw or "").strip().lower(), logging.INFO)


def _file_handler(log_dir: str) -> logging.Handler | None:
    if not log_dir.strip():
        return None
    directory = Path(log_dir)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        return RotatingFileHandler(
            directory / f"{LOGGER_NAME}.log",
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
    except OSError:
        # 日志目录不可写时退回只写 stderr
        return None


def _build_logger() -> logging.Logger:
    project_logger = logging.getLogger(LOGGER_NAME)
    if project_logger.handlers:
        return project_logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    handlers = [logging.StreamHandler(), _file_handler(settings.log_dir)]
    for handler in handlers:
        if handler is None:
            continue
        handler.setFormatter(formatter)
        project_logger.addHandler(handler)

    project_logger.setLevel(resolve_level(settings.log_level))
    project_logger.propagate = False
    return project_logger


logger = _build_logger()


def set_level(level: str | int) -> None:
    """Change the level of the project logger; handlers follow the logger."""
    logger.setLevel(resolve_level(level))
