"""Centralized logging configuration for the Classroom Portal application."""

from __future__ import annotations

import logging
from logging import Logger
from pathlib import Path
from typing import Iterable, List, Tuple


DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Loggers that report every request at INFO.
_NOISY_LOGGERS: Tuple[str, ...] = ("httpx", "httpcore", "multipart")


def configure_logging(level: int = logging.INFO, *, handlers: Iterable[logging.Handler] | None = None) -> Logger:
    """Configure the root logger once, replacing handlers installed by a previous call."""

    logger = logging.getLogger()
    logger.setLevel(level)

    for existing in list(logger.handlers):
        if getattr(existing, "_classroom_portal", False):
            logger.removeHandler(existing)
            existing.close()

    if handlers is None:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
        handlers = [stream_handler]

    for handler in handlers:
        handler._classroom_portal = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return logger


def build_handlers(log_file: Path, *, console: bool = True) -> List[logging.Handler]:
    """Return a file handler for *log_file*, plus a stderr handler when ``console`` is set."""

    formatter = logging.Formatter(DEFAULT_LOG_FORMAT)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(formatter)
    handlers: List[logging.Handler] = [file_handler]
    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        handlers.append(stream_handler)
    return handlers


def get_log_file_path(storage_root: Path) -> Path:
    """Return the default path for the application log file."""

    return storage_root / "classroom_portal.log"


__all__ = ["build_handlers", "configure_logging", "get_log_file_path", "DEFAULT_LOG_FORMAT"]
