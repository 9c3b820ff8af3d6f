"""Logging setup for the ``expbackoff`` logger hierarchy.

The retry engine only emits records; nothing is printed until an
application calls :func:`configure_logging` (or
:func:`expbackoff.config.configure_logging_from_settings`).
"""

from __future__ import annotations

import logging as py_logging
import sys
from pathlib import Path
from typing import TextIO

LOG_LEVELS = {
    "DEBUG": py_logging.DEBUG,
    "INFO": py_logging.INFO,
    "WARN": py_logging.WARNING,
    "WARNING": py_logging.WARNING,
    "ERROR": py_logging.ERROR,
}
LOGGER_NAME = "expbackoff"
DEFAULT_LOG_PATH = Path("~/.config/expbackoff/logs/expbackoff.log")
_FALLBACK_LOG_PATH = Path(".expbackoff/logs/expbackoff.log")
_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _absolute(path: Path, *, fallback: Path | None = None) -> Path:
    try:
        expanded = path.expanduser()
    except RuntimeError:
        # No resolvable home directory.
        expanded = fallback if fallback is not None else path
    return expanded if expanded.is_absolute() else expanded.resolve()


def default_log_path() -> Path:
    return _absolute(DEFAULT_LOG_PATH, fallback=Path.cwd() / _FALLBACK_LOG_PATH)


def normalize_level(level: str) -> str:
    normalized = level.strip().upper()
    return "WARN" if normalized == "WARNING" else normalized


def level_number(level: str) -> int:
    return LOG_LEVELS.get(normalize_level(level), py_logging.INFO)


def _open_file_handler(log_file: str | Path) -> py_logging.Handler | None:
    path = _absolute(Path(log_file))
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return py_logging.FileHandler(path, encoding="utf-8")
    except OSError as exc:
        sys.stderr.write(f"expbackoff: file logging disabled for {path}: {exc}\n")
        return None


def configure_logging(
    level: str = "INFO",
    stream: TextIO | None = None,
    *,
    log_file: str | Path | None = None,
) -> py_logging.Logger:
    """Route ``expbackoff`` records to ``stream`` and, optionally, a file.

    The file handler always records at DEBUG so every attempt and wait is
    kept even when the console only shows warnings. Calling this again
    replaces the previous handlers.
    """
    threshold = level_number(level)
    formatter = py_logging.Formatter(_FORMAT)

    handlers: list[py_logging.Handler] = [py_logging.StreamHandler(stream or sys.stderr)]
    handlers[0].setLevel(threshold)
    if log_file:
        file_handler = _open_file_handler(log_file)
        if file_handler is not None:
            file_handler.setLevel(py_logging.DEBUG)
            handlers.append(file_handler)

    logger = py_logging.getLogger(LOGGER_NAME)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(min(handler.level for handler in handlers))
    logger.propagate = False
    return logger
