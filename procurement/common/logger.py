"""Logging for procurement approvals.

Every module logs through a child of the ``procurement`` logger, so one call
to :func:`setup_logger` at startup decides where workflow events go: a
size-rotated file, the console, or both. Timestamps are ISO 8601.
"""

import logging
import logging.handlers
import os
from typing import List, Optional, Union

ROOT_LOGGER_NAME = "procurement"

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
ISO_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    name = level.upper()
    if name not in LEVEL_NAMES:
        raise ValueError(f"Invalid log level: {level}. Must be one of: {', '.join(LEVEL_NAMES)}")
    return getattr(logging, name)


def _build_handlers(
    name: str,
    log_dir: str,
    file_logging: bool,
    console_logging: bool,
    max_bytes: int,
    backup_count: int,
) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if file_logging:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, f"{name}.log"),
            maxBytes=max_bytes,
            backupCount=backup_count,
        ))
    if console_logging:
        handlers.append(logging.StreamHandler())
    return handlers


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    log_dir: str = "./logs",
    level: Union[str, int] = "INFO",
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    file_logging: bool = True,
    console_logging: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """Configure ``name`` with rotating file and console output.

    Calling it again for an already configured logger only updates the
    level; handlers are attached once.

    Args:
        name: Logger to configure, the ``procurement`` root by default
        log_dir: Directory receiving ``<name>.log``
        level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL) or number
        log_format: Record format, :data:`DEFAULT_FORMAT` if omitted
        date_format: Timestamp format, ISO 8601 if omitted
        file_logging: Write to a rotating log file
        console_logging: Write to stderr
        max_bytes: Size at which the log file rotates
        backup_count: Rotated files kept

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))

    if logger.handlers:
        return logger

    formatter = logging.Formatter(log_format or DEFAULT_FORMAT, datefmt=date_format or ISO_DATE_FORMAT)
    for handler in _build_handlers(name, log_dir, file_logging, console_logging, max_bytes, backup_count):
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for a component, e.g. ``get_logger("coordinator")``.

    Names outside the ``procurement`` namespace are placed under it.
    """
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
