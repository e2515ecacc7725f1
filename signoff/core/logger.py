"""Logging setup for signoff.

Everything under the ``signoff`` logger shares one formatter with ISO 8601
timestamps. Output always goes to the console; a rotating log file is added
when ``LOG_DIR`` is configured.
"""

import logging
import logging.handlers
import os
from typing import Optional

from signoff.core.config import Settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def _resolve_level(level: str) -> int:
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(
            f"Invalid log level: {level}. Must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL"
        )
    return resolved


def setup_logger(name: str, level: str = "INFO", log_dir: Optional[str] = None) -> logging.Logger:
    """Configure ``name`` with console and optional rotating file handlers.

    Calling it again only updates the level; handlers are attached once.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers = [logging.StreamHandler()]
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, f"{name}.log"),
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
        ))

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def configure_logging(settings: Settings) -> logging.Logger:
    """Set up the package logger from application settings."""
    return setup_logger("signoff", level=settings.log_level, log_dir=settings.log_dir)
