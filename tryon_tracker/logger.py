"""
Logging setup for TryOnTracker.

Console output plus a rotating log file. The file goes to the directory
given on the command line, else $TRYON_TRACKER_LOG_DIR, else
%APPDATA%/TryOnTracker/logs/ or ~/.tryon_tracker/logs/.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from tryon_tracker.config import LOG_FILENAME, LOG_MAX_BYTES, LOG_BACKUP_COUNT

ROOT_LOGGER_NAME = "TryOnTracker"
LOG_DIR_ENV = "TRYON_TRACKER_LOG_DIR"


def get_log_directory(override: Optional[str | Path] = None) -> Path:
    """
    Resolve the log directory and create it.

    Args:
        override: Explicit directory, takes precedence over the environment.

    Returns:
        Path to the log directory.
    """
    if override:
        log_dir = Path(override)
    elif os.environ.get(LOG_DIR_ENV):
        log_dir = Path(os.environ[LOG_DIR_ENV])
    elif os.environ.get("APPDATA"):
        log_dir = Path(os.environ["APPDATA"]) / "TryOnTracker" / "logs"
    else:
        log_dir = Path.home() / ".tryon_tracker" / "logs"

    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def setup_logging(
    debug: bool = False,
    log_to_file: bool = True,
    log_dir: Optional[str | Path] = None,
    log_filename: Optional[str] = None
) -> logging.Logger:
    """
    Configure and return the application logger.

    A log directory that cannot be created or written is reported on the
    console and the session continues with console logging only.

    Args:
        debug: Enable debug-level logging if True.
        log_to_file: Write logs to file if True.
        log_dir: Override the log directory.
        log_filename: Override default log filename.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%H:%M:%S"
    ))
    logger.addHandler(console_handler)

    if not log_to_file:
        return logger

    try:
        log_path = get_log_directory(log_dir) / (log_filename or LOG_FILENAME)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8"
        )
    except OSError as e:
        logger.warning(f"File logging disabled: {e}")
        return logger

    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s.%(funcName)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))
    logger.addHandler(file_handler)
    logger.debug(f"Logging to file: {log_path}")

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a component logger under the application logger.

    Args:
        name: Component name (e.g. "TrackingSession").

    Returns:
        Child logger, or the application logger if no name is given.
    """
    base_logger = logging.getLogger(ROOT_LOGGER_NAME)
    return base_logger.getChild(name) if name else base_logger
