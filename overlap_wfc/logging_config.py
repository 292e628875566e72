"""
Logging setup for the overlap_wfc package.

Library modules only create loggers; call setup_logging() once from an
application to route overlap_wfc.* records to the console and optionally
to a rotating log file.
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB per file
BACKUP_COUNT = 3


def setup_logging(level=logging.INFO, log_file=None):
    """
    Configure the overlap_wfc logger.
    Args:
        level: console level; the file, when given, always receives DEBUG
        log_file: optional path of a rotating log file
    Returns:
        the configured logger
    """
    root_logger = logging.getLogger("overlap_wfc")
    root_logger.setLevel(logging.DEBUG if log_file else level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(fmt="%(levelname)-8s | %(name)-25s | %(message)s"))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=MAX_LOG_SIZE,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d | %(levelname)-8s | %(name)-25s | %(funcName)-20s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        root_logger.addHandler(file_handler)

    return root_logger
