"""Timestamped debug log file for the server process."""

from __future__ import annotations

import logging
from pathlib import Path

DEBUG_LOG_NAME = "grepview.log"
DEBUG_LOG_FORMAT = "[%(asctime)s] %(name)s %(message)s"


def configure_debug_log(data_dir: Path, level: int = logging.DEBUG) -> Path:
    """Attach a file handler for the ``grepview`` logger tree.

    Calling it again for the same directory does not add a second handler.
    """
    data_dir.mkdir(parents=True, exist_ok=True)
    log_path = (data_dir / DEBUG_LOG_NAME).resolve()
    package_logger = logging.getLogger("grepview")
    package_logger.setLevel(level)
    for handler in package_logger.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == log_path:
            return log_path
    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(DEBUG_LOG_FORMAT))
    package_logger.addHandler(handler)
    return log_path
