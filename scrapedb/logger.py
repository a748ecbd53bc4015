# scrapedb/logger.py
"""
Logging for ScrapeDB.

Every module logs through a child of the ``scrapedb`` logger obtained with
:func:`get_logger`. Console output goes to stderr so that command output on
stdout (fetched bodies, scanned paths) stays clean for pipes.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

__all__ = ["DEFAULT_FORMAT", "configure", "get_logger"]

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
ROOT_NAME = "scrapedb"
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3


def configure(
    *,
    level: Union[int, str] = "WARNING",
    log_file: Optional[Union[str, Path]] = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Replace the handlers of the project logger: stderr, plus a rotating file if given."""
    root = logging.getLogger(ROOT_NAME)
    root.setLevel(level.upper() if isinstance(level, str) else level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(log_format)
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file is not None:
        fh = RotatingFileHandler(
            str(log_file),
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        )
        fh.setFormatter(formatter)
        root.addHandler(fh)

    root.propagate = False
    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    if not name:
        return logging.getLogger(ROOT_NAME)
    return logging.getLogger(f"{ROOT_NAME}.{name}")


configure()
