"""Application-wide logging configuration utilities."""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

from rowsync import app_paths

_LOG_PATH: Optional[Path] = None
_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(
    level: int = logging.INFO,
    *,
    log_path: Optional[Path] = None,
    console: bool = False,
) -> Path:
    """Configure logging to write to the RowSync log file.

    Parameters
    ----------
    level:
        The minimum logging level for the root logger.
    log_path:
        Override for the log file location, defaults to ``rowsync.log`` in the
        application log directory.
    console:
        Also echo records to ``stderr``; the command line runner enables this
        with ``--verbose``.

    Returns
    -------
    pathlib.Path
        The path to the log file.
    """

    global _LOG_PATH

    path = log_path or _LOG_PATH or app_paths.logs_path("rowsync.log")
    path.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    if not root_logger.handlers:
        root_logger.setLevel(level)
    else:
        root_logger.setLevel(min(root_logger.level, level))

    formatter = logging.Formatter(_FORMAT)
    already_configured = any(
        isinstance(handler, logging.FileHandler)
        and getattr(handler, "baseFilename", None) == str(path.resolve())
        for handler in root_logger.handlers
    )
    if not already_configured:
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    has_console = any(
        type(handler) is logging.StreamHandler and getattr(handler, "stream", None) is sys.stderr
        for handler in root_logger.handlers
    )
    if console and not has_console:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        root_logger.addHandler(stream_handler)

    _LOG_PATH = path
    root_logger.debug("Logging configured. Writing to %s", path)
    return path


def get_log_path() -> Path:
    """Return the path to the RowSync log file, configuring logging if needed."""

    if _LOG_PATH is None:
        return configure_logging()
    return _LOG_PATH
