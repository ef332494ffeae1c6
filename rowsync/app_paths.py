"""Centralised helpers for locating RowSync application directories."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

_APP_ENV_VARS: Iterable[str] = ("LOCALAPPDATA", "APPDATA")


def _detect_base_directory() -> Path:
    override = os.environ.get("ROWSYNC_HOME")
    if override:
        return Path(override).expanduser().resolve()
    for env_var in _APP_ENV_VARS:
        value = os.environ.get(env_var)
        if value:
            return Path(value).expanduser().resolve() / "RowSync"
    return Path.home().resolve() / ".rowsync"


APP_DIR: Path = _detect_base_directory()
LOG_DIR: Path = APP_DIR / "logs"


def ensure_directory(path: Path) -> Path:
    """Ensure that ``path`` exists, returning the :class:`~pathlib.Path`."""

    path.mkdir(parents=True, exist_ok=True)
    return path


def data_path(*parts: str) -> Path:
    """Return a path rooted inside :data:`APP_DIR`, creating parent directories."""

    target = APP_DIR.joinpath(*parts)
    ensure_directory(target.parent)
    return target


def logs_path(*parts: str) -> Path:
    """Return a path inside :data:`LOG_DIR`, creating parent directories."""

    target = LOG_DIR.joinpath(*parts)
    ensure_directory(target.parent)
    return target


__all__ = ["APP_DIR", "LOG_DIR", "data_path", "ensure_directory", "logs_path"]
