"""Dependency checks for the Google Sheets integration."""
from __future__ import annotations

import importlib
import logging
from typing import List, Sequence

logger = logging.getLogger(__name__)

GOOGLE_IMPORTS: Sequence[str] = (
    "googleapiclient.discovery",
    "googleapiclient.errors",
    "google.oauth2.service_account",
    "google.auth.transport.requests",
)


def _try_import(module_name: str) -> bool:
    try:
        importlib.import_module(module_name)
    except ImportError as exc:  # pragma: no cover - depends on environment
        logger.debug("[Deps] import error for %s: %s", module_name, exc, exc_info=True)
        return False
    return True


def check_google_deps(modules: Sequence[str] = GOOGLE_IMPORTS) -> List[str]:
    """Return the list of Google client modules that cannot be imported."""

    return [name for name in modules if not _try_import(name)]


def ensure_google_deps() -> bool:
    """Log whether the Google client modules are importable."""

    missing = check_google_deps()
    if missing:
        logger.warning("[Deps] Sheets dependencies missing: %s", ", ".join(missing))
        return False
    logger.info("[Deps] Sheets dependencies ready.")
    return True


__all__ = ["GOOGLE_IMPORTS", "check_google_deps", "ensure_google_deps"]
