"""Wiring of settings, store client and reconciler for the runnable bridge."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from rowsync.reconciler import RowReconciler
from rowsync.settings import (
    BridgeSettings,
    ConfigUnavailableError,
    load_bridge_settings,
    parse_spreadsheet_id,
)
from rowsync.sheets_client import GoogleSheetsClient, StoreError, build_client

logger = logging.getLogger(__name__)


def connect(settings: BridgeSettings) -> Optional[GoogleSheetsClient]:
    """Build a store client for ``settings``; ``None`` when that is not possible yet."""

    spreadsheet_id = parse_spreadsheet_id(settings.spreadsheet_id)
    if not spreadsheet_id:
        logger.warning("Spreadsheet ID is not configured; events will be dropped.")
        return None
    try:
        return build_client(
            spreadsheet_id,
            service_account_json=settings.service_account_json,
            credential_path=settings.credential_path,
        )
    except StoreError as exc:
        logger.warning("Could not load Sheets credentials: %s", exc)
        return None


def build_reconciler(settings_path: Optional[Path] = None) -> RowReconciler:
    """Return a reconciler that re-reads ``settings_path`` for every event.

    The store client is rebuilt through :func:`connect` whenever the
    spreadsheet id or credentials in the file change.
    """

    def provider() -> BridgeSettings:
        return load_bridge_settings(settings_path)

    reconciler = RowReconciler(None, provider, client_factory=connect)
    try:
        reconciler.ensure_client(provider())
    except ConfigUnavailableError as exc:
        logger.warning("%s", exc)
    return reconciler


__all__ = ["build_reconciler", "connect"]
