"""Configuration helpers for RowSync.

Settings live in ``sync_settings.json`` inside the application directory.
Environment variables provide the defaults, so a deployment can run without
ever writing the file by hand.  The reconciler calls the settings provider
for every event, so edits to the file take effect without a restart.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from rowsync import app_paths

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = "sync_settings.json"
DEFAULT_TAB_NAME = "Sheet1"

_ENV_KEYS: Mapping[str, str] = {
    "spreadsheet_id": "ROWSYNC_SPREADSHEET_ID",
    "tab_name": "ROWSYNC_TAB_NAME",
    "credential_path": "ROWSYNC_CREDENTIALS_PATH",
    "service_account_json": "ROWSYNC_SERVICE_ACCOUNT_JSON",
}


class ConfigUnavailableError(Exception):
    """Raised when required configuration is missing or not loaded yet."""


@dataclass
class BridgeSettings:
    spreadsheet_id: str = ""
    tab_name: str = DEFAULT_TAB_NAME
    service_account_json: str = ""
    credential_path: str = ""

    def missing_fields(self) -> List[str]:
        missing: List[str] = []
        if not parse_spreadsheet_id(self.spreadsheet_id):
            missing.append("spreadsheet_id")
        if not _strip_wrapping_quotes(self.tab_name):
            missing.append("tab_name")
        return missing

    @property
    def has_credentials(self) -> bool:
        return bool(self.service_account_json.strip() or self.credential_path.strip())

    def to_json(self) -> Dict[str, object]:
        return {
            "spreadsheet_id": self.spreadsheet_id,
            "tab_name": self.tab_name,
            "service_account_json": self.service_account_json,
            "credential_path": self.credential_path,
        }


def parse_spreadsheet_id(value: str) -> str:
    """Normalise a spreadsheet identifier from raw input or URL."""

    if not value:
        return ""
    value = value.strip()
    if "/spreadsheets/d/" in value:
        value = value.split("/spreadsheets/d/", 1)[1]
        value = value.split("/", 1)[0]
    if "?" in value:
        value = value.split("?", 1)[0]
    if "#" in value:
        value = value.split("#", 1)[0]
    return value


def _strip_wrapping_quotes(value: str) -> str:
    text = (value or "").strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in {"'", '"'}:
        text = text[1:-1].strip()
    return text


def require_tab_name(value: str) -> str:
    """Return the configured tab name without surrounding quotes."""

    title = _strip_wrapping_quotes(value)
    if not title:
        raise ConfigUnavailableError("Tab name is not configured.")
    return title


def require_spreadsheet_id(value: str) -> str:
    parsed = parse_spreadsheet_id(value)
    if not parsed:
        raise ConfigUnavailableError("Spreadsheet ID is not configured.")
    return parsed


def default_settings_path() -> Path:
    return app_paths.data_path(SETTINGS_FILENAME)


def _env_defaults() -> Dict[str, str]:
    defaults = BridgeSettings().to_json()
    for field_name, env_var in _ENV_KEYS.items():
        value = os.getenv(env_var)
        if value:
            defaults[field_name] = value
    return {key: str(value) for key, value in defaults.items()}


def _read_settings_file(path: Path) -> Dict[str, object]:
    defaults = _env_defaults()
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as handle:
            json.dump(defaults, handle, indent=2)
        return dict(defaults)

    with open(path, "r", encoding="utf-8") as handle:
        try:
            data = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ConfigUnavailableError(f"Settings file {path} is not valid JSON: {exc.msg}") from exc

    merged: Dict[str, object] = dict(defaults)
    if isinstance(data, dict):
        for key, value in data.items():
            if key not in merged:
                continue
            if isinstance(value, dict) and key == "service_account_json":
                merged[key] = json.dumps(value)
            elif isinstance(value, str) and value:
                merged[key] = value
    return merged


def load_bridge_settings(path: Optional[Path] = None) -> BridgeSettings:
    """Read the settings file, creating it from environment defaults if missing."""

    data = _read_settings_file(Path(path) if path else default_settings_path())
    return BridgeSettings(
        spreadsheet_id=str(data.get("spreadsheet_id", "")),
        tab_name=str(data.get("tab_name", DEFAULT_TAB_NAME)),
        service_account_json=str(data.get("service_account_json", "")),
        credential_path=str(data.get("credential_path", "")),
    )


def save_bridge_settings(settings: BridgeSettings, path: Optional[Path] = None) -> Path:
    target = Path(path) if path else default_settings_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as handle:
        json.dump(settings.to_json(), handle, indent=2)
    logger.info("Settings saved to %s", target)
    return target


__all__ = [
    "BridgeSettings",
    "ConfigUnavailableError",
    "DEFAULT_TAB_NAME",
    "default_settings_path",
    "load_bridge_settings",
    "parse_spreadsheet_id",
    "require_spreadsheet_id",
    "require_tab_name",
    "save_bridge_settings",
]
