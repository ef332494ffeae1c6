"""Helpers for validating and normalising Google service account credentials.

Credentials reach the bridge either as a JSON document pasted into the
configuration or as a path to a key file.  Both routes end in
:func:`_validate_payload`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Iterable, Mapping

__all__ = [
    "CredentialsFileInvalidError",
    "REQUIRED_FIELDS",
    "load_service_account_data",
    "parse_service_account_json",
]


class CredentialsFileInvalidError(Exception):
    """Raised when service account JSON is missing required data."""


REQUIRED_FIELDS: Iterable[str] = (
    "type",
    "project_id",
    "private_key_id",
    "private_key",
    "client_email",
    "client_id",
    "token_uri",
)


def _normalise_private_key(key: str) -> str:
    key = key.replace("\r\n", "\n").replace("\r", "\n")
    key = key.replace("\\n", "\n")
    if not key.endswith("\n"):
        key += "\n"
    return key


def _loads(raw: str) -> Mapping[str, object]:
    payload_text = raw.lstrip("\ufeff").strip()
    if not payload_text:
        raise CredentialsFileInvalidError("Service account JSON is empty.")
    try:
        payload = json.loads(payload_text)
    except json.JSONDecodeError as exc:
        raise CredentialsFileInvalidError(f"JSON parse error: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise CredentialsFileInvalidError("Service account JSON must be an object.")
    return payload


def _validate_payload(payload: Mapping[str, object]) -> Dict[str, object]:
    data: Dict[str, object] = dict(payload)
    missing: list[str] = []

    for field in REQUIRED_FIELDS:
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            missing.append(field)

    if data.get("type") != "service_account":
        missing.append("type")

    if missing:
        ordered = ", ".join(sorted(dict.fromkeys(missing)))
        raise CredentialsFileInvalidError(f"JSON missing fields: {ordered}")

    data["private_key"] = _normalise_private_key(str(data["private_key"]))
    return data


def parse_service_account_json(text: str) -> Dict[str, object]:
    """Return validated service account data from an inline JSON document."""

    return _validate_payload(_loads(text or ""))


def load_service_account_data(path: Path) -> Dict[str, object]:
    """Return validated service account data read from ``path``."""

    try:
        with path.open("r", encoding="utf-8-sig") as handle:
            raw = handle.read()
    except OSError as exc:
        raise CredentialsFileInvalidError(f"Could not read credentials file: {exc}") from exc
    return _validate_payload(_loads(raw))
