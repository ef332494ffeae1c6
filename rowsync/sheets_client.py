"""Google Sheets values API client used by the reconciliation engine.

The engine only needs three calls from the remote table: read a range,
append rows at a range and overwrite a range.  ``GoogleSheetsClient`` wraps a
``googleapiclient`` Sheets v4 service and exposes exactly those operations.
All failures surface as subclasses of :class:`StoreError` so the orchestrator
can turn them into a typed outcome without knowing about HTTP.

The service object is injected, which lets tests and the local workbook store
(:mod:`rowsync.local_store`) stand in for the real API.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

import httplib2
from google.auth import exceptions as google_auth_exceptions
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from rowsync.google_credentials import (
    CredentialsFileInvalidError,
    load_service_account_data,
    parse_service_account_json,
)
from rowsync.local_store import LocalWorkbookService

SCOPES: Sequence[str] = ("https://www.googleapis.com/auth/spreadsheets",)
VALUE_INPUT_OPTION = "USER_ENTERED"


class StoreError(RuntimeError):
    """Base error raised when the remote table cannot be read or written."""


class StoreCredentialsError(StoreError):
    """Raised when the service account material is invalid or missing."""


class StoreResponseError(StoreError):
    """Raised when the Sheets API rejects a request."""


def _http_status(exc: HttpError) -> int:
    resp = getattr(exc, "resp", None)
    try:
        return int(getattr(resp, "status", 0))
    except (TypeError, ValueError):
        return 0


def _response_error(action: str, range_spec: str, exc: HttpError) -> StoreResponseError:
    status = _http_status(exc)
    detail = f" (HTTP {status})" if status else ""
    return StoreResponseError(f"{action} {range_spec} failed{detail}: {exc}")


def _execute(request, action: str, range_spec: str) -> Any:
    """Run ``request`` and translate every transport level failure into a :class:`StoreError`."""

    try:
        return request.execute()
    except HttpError as exc:
        raise _response_error(action, range_spec, exc) from exc
    except google_auth_exceptions.TransportError as exc:
        raise StoreResponseError(f"{action} {range_spec} failed (network): {exc}") from exc
    except google_auth_exceptions.GoogleAuthError as exc:
        raise StoreCredentialsError(f"{action} {range_spec} failed (auth): {exc}") from exc
    except (httplib2.HttpLib2Error, OSError) as exc:
        raise StoreResponseError(f"{action} {range_spec} failed (network): {exc}") from exc


def _as_matrix(values: Any) -> List[List[str]]:
    if not isinstance(values, list):
        return []
    return [[str(cell) for cell in row] for row in values if isinstance(row, list)]


class GoogleSheetsClient:
    """Read, append and update ranges through the Sheets values API."""

    def __init__(self, service) -> None:
        self._service = service

    def _values(self):
        return self._service.spreadsheets().values()

    def get_values(self, spreadsheet_id: str, range_spec: str) -> List[List[str]]:
        """Return the cell matrix for ``range_spec``; trailing blanks are omitted by Sheets."""

        request = self._values().get(spreadsheetId=spreadsheet_id, range=range_spec)
        response = _execute(request, "Reading", range_spec)
        if not isinstance(response, Mapping):
            return []
        return _as_matrix(response.get("values", []))

    def append_values(
        self, spreadsheet_id: str, range_spec: str, values: Sequence[Sequence[str]]
    ) -> int:
        """Append ``values`` after the table found at ``range_spec``.

        Returns the number of updated cells reported by the API.
        """

        request = self._values().append(
            spreadsheetId=spreadsheet_id,
            range=range_spec,
            valueInputOption=VALUE_INPUT_OPTION,
            body={"values": [list(row) for row in values]},
        )
        response = _execute(request, "Appending to", range_spec)
        updates = response.get("updates", {}) if isinstance(response, Mapping) else {}
        return int(updates.get("updatedCells", 0) or 0)

    def update_values(
        self, spreadsheet_id: str, range_spec: str, values: Sequence[Sequence[str]]
    ) -> int:
        """Overwrite exactly the rectangle ``range_spec`` with ``values``."""

        request = self._values().update(
            spreadsheetId=spreadsheet_id,
            range=range_spec,
            valueInputOption=VALUE_INPUT_OPTION,
            body={"values": [list(row) for row in values]},
        )
        response = _execute(request, "Updating", range_spec)
        if not isinstance(response, Mapping):
            return 0
        return int(response.get("updatedCells", 0) or 0)


def _credentials_payload(
    service_account_json: str = "", credential_path: str = ""
) -> Mapping[str, object]:
    try:
        if service_account_json.strip():
            return parse_service_account_json(service_account_json)
        if credential_path.strip():
            return load_service_account_data(Path(credential_path).expanduser())
    except CredentialsFileInvalidError as exc:
        raise StoreCredentialsError(str(exc)) from exc
    raise StoreCredentialsError("No service account credentials configured.")


def build_service(service_account_json: str = "", credential_path: str = ""):
    """Construct a Sheets v4 service from inline JSON or a credentials file."""

    payload = _credentials_payload(service_account_json, credential_path)
    try:
        credentials = service_account.Credentials.from_service_account_info(
            dict(payload), scopes=list(SCOPES)
        )
    except ValueError as exc:
        raise StoreCredentialsError(str(exc) or "Invalid service account key.") from exc
    return build("sheets", "v4", credentials=credentials, cache_discovery=False)


def is_local_target(spreadsheet_id: str) -> bool:
    """Return ``True`` when ``spreadsheet_id`` names a local workbook file."""

    suffix = Path(spreadsheet_id).suffix.lower()
    return suffix == ".json" or Path(spreadsheet_id).is_file()


def build_client(
    spreadsheet_id: str,
    *,
    service_account_json: str = "",
    credential_path: str = "",
    service: Optional[Any] = None,
) -> GoogleSheetsClient:
    """Factory used by the application layer to construct a store client."""

    if service is not None:
        return GoogleSheetsClient(service)
    if spreadsheet_id and is_local_target(spreadsheet_id):
        return GoogleSheetsClient(LocalWorkbookService(Path(spreadsheet_id).expanduser()))
    return GoogleSheetsClient(build_service(service_account_json, credential_path))


__all__ = [
    "GoogleSheetsClient",
    "SCOPES",
    "StoreCredentialsError",
    "StoreError",
    "StoreResponseError",
    "VALUE_INPUT_OPTION",
    "build_client",
    "build_service",
    "is_local_target",
]
