from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Sequence, Tuple

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import httplib2
import pytest
from google.auth import exceptions as google_auth_exceptions

from rowsync.local_store import LocalWorkbookService
from rowsync.planner import ValidationError, WriteMode
from rowsync.reconciler import (
    EventKind,
    OutcomeStatus,
    RowReconciler,
    Stage,
    resolve_event,
)
from rowsync.settings import BridgeSettings, ConfigUnavailableError
from rowsync.sheets_client import GoogleSheetsClient, StoreCredentialsError, StoreResponseError

SETTINGS = BridgeSettings(spreadsheet_id="sheet-1", tab_name="Log")


class _RecordingClient(GoogleSheetsClient):
    """Local workbook client that records every remote call."""

    def __init__(self, rows: Sequence[Sequence[str]] = ()) -> None:
        self.service = LocalWorkbookService(sheets={"Log": rows})
        super().__init__(self.service)
        self.calls: List[Tuple[str, str]] = []
        self.fail_on: set[str] = set()

    def _maybe_fail(self, method: str, range_spec: str) -> None:
        self.calls.append((method, range_spec))
        if method in self.fail_on:
            raise StoreResponseError(f"{method} {range_spec} failed (HTTP 403)")

    def get_values(self, spreadsheet_id, range_spec):
        self._maybe_fail("get", range_spec)
        return super().get_values(spreadsheet_id, range_spec)

    def append_values(self, spreadsheet_id, range_spec, values):
        self._maybe_fail("append", range_spec)
        return super().append_values(spreadsheet_id, range_spec, values)

    def update_values(self, spreadsheet_id, range_spec, values):
        self._maybe_fail("update", range_spec)
        return super().update_values(spreadsheet_id, range_spec, values)

    @property
    def writes(self) -> List[Tuple[str, str]]:
        return [call for call in self.calls if call[0] != "get"]


def _reconciler(rows: Sequence[Sequence[str]] = ()) -> Tuple[RowReconciler, _RecordingClient]:
    client = _RecordingClient(rows)
    return RowReconciler(client, SETTINGS), client


def test_append_row_never_reads() -> None:
    reconciler, client = _reconciler([["x", "1"]])

    outcome = reconciler.append_row("k,v1,v2")

    assert outcome.status is OutcomeStatus.COMPLETED
    assert outcome.stage is Stage.COMPLETED
    assert client.calls == [("append", "Log!A1:E")]
    assert outcome.updated_cells == 3
    assert client.service.rows("Log") == [["x", "1"], ["k", "v1", "v2"]]


def test_merge_append_key_not_found_appends_new_row() -> None:
    reconciler, client = _reconciler([["x", "1"]])

    outcome = reconciler.append_to_existing_row("k,v1,v2")

    assert outcome.status is OutcomeStatus.COMPLETED
    assert outcome.plan is not None
    assert outcome.plan.mode is WriteMode.APPEND
    assert outcome.plan.range == "Log!A1"
    assert client.calls == [("get", "Log!A:A"), ("append", "Log!A1")]
    assert client.service.rows("Log")[-1] == ["k", "v1", "v2"]


def test_merge_append_key_found_updates_in_place() -> None:
    reconciler, client = _reconciler([["x", "1"], ["y"], ["k", "a", "b"], ["z", "9"]])

    outcome = reconciler.append_to_existing_row("k,v1,v2")

    assert outcome.status is OutcomeStatus.COMPLETED
    assert outcome.key == "k"
    assert outcome.plan is not None and outcome.plan.mode is WriteMode.UPDATE_IN_PLACE
    assert client.calls == [("get", "Log!A:A"), ("get", "Log!3:3"), ("update", "Log!D3:E3")]
    assert client.service.rows("Log")[2] == ["k", "a", "b", "v1", "v2"]
    assert client.service.rows("Log")[3] == ["z", "9"]


def test_merge_append_empty_payload_is_reported_noop_without_remote_call() -> None:
    reconciler, client = _reconciler([["k"]])

    outcome = reconciler.append_to_existing_row("")

    assert outcome.status is OutcomeStatus.NOOP
    assert outcome.ok
    assert isinstance(outcome.error, ValidationError)
    assert client.calls == []


def test_merge_append_key_only_on_existing_row_is_noop_after_lookup() -> None:
    reconciler, client = _reconciler([["k", "a"]])

    outcome = reconciler.append_to_existing_row("k")

    assert outcome.status is OutcomeStatus.NOOP
    assert outcome.stage is Stage.PLANNED
    assert client.writes == []


def test_merge_at_column_found_targets_explicit_column() -> None:
    reconciler, client = _reconciler([["x"], ["k", "a", "b", "c", "d", "e", "f"]])

    outcome = reconciler.append_to_existing_row_with_column("k,D,v1,v2")

    assert outcome.status is OutcomeStatus.COMPLETED
    assert client.writes == [("update", "Log!D2:E2")]
    assert client.service.rows("Log")[1] == ["k", "a", "b", "v1", "v2", "e", "f"]


def test_merge_at_column_not_found_appends_padded_row() -> None:
    reconciler, client = _reconciler([["x", "1"]])

    outcome = reconciler.append_to_existing_row_with_column("k,c,v1")

    assert outcome.status is OutcomeStatus.COMPLETED
    assert outcome.plan is not None
    assert outcome.plan.matrix() == [["k", "", "v1"]]
    assert client.writes == [("append", "Log!A1")]
    assert client.service.rows("Log")[-1] == ["k", "", "v1"]


@pytest.mark.parametrize("payload", ["", "k", "k,7,v", "k,A,v"])
def test_merge_at_column_validation_failures_make_no_remote_call(payload: str) -> None:
    reconciler, client = _reconciler([["k"]])

    outcome = reconciler.append_to_existing_row_with_column(payload)

    assert outcome.status is OutcomeStatus.VALIDATION_FAILED
    assert isinstance(outcome.error, ValidationError)
    assert not outcome.ok
    assert client.calls == []


def test_replaying_merge_at_column_plans_same_range() -> None:
    reconciler, client = _reconciler([["k", "a"]])

    first = reconciler.append_to_existing_row_with_column("k,E,v1")
    second = reconciler.append_to_existing_row_with_column("k,E,v1")

    assert first.plan == second.plan
    assert client.writes == [("update", "Log!E1:E1"), ("update", "Log!E1:E1")]


def test_read_failure_is_reported_and_nothing_written() -> None:
    reconciler, client = _reconciler([["k"]])
    client.fail_on.add("get")

    outcome = reconciler.append_to_existing_row("k,v")

    assert outcome.status is OutcomeStatus.REMOTE_FAILED
    assert outcome.stage is Stage.PARSED
    assert isinstance(outcome.error, StoreResponseError)
    assert client.writes == []


def test_write_failure_is_reported_with_plan() -> None:
    reconciler, client = _reconciler([["k"]])
    client.fail_on.add("update")

    outcome = reconciler.append_to_existing_row("k,v")

    assert outcome.status is OutcomeStatus.REMOTE_FAILED
    assert outcome.stage is Stage.SENT
    assert outcome.plan is not None and outcome.plan.range == "Log!B1:B1"


def test_failed_event_does_not_block_the_next_one() -> None:
    reconciler, client = _reconciler([["k"]])
    client.fail_on.add("append")

    assert reconciler.append_row("a,b").status is OutcomeStatus.REMOTE_FAILED
    client.fail_on.clear()
    assert reconciler.append_row("a,b").status is OutcomeStatus.COMPLETED


def test_missing_client_is_config_unavailable() -> None:
    reconciler = RowReconciler(None, SETTINGS)

    outcome = reconciler.append_row("k,v")

    assert outcome.status is OutcomeStatus.CONFIG_UNAVAILABLE
    assert isinstance(outcome.error, ConfigUnavailableError)
    assert reconciler.connection_status() == "loading"


@pytest.mark.parametrize(
    "settings",
    [
        BridgeSettings(spreadsheet_id="", tab_name="Log"),
        BridgeSettings(spreadsheet_id="sheet-1", tab_name=" "),
    ],
)
def test_missing_settings_are_config_unavailable(settings: BridgeSettings) -> None:
    client = _RecordingClient([["k"]])
    reconciler = RowReconciler(client, settings)

    outcome = reconciler.append_to_existing_row("k,v")

    assert outcome.status is OutcomeStatus.CONFIG_UNAVAILABLE
    assert client.calls == []
    assert reconciler.connection_status() == "not_configured"


def test_settings_are_read_for_every_event() -> None:
    client = _RecordingClient()
    tabs = iter(["First", "Second"])
    reconciler = RowReconciler(client, lambda: BridgeSettings(spreadsheet_id="sheet-1", tab_name=next(tabs)))

    reconciler.append_row("a")
    reconciler.append_row("b")

    assert client.writes == [("append", "First!A1:E"), ("append", "Second!A1:E")]


def test_handle_dispatches_by_event_name() -> None:
    reconciler, client = _reconciler([["k", "a"]])

    outcome = reconciler.handle("Add to existing Row", "k,b")

    assert outcome.event is EventKind.APPEND_TO_EXISTING_ROW
    assert client.writes == [("update", "Log!C1:C1")]
    assert reconciler.connection_status() == "ready"


@pytest.mark.parametrize(
    "name, kind",
    [
        ("Append Row", EventKind.APPEND_ROW),
        ("AppendRow", EventKind.APPEND_ROW),
        ("AppendToExistingRow", EventKind.APPEND_TO_EXISTING_ROW),
        ("add to existing row", EventKind.APPEND_TO_EXISTING_ROW),
        ("AppendToExistingRowWithColumn", EventKind.APPEND_TO_EXISTING_ROW_WITH_COLUMN),
        ("Add to existing Row with Column", EventKind.APPEND_TO_EXISTING_ROW_WITH_COLUMN),
    ],
)
def test_resolve_event_aliases(name: str, kind: EventKind) -> None:
    assert resolve_event(name) is kind


def test_resolve_event_rejects_unknown_names() -> None:
    with pytest.raises(ValueError):
        resolve_event("Delete Row")


class _RaisingService:
    """Sheets service whose requests all fail with ``error`` on ``execute()``."""

    def __init__(self, error: Exception) -> None:
        self.error = error

    def spreadsheets(self):
        return self

    def values(self):
        return self

    def _request(self, **_kwargs):
        return self

    get = append = update = _request

    def execute(self):
        raise self.error


@pytest.mark.parametrize(
    "error, expected",
    [
        (google_auth_exceptions.RefreshError("invalid_grant"), StoreCredentialsError),
        (google_auth_exceptions.TransportError("connection reset"), StoreResponseError),
        (TimeoutError("timed out"), StoreResponseError),
        (httplib2.ServerNotFoundError("Unable to find the server"), StoreResponseError),
    ],
)
@pytest.mark.parametrize("event", ["Append Row", "Add to existing Row", "Add to existing Row with Column"])
def test_transport_and_auth_failures_become_remote_failed(event: str, error: Exception, expected) -> None:
    reconciler = RowReconciler(GoogleSheetsClient(_RaisingService(error)), SETTINGS)

    outcome = reconciler.handle(event, "k,C,v")

    assert outcome.status is OutcomeStatus.REMOTE_FAILED
    assert isinstance(outcome.error, expected)
    assert outcome.error.__cause__ is error


def test_corrupt_local_workbook_is_remote_failed(tmp_path: Path) -> None:
    workbook = tmp_path / "workbook.json"
    workbook.write_text("{not json", encoding="utf-8")
    reconciler = RowReconciler(GoogleSheetsClient(LocalWorkbookService(workbook)), SETTINGS)

    outcome = reconciler.append_to_existing_row("k,v")

    assert outcome.status is OutcomeStatus.REMOTE_FAILED
    assert isinstance(outcome.error, StoreResponseError)
    assert "not valid JSON" in str(outcome.error)


def test_client_factory_follows_settings_changes() -> None:
    current = {"settings": BridgeSettings(spreadsheet_id="sheet-1", tab_name="Log")}
    stores = {"sheet-2": _RecordingClient()}
    built: List[str] = []

    def factory(settings: BridgeSettings):
        built.append(settings.spreadsheet_id)
        return stores.get(settings.spreadsheet_id)

    reconciler = RowReconciler(None, lambda: current["settings"], client_factory=factory)

    assert reconciler.append_row("a").status is OutcomeStatus.CONFIG_UNAVAILABLE
    assert reconciler.append_row("a").status is OutcomeStatus.CONFIG_UNAVAILABLE
    current["settings"] = BridgeSettings(spreadsheet_id="sheet-2", tab_name="Log")
    assert reconciler.append_row("b").status is OutcomeStatus.COMPLETED
    assert reconciler.append_row("c").status is OutcomeStatus.COMPLETED

    assert built == ["sheet-1", "sheet-1", "sheet-2"]
    assert stores["sheet-2"].service.rows("Log") == [["b"], ["c"]]
    assert reconciler.connection_status() == "ready"


def test_client_factory_reconnects_when_credentials_change() -> None:
    current = {"settings": BridgeSettings(spreadsheet_id="sheet-1", tab_name="Log", credential_path="old.json")}
    built: List[str] = []

    def factory(settings: BridgeSettings):
        built.append(settings.credential_path)
        return _RecordingClient()

    reconciler = RowReconciler(None, lambda: current["settings"], client_factory=factory)

    reconciler.append_row("a")
    reconciler.append_row("b")
    current["settings"] = BridgeSettings(spreadsheet_id="sheet-1", tab_name="Log", credential_path="new.json")
    reconciler.append_row("c")

    assert built == ["old.json", "new.json"]
