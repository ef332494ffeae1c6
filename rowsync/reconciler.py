"""Event handlers that reconcile incoming rows with the remote table.

Each event runs through the same linear pipeline::

    RECEIVED -> PARSED -> (LOCATED) -> PLANNED -> SENT -> COMPLETED | FAILED

The locate step only happens for the two merge policies.  A handler never
raises: every failure is logged and returned as an :class:`EventOutcome`
whose ``status`` names the kind of failure, and the event is dropped.  No
retry is attempted because a failed write may already have partially landed.

The store client and the settings provider are injected so tests can supply
fakes.  Settings are re-read for every event, and an optional client factory
reconnects when the spreadsheet or credentials in those settings change.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Tuple, Union

from rowsync.locator import NOT_FOUND, RowLocation, locate_row
from rowsync.planner import (
    ValidationError,
    WriteMode,
    WritePlan,
    describe,
    plan_append,
    plan_merge_append,
    plan_merge_at_column,
    validate_merge_at_column,
)
from rowsync.row_parser import parse_row
from rowsync.settings import (
    BridgeSettings,
    ConfigUnavailableError,
    parse_spreadsheet_id,
    require_spreadsheet_id,
    require_tab_name,
)
from rowsync.sheets_client import StoreError

logger = logging.getLogger(__name__)


class EventKind(Enum):
    APPEND_ROW = "Append Row"
    APPEND_TO_EXISTING_ROW = "Add to existing Row"
    APPEND_TO_EXISTING_ROW_WITH_COLUMN = "Add to existing Row with Column"


EVENT_ALIASES = {
    "appendrow": EventKind.APPEND_ROW,
    "appendtoexistingrow": EventKind.APPEND_TO_EXISTING_ROW,
    "addtoexistingrow": EventKind.APPEND_TO_EXISTING_ROW,
    "appendtoexistingrowwithcolumn": EventKind.APPEND_TO_EXISTING_ROW_WITH_COLUMN,
    "addtoexistingrowwithcolumn": EventKind.APPEND_TO_EXISTING_ROW_WITH_COLUMN,
}


def resolve_event(name: str) -> EventKind:
    """Map an event name such as ``"Append Row"`` or ``"AppendRow"`` to its kind."""

    squashed = "".join((name or "").split()).replace("_", "").replace("-", "").lower()
    try:
        return EVENT_ALIASES[squashed]
    except KeyError:
        raise ValueError(f"Unknown event: {name!r}") from None


class Stage(Enum):
    RECEIVED = "received"
    PARSED = "parsed"
    LOCATED = "located"
    PLANNED = "planned"
    SENT = "sent"
    COMPLETED = "completed"


class OutcomeStatus(Enum):
    COMPLETED = "completed"
    NOOP = "noop"
    VALIDATION_FAILED = "validation_failed"
    CONFIG_UNAVAILABLE = "config_unavailable"
    REMOTE_FAILED = "remote_failed"


@dataclass
class EventOutcome:
    """Result of one event.

    ``stage`` is the last stage reached; ``SENT`` without ``COMPLETED`` means
    the write request itself failed.
    """

    event: EventKind
    status: OutcomeStatus
    stage: Stage
    key: Optional[str] = None
    plan: Optional[WritePlan] = None
    updated_cells: Optional[int] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.status in (OutcomeStatus.COMPLETED, OutcomeStatus.NOOP)


SettingsProvider = Callable[[], BridgeSettings]

ClientFactory = Callable[[BridgeSettings], Any]


def _client_source(settings: BridgeSettings) -> Tuple[str, str, str]:
    return (
        parse_spreadsheet_id(settings.spreadsheet_id),
        settings.service_account_json,
        settings.credential_path,
    )


class _EventAborted(Exception):
    def __init__(self, outcome: EventOutcome) -> None:
        super().__init__(outcome.status.value)
        self.outcome = outcome


class RowReconciler:
    """Apply row events to a spreadsheet tab through an injected store client.

    With a ``client_factory`` the client follows the settings: it is rebuilt
    whenever the spreadsheet id or credential fields change, and retried on
    every event while no client could be built.
    """

    def __init__(
        self,
        client=None,
        settings_provider: Union[SettingsProvider, BridgeSettings, None] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self._client = client
        self._client_factory = client_factory
        self._client_source: Optional[Tuple[str, str, str]] = None
        self._client_lock = threading.Lock()
        if isinstance(settings_provider, BridgeSettings):
            fixed = settings_provider
            self._settings_provider: SettingsProvider = lambda: fixed
        elif settings_provider is None:
            self._settings_provider = BridgeSettings
        else:
            self._settings_provider = settings_provider

    @property
    def client(self):
        return self._client

    def attach_client(self, client) -> None:
        with self._client_lock:
            self._client = client

    def ensure_client(self, settings: BridgeSettings):
        """Return the client for ``settings``, rebuilding it through the factory when they changed."""

        if self._client_factory is None:
            return self._client
        source = _client_source(settings)
        with self._client_lock:
            if self._client is None or source != self._client_source:
                if self._client_source is not None and source != self._client_source:
                    logger.info("Sheets connection settings changed; reconnecting.")
                self._client = self._client_factory(settings)
                self._client_source = source
            return self._client

    def connection_status(self) -> str:
        """Return ``"not_configured"``, ``"loading"`` or ``"ready"``."""

        try:
            settings = self._settings_provider()
        except (ConfigUnavailableError, OSError):
            return "not_configured"
        if settings.missing_fields():
            return "not_configured"
        if self._client is None:
            return "loading"
        return "ready"

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------
    def handle(self, event_name: str, payload: str) -> EventOutcome:
        return self.run(resolve_event(event_name), payload)

    def append_row(self, payload: str) -> EventOutcome:
        return self.run(EventKind.APPEND_ROW, payload)

    def append_to_existing_row(self, payload: str) -> EventOutcome:
        return self.run(EventKind.APPEND_TO_EXISTING_ROW, payload)

    def append_to_existing_row_with_column(self, payload: str) -> EventOutcome:
        return self.run(EventKind.APPEND_TO_EXISTING_ROW_WITH_COLUMN, payload)

    def run(self, kind: EventKind, payload: str) -> EventOutcome:
        try:
            outcome = self._process(kind, payload)
        except _EventAborted as aborted:
            outcome = aborted.outcome
        self._log_outcome(outcome)
        return outcome

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def _process(self, kind: EventKind, payload: str) -> EventOutcome:
        row = parse_row(payload)
        key = row[0] if row else None
        logger.debug("%s received: %r", kind.value, row)

        if kind is EventKind.APPEND_TO_EXISTING_ROW and not row:
            return EventOutcome(
                kind,
                OutcomeStatus.NOOP,
                Stage.PARSED,
                error=ValidationError("Empty row provided"),
            )
        if kind is EventKind.APPEND_TO_EXISTING_ROW_WITH_COLUMN:
            try:
                validate_merge_at_column(row)
            except ValidationError as exc:
                return EventOutcome(kind, OutcomeStatus.VALIDATION_FAILED, Stage.PARSED, key=key, error=exc)

        client, spreadsheet_id, tab_name = self._resolve_target(kind, key)

        location: RowLocation = NOT_FOUND
        stage = Stage.PARSED
        if kind is not EventKind.APPEND_ROW:
            try:
                location = locate_row(client, spreadsheet_id, tab_name, key)
            except StoreError as exc:
                return EventOutcome(kind, OutcomeStatus.REMOTE_FAILED, stage, key=key, error=exc)
            stage = Stage.LOCATED

        if kind is EventKind.APPEND_ROW:
            plan: Optional[WritePlan] = plan_append(tab_name, row)
        elif kind is EventKind.APPEND_TO_EXISTING_ROW:
            plan = plan_merge_append(tab_name, row, location)
        else:
            plan = plan_merge_at_column(tab_name, row, location)

        if plan is None:
            return EventOutcome(kind, OutcomeStatus.NOOP, Stage.PLANNED, key=key)

        try:
            updated = self._send(client, spreadsheet_id, plan)
        except StoreError as exc:
            return EventOutcome(kind, OutcomeStatus.REMOTE_FAILED, Stage.SENT, key=key, plan=plan, error=exc)
        return EventOutcome(kind, OutcomeStatus.COMPLETED, Stage.COMPLETED, key=key, plan=plan, updated_cells=updated)

    def _resolve_target(self, kind: EventKind, key: Optional[str]):
        try:
            settings = self._settings_provider()
            spreadsheet_id = require_spreadsheet_id(settings.spreadsheet_id)
            tab_name = require_tab_name(settings.tab_name)
            client = self.ensure_client(settings)
            if client is None:
                raise ConfigUnavailableError("Sheets client is not loaded yet.")
        except (ConfigUnavailableError, OSError) as exc:
            raise _EventAborted(
                EventOutcome(kind, OutcomeStatus.CONFIG_UNAVAILABLE, Stage.PARSED, key=key, error=exc)
            ) from exc
        return client, spreadsheet_id, tab_name

    @staticmethod
    def _send(client, spreadsheet_id: str, plan: WritePlan) -> int:
        if plan.mode is WriteMode.APPEND:
            return client.append_values(spreadsheet_id, plan.range, plan.matrix())
        return client.update_values(spreadsheet_id, plan.range, plan.matrix())

    @staticmethod
    def _log_outcome(outcome: EventOutcome) -> None:
        event = outcome.event.value
        if outcome.status is OutcomeStatus.COMPLETED and outcome.plan is not None:
            logger.info(
                "%s: %s cells written, %s (key=%r)",
                event,
                outcome.updated_cells,
                describe(outcome.plan),
                outcome.key,
            )
        elif outcome.status is OutcomeStatus.NOOP:
            reason = outcome.error or "nothing to write"
            logger.warning("%s: skipped, %s (key=%r)", event, reason, outcome.key)
        elif outcome.status is OutcomeStatus.REMOTE_FAILED:
            target = outcome.plan.range if outcome.plan is not None else "key lookup"
            logger.error(
                "%s: remote call failed for key=%r at %s: %s",
                event,
                outcome.key,
                target,
                outcome.error,
            )
        else:
            logger.warning("%s: dropped (%s): %s", event, outcome.status.value, outcome.error)


__all__ = [
    "EVENT_ALIASES",
    "EventKind",
    "EventOutcome",
    "OutcomeStatus",
    "RowReconciler",
    "Stage",
    "resolve_event",
]
