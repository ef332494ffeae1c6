"""Sheets values API drop-in backed by a local JSON workbook.

When the configured spreadsheet id points at a ``.json`` file the bridge
writes rows there instead of contacting Google, which is handy for rehearsals
without network access.  The service mimics the small part of the
``googleapiclient`` call chain that :class:`~rowsync.sheets_client.GoogleSheetsClient`
uses (``spreadsheets().values().get/append/update(...).execute()``), including
the way Sheets trims trailing blank cells and rows from read results.

Passing ``path=None`` keeps the workbook in memory only.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from rowsync.columns import CellRef, cell_range, split_range

Workbook = Dict[str, List[List[str]]]


class WorkbookFileError(OSError):
    """Raised when the workbook file exists but cannot be read as a workbook."""


class _LocalRequest:
    def __init__(self, callback: Callable[[], Mapping[str, object]]) -> None:
        self._callback = callback

    def execute(self) -> Mapping[str, object]:
        return self._callback()


def _trimmed(row: Sequence[str]) -> List[str]:
    current = [str(cell) for cell in row]
    while current and current[-1] == "":
        current.pop()
    return current


def _slice_rows(rows: Sequence[Sequence[str]], start: CellRef, end: CellRef) -> List[List[str]]:
    if not rows:
        return []
    min_row = start.row or 1
    min_col = start.column or 0
    max_row = end.row or len(rows)
    widest = max(len(row) for row in rows)
    max_col = end.column if end.column is not None else widest - 1
    sliced: List[List[str]] = []
    for row_index in range(min_row - 1, min(max_row, len(rows))):
        row = rows[row_index]
        sliced.append(_trimmed(row[min_col : max_col + 1]))
    while sliced and not sliced[-1]:
        sliced.pop()
    return sliced


def _write_block(rows: List[List[str]], row_number: int, column: int, values: Sequence[Sequence[object]]) -> int:
    written = 0
    for offset, values_row in enumerate(values):
        index = row_number - 1 + offset
        while len(rows) <= index:
            rows.append([])
        target = rows[index]
        needed = column + len(values_row)
        if len(target) < needed:
            target.extend([""] * (needed - len(target)))
        for col_offset, cell in enumerate(values_row):
            target[column + col_offset] = "" if cell is None else str(cell)
            written += 1
    return written


def _last_table_row(rows: Sequence[Sequence[str]], column: int) -> int:
    for index in range(len(rows) - 1, -1, -1):
        if any(cell != "" for cell in rows[index][column:]):
            return index + 1
    return 0


def _block_range(title: str, row_number: int, column: int, values: Sequence[Sequence[object]]) -> str:
    width = max((len(row) for row in values), default=0)
    if width == 0:
        return cell_range(title, column, row_number)
    return cell_range(title, column, row_number, column + width - 1, row_number + len(values) - 1)


class LocalValuesApi:
    def __init__(self, workbook: "LocalWorkbookService") -> None:
        self._workbook = workbook

    def get(self, spreadsheetId: str, range: str) -> _LocalRequest:  # noqa: N803 - API compatibility
        return _LocalRequest(lambda: self._workbook.handle_get(range))

    def append(  # noqa: N803 - API compatibility
        self,
        spreadsheetId: str,
        range: str,
        valueInputOption: str = "RAW",
        body: Optional[Mapping[str, object]] = None,
        **_: object,
    ) -> _LocalRequest:
        return _LocalRequest(lambda: self._workbook.handle_append(range, body or {}))

    def update(  # noqa: N803 - API compatibility
        self,
        spreadsheetId: str,
        range: str,
        valueInputOption: str = "RAW",
        body: Optional[Mapping[str, object]] = None,
        **_: object,
    ) -> _LocalRequest:
        return _LocalRequest(lambda: self._workbook.handle_update(range, body or {}))


class LocalSpreadsheetsApi:
    def __init__(self, workbook: "LocalWorkbookService") -> None:
        self._workbook = workbook

    def values(self) -> LocalValuesApi:  # noqa: D401 - compatibility proxy
        return LocalValuesApi(self._workbook)


class LocalWorkbookService:
    """Minimal Sheets API drop-in that stores tabs in a JSON file."""

    def __init__(self, path: Optional[Path] = None, *, sheets: Optional[Mapping[str, Sequence[Sequence[str]]]] = None) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._memory: Workbook = {
            title: [[str(cell) for cell in row] for row in rows] for title, rows in (sheets or {}).items()
        }

    def spreadsheets(self) -> LocalSpreadsheetsApi:  # noqa: D401 - compatibility proxy
        return LocalSpreadsheetsApi(self)

    def rows(self, title: str) -> List[List[str]]:
        """Return a copy of the stored rows for ``title``."""

        with self._lock:
            return [list(row) for row in self._load().get(title, [])]

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    def _load(self) -> Workbook:
        if self._path is None:
            return self._memory
        if not self._path.exists():
            return {}
        with open(self._path, "r", encoding="utf-8") as handle:
            try:
                payload = json.load(handle)
            except json.JSONDecodeError as exc:
                raise WorkbookFileError(f"Workbook {self._path} is not valid JSON: {exc.msg}") from exc
        sheets = payload.get("sheets", {}) if isinstance(payload, dict) else None
        if not isinstance(sheets, dict):
            raise WorkbookFileError(f"Workbook {self._path} has no 'sheets' mapping")
        return {title: [list(map(str, row)) for row in rows] for title, rows in sheets.items()}

    def _save(self, sheets: Workbook) -> None:
        if self._path is None:
            self._memory = sheets
            return
        if self._path.parent:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as handle:
            json.dump({"sheets": sheets}, handle, indent=2)

    # ------------------------------------------------------------------
    # Range operations
    # ------------------------------------------------------------------
    def handle_get(self, range_spec: str) -> Mapping[str, object]:
        title, start, end = split_range(range_spec)
        with self._lock:
            rows = self._load().get(title, [])
            values = _slice_rows(rows, start, end)
        return {"range": range_spec, "values": values} if values else {"range": range_spec}

    def handle_append(self, range_spec: str, body: Mapping[str, object]) -> Mapping[str, object]:
        title, start, _end = split_range(range_spec)
        values = body.get("values", [])
        if not isinstance(values, list):
            values = []
        column = start.column or 0
        with self._lock:
            sheets = self._load()
            rows = sheets.setdefault(title, [])
            row_number = _last_table_row(rows, column) + 1
            written = _write_block(rows, row_number, column, values)
            self._save(sheets)
        return {
            "tableRange": range_spec,
            "updates": {
                "updatedRange": _block_range(title, row_number, column, values),
                "updatedCells": written,
            },
        }

    def handle_update(self, range_spec: str, body: Mapping[str, object]) -> Mapping[str, object]:
        title, start, _end = split_range(range_spec)
        values = body.get("values", [])
        if not isinstance(values, list):
            values = []
        column = start.column or 0
        row_number = start.row or 1
        with self._lock:
            sheets = self._load()
            rows = sheets.setdefault(title, [])
            written = _write_block(rows, row_number, column, values)
            self._save(sheets)
        return {
            "updatedRange": _block_range(title, row_number, column, values),
            "updatedCells": written,
        }


__all__ = ["LocalWorkbookService", "WorkbookFileError"]
