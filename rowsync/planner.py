"""Write planning for the three row policies.

Planning is a pure function of the tab name, the parsed row and, for the
merge policies, the :mod:`rowsync.locator` result.  The returned
:class:`WritePlan` fully determines the remote side effect:

``plan_append``
    Blind append of the whole row below the table in the ``A1:E`` window.

``plan_merge_append``
    ``[key, *values]``.  A new row when the key is absent, otherwise the
    values are written immediately after the last populated cell of the
    matching row.

``plan_merge_at_column``
    ``[key, column, *values]``.  Values land at the explicit column of the
    matching row, or a new row is synthesised with blank padding up to that
    column.

A plan of ``None`` means there is nothing to write.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from rowsync.columns import cell_range, index_to_letter, is_column_letter, letter_to_index
from rowsync.locator import FoundRow, RowLocation

APPEND_WINDOW_END_COLUMN = 4  # "E"


class ValidationError(ValueError):
    """Raised when an event payload cannot be turned into a write."""


class WriteMode(Enum):
    APPEND = "append"
    UPDATE_IN_PLACE = "update"


@dataclass(frozen=True)
class TargetRange:
    """Cell rectangle addressed by a plan.  Columns are zero-based, rows 1-based."""

    tab_name: str
    start_column: int
    start_row: int
    end_column: Optional[int] = None
    end_row: Optional[int] = None

    def a1(self) -> str:
        return cell_range(self.tab_name, self.start_column, self.start_row, self.end_column, self.end_row)

    def __str__(self) -> str:
        return self.a1()


@dataclass(frozen=True)
class WritePlan:
    target: TargetRange
    values: Tuple[Tuple[str, ...], ...]
    mode: WriteMode

    @property
    def range(self) -> str:
        return self.target.a1()

    def matrix(self) -> List[List[str]]:
        return [list(row) for row in self.values]


def _plan(target: TargetRange, row: Sequence[str], mode: WriteMode) -> WritePlan:
    return WritePlan(target=target, values=(tuple(row),), mode=mode)


def append_window(tab_name: str) -> TargetRange:
    """The fixed ``A1:E`` window blind appends are anchored to."""

    return TargetRange(tab_name, 0, 1, APPEND_WINDOW_END_COLUMN)


def table_anchor(tab_name: str) -> TargetRange:
    """The ``A1`` anchor used when a merge has to create a new row."""

    return TargetRange(tab_name, 0, 1)


def _in_row(tab_name: str, row_number: int, start_column: int, count: int) -> TargetRange:
    return TargetRange(tab_name, start_column, row_number, start_column + count - 1, row_number)


def plan_append(tab_name: str, row: Sequence[str]) -> WritePlan:
    return _plan(append_window(tab_name), row, WriteMode.APPEND)


def plan_merge_append(tab_name: str, row: Sequence[str], location: RowLocation) -> Optional[WritePlan]:
    """Plan a merge of ``row[1:]`` into the row keyed by ``row[0]``."""

    if not row:
        raise ValidationError("Empty row provided")
    values = list(row[1:])
    if not isinstance(location, FoundRow):
        return _plan(table_anchor(tab_name), row, WriteMode.APPEND)
    if not values:
        return None
    start_column = location.last_populated_index + 1
    target = _in_row(tab_name, location.row_number, start_column, len(values))
    return _plan(target, values, WriteMode.UPDATE_IN_PLACE)


def validate_merge_at_column(row: Sequence[str]) -> int:
    """Check a ``[key, column, *values]`` row and return the target column index."""

    if len(row) < 2:
        raise ValidationError("Expected at least a key and a column letter")
    column_text = row[1].strip()
    if not is_column_letter(column_text):
        raise ValidationError(f"Invalid column letter: {row[1]!r}")
    start_column = letter_to_index(column_text)
    if start_column == 0:
        raise ValidationError("Column A holds the row key and cannot be written")
    return start_column


def plan_merge_at_column(tab_name: str, row: Sequence[str], location: RowLocation) -> Optional[WritePlan]:
    """Plan writing ``row[2:]`` from the column named in ``row[1]``."""

    start_column = validate_merge_at_column(row)
    key = row[0]
    values = list(row[2:])
    if not isinstance(location, FoundRow):
        padding = [""] * (start_column - 1) if values else []
        return _plan(table_anchor(tab_name), [key, *padding, *values], WriteMode.APPEND)
    if not values:
        return None
    target = _in_row(tab_name, location.row_number, start_column, len(values))
    return _plan(target, values, WriteMode.UPDATE_IN_PLACE)


def describe(plan: WritePlan) -> str:
    end = plan.target.end_column
    columns = index_to_letter(plan.target.start_column)
    if end is not None and end != plan.target.start_column:
        columns += f"-{index_to_letter(end)}"
    return f"{plan.mode.value} {plan.range} (columns {columns})"


__all__ = [
    "APPEND_WINDOW_END_COLUMN",
    "TargetRange",
    "ValidationError",
    "WriteMode",
    "WritePlan",
    "append_window",
    "describe",
    "plan_append",
    "plan_merge_append",
    "plan_merge_at_column",
    "table_anchor",
    "validate_merge_at_column",
]
