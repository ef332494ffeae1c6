"""Find the row that holds a key in the first column of a tab."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Union

from rowsync.columns import column_range, row_range

logger = logging.getLogger(__name__)

KEY_COLUMN = 0


class _NotFound:
    __slots__ = ()

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __bool__(self) -> bool:
        return False


NOT_FOUND = _NotFound()


@dataclass(frozen=True)
class FoundRow:
    """A located row: its 1-based number and the values currently stored."""

    row_number: int
    existing_values: List[str] = field(default_factory=list)

    @property
    def last_populated_index(self) -> int:
        """Zero-based index of the last non-blank cell, ``-1`` for an empty row."""

        for index in range(len(self.existing_values) - 1, -1, -1):
            if self.existing_values[index] != "":
                return index
        return -1


RowLocation = Union[FoundRow, _NotFound]


def find_key_index(column_values: Sequence[Sequence[str]], key: str) -> int:
    """Return the zero-based position of the first row whose first cell is ``key``.

    Matching is exact and case-sensitive.  ``-1`` when absent.
    """

    for position, row in enumerate(column_values):
        if row and row[0] == key:
            return position
    return -1


def locate_row(client, spreadsheet_id: str, tab_name: str, key: str) -> RowLocation:
    """Locate ``key`` with two narrow reads: the key column, then the matching row.

    Errors raised by ``client`` propagate to the caller.
    """

    key_column = client.get_values(spreadsheet_id, column_range(tab_name, KEY_COLUMN))
    position = find_key_index(key_column, key)
    if position < 0:
        logger.debug("Key %r not found in %s", key, tab_name)
        return NOT_FOUND

    row_number = position + 1
    matrix = client.get_values(spreadsheet_id, row_range(tab_name, row_number))
    existing = list(matrix[0]) if matrix else []
    logger.debug("Key %r found at row %s with %s cells", key, row_number, len(existing))
    return FoundRow(row_number=row_number, existing_values=existing)


__all__ = ["FoundRow", "KEY_COLUMN", "NOT_FOUND", "RowLocation", "find_key_index", "locate_row"]
