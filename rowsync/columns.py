"""Column letter arithmetic and A1 range formatting.

Every range string the bridge sends to a spreadsheet is produced here so that
the syntax lives in exactly one place:

* ``index_to_letter`` / ``letter_to_index`` convert between zero-based column
  indices and spreadsheet column names (``A`` .. ``Z``, ``AA`` ..).  The
  encoding is bijective base-26: there is no zero digit, so ``Z`` is followed
  by ``AA`` rather than ``BA``.
* ``column_range``, ``row_range`` and ``cell_range`` render the handful of A1
  shapes the reconciliation engine needs, quoting tab names when required.
* ``split_range`` parses those shapes back, which the local workbook store
  uses to address its in-memory grid.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

_SIMPLE_TITLE_RE = re.compile(r"^[A-Za-z0-9_]+$")
_LETTERS_RE = re.compile(r"^[A-Za-z]+$")
_CELL_RE = re.compile(r"^([A-Za-z]*)(\d*)$")


def index_to_letter(index: int) -> str:
    """Return the column name for the zero-based ``index``."""

    if index < 0:
        raise ValueError("Column index must be >= 0")
    letters: List[str] = []
    n = index
    while n >= 0:
        letters.append(chr(65 + n % 26))
        n = n // 26 - 1
    return "".join(reversed(letters))


def letter_to_index(letter: str) -> int:
    """Return the zero-based index for a column name such as ``"AZ"``.

    Lower case input is accepted.
    """

    text = (letter or "").strip()
    if not _LETTERS_RE.fullmatch(text):
        raise ValueError(f"Invalid column letter: {letter!r}")
    index = 0
    for char in text.upper():
        index = index * 26 + (ord(char) - 64)
    return index - 1


def normalise_letter(letter: str) -> str:
    """Validate ``letter`` and return it upper-cased."""

    return index_to_letter(letter_to_index(letter))


def is_column_letter(value: str) -> bool:
    return bool(_LETTERS_RE.fullmatch((value or "").strip()))


def quote_tab_name(title: str) -> str:
    """Return a tab name safely formatted for A1 notation."""

    normalised = (title or "").strip()
    if not normalised:
        raise ValueError("Tab name must not be empty")
    if _SIMPLE_TITLE_RE.fullmatch(normalised):
        return normalised
    escaped = normalised.replace("'", "''")
    return f"'{escaped}'"


def _unquote_tab_name(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text.startswith("'") and text.endswith("'"):
        return text[1:-1].replace("''", "'")
    return text


def column_range(tab_name: str, column: int = 0) -> str:
    """Return the range covering every row of one column, e.g. ``Tab!A:A``."""

    letter = index_to_letter(column)
    return f"{quote_tab_name(tab_name)}!{letter}:{letter}"


def row_range(tab_name: str, row_number: int) -> str:
    """Return the range covering every column of one row, e.g. ``Tab!3:3``."""

    if row_number < 1:
        raise ValueError("Row number must be >= 1")
    return f"{quote_tab_name(tab_name)}!{row_number}:{row_number}"


def cell_range(
    tab_name: str,
    start_column: int,
    start_row: int,
    end_column: Optional[int] = None,
    end_row: Optional[int] = None,
) -> str:
    """Return an A1 range for a cell rectangle.

    ``cell_range("Log", 2, 3, 3, 3)`` gives ``Log!C3:D3``.  Leaving out
    ``end_row`` while passing ``end_column`` produces an open-ended window such
    as ``Log!A1:E``; leaving out both gives a single cell anchor.
    """

    if start_row < 1:
        raise ValueError("Row number must be >= 1")
    cells = f"{index_to_letter(start_column)}{start_row}"
    if end_column is not None:
        cells += f":{index_to_letter(end_column)}"
        if end_row is not None:
            if end_row < start_row:
                raise ValueError("End row must not precede start row")
            cells += str(end_row)
    elif end_row is not None:
        raise ValueError("End row requires an end column")
    return f"{quote_tab_name(tab_name)}!{cells}"


@dataclass(frozen=True)
class CellRef:
    """One side of a parsed A1 range; ``None`` means unbounded."""

    column: Optional[int]
    row: Optional[int]


def _parse_cell(text: str) -> CellRef:
    match = _CELL_RE.fullmatch(text.strip())
    if not match or not (match.group(1) or match.group(2)):
        raise ValueError(f"Invalid cell reference: {text!r}")
    letters, digits = match.groups()
    column = letter_to_index(letters) if letters else None
    row = int(digits) if digits else None
    if row is not None and row < 1:
        raise ValueError(f"Invalid row number in {text!r}")
    return CellRef(column=column, row=row)


def split_range(range_spec: str) -> Tuple[str, CellRef, CellRef]:
    """Parse ``Tab!C3:D3`` style text into the tab name and both corners.

    A single cell such as ``Tab!A1`` returns the same reference twice.
    """

    if "!" not in range_spec:
        raise ValueError(f"Range is missing a tab name: {range_spec!r}")
    title, cells = range_spec.rsplit("!", 1)
    title = _unquote_tab_name(title)
    if ":" in cells:
        start_text, end_text = cells.split(":", 1)
        start, end = _parse_cell(start_text), _parse_cell(end_text)
    else:
        start = _parse_cell(cells)
        end = start
    return title, start, end


__all__ = [
    "CellRef",
    "cell_range",
    "column_range",
    "index_to_letter",
    "is_column_letter",
    "letter_to_index",
    "normalise_letter",
    "quote_tab_name",
    "row_range",
    "split_range",
]
