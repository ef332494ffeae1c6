"""Turn raw event payloads into row fields."""
from __future__ import annotations

from typing import List, Optional

FIELD_DELIMITER = ","


def parse_row(payload: Optional[str]) -> List[str]:
    """Split ``payload`` into its comma separated fields.

    The payload is split verbatim: no quoting rules are applied and
    surrounding whitespace is preserved, so ``"k, v"`` yields ``["k", " v"]``.
    An empty payload yields an empty list.
    """

    if not payload:
        return []
    return payload.split(FIELD_DELIMITER)


__all__ = ["FIELD_DELIMITER", "parse_row"]
