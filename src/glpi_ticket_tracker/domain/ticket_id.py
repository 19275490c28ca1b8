from __future__ import annotations

import re
from typing import Any

_TICKET_ID_RE = re.compile(r"^\+?(\d+)$")


def coerce_ticket_id(value: Any) -> int | None:
    """
    Normalize a caller-supplied GLPI ticket id.

    Accepts positive ints and digit strings (optionally ``+``-prefixed, surrounding
    whitespace ignored). Booleans, zero and anything else give ``None``.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        ticket_id = value
    elif isinstance(value, str) and (match := _TICKET_ID_RE.match(value.strip())):
        ticket_id = int(match.group(1))
    else:
        return None
    return ticket_id if ticket_id > 0 else None
