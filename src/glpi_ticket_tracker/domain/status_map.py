from __future__ import annotations

from typing import Any, Final

from glpi_ticket_tracker.domain.ticket_models import TicketPriority, TicketStatus

_STATUS: Final[dict[int, TicketStatus]] = {
    1: "new",
    2: "in-progress",
    3: "pending",
    4: "pending",
    5: "resolved",
    6: "closed",
}

_PRIORITY: Final[dict[int, TicketPriority]] = {
    1: "low",
    2: "low",
    3: "medium",
    4: "high",
    5: "urgent",
    6: "urgent",
}


def _as_code(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def map_status(code: Any) -> TicketStatus:
    return _STATUS.get(_as_code(code) or 0, "new")


def map_priority(code: Any) -> TicketPriority:
    return _PRIORITY.get(_as_code(code) or 0, "medium")
