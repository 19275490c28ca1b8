from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

_OLDEST = datetime.min.replace(tzinfo=UTC)


def parse_timestamp(value: str | None) -> datetime:
    """
    Parse a GLPI timestamp (``2024-01-31 09:15:00`` or ISO 8601) for ordering.

    Naive values are taken as UTC; missing or unparsable values sort as the oldest.
    """
    if not value:
        return _OLDEST
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return _OLDEST
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_day(value: str | date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip())


def exclusive_day_bounds(date_from: str | date, date_to: str | date) -> tuple[str, str]:
    """
    Widen an inclusive ``[from, to]`` day range by one day on each side.

    GLPI's ``morethan``/``lessthan`` comparisons are strict, so the widened bounds make
    both edge days match.
    """
    lower = parse_day(date_from) - timedelta(days=1)
    upper = parse_day(date_to) + timedelta(days=1)
    return lower.isoformat(), upper.isoformat()
