from __future__ import annotations

import asyncio
from collections.abc import Mapping
from datetime import date
from typing import Any, Final

import httpx
import structlog
from pydantic import ValidationError

from glpi_ticket_tracker.adapters.glpi.client import (
    AsyncGlpiClient,
    error_detail,
    response_json_or_none,
)
from glpi_ticket_tracker.adapters.glpi.errors import SearchError
from glpi_ticket_tracker.adapters.glpi.models import Group, SearchOption, SearchResponse
from glpi_ticket_tracker.adapters.glpi.users import UserNameResolver
from glpi_ticket_tracker.domain.status_map import map_priority, map_status
from glpi_ticket_tracker.domain.ticket_models import GroupRow, SearchRow
from glpi_ticket_tracker.domain.time_utils import exclusive_day_bounds

log = structlog.get_logger(__name__)

ENTITY_TYPE: Final[str] = "Ticket"

# Search option ids of the core Ticket itemtype.
FIELD_NAME: Final[int] = 1
FIELD_ID: Final[int] = 2
FIELD_PRIORITY: Final[int] = 3
FIELD_TECHNICIAN: Final[int] = 5
FIELD_GROUP: Final[int] = 8
FIELD_STATUS: Final[int] = 12
FIELD_OPEN_DATE: Final[int] = 15
FIELD_DATE_MOD: Final[int] = 19

DISPLAY_FIELDS: Final[tuple[int, ...]] = (
    FIELD_NAME,
    FIELD_ID,
    FIELD_STATUS,
    FIELD_OPEN_DATE,
    FIELD_DATE_MOD,
    FIELD_PRIORITY,
    FIELD_TECHNICIAN,
)

PAGE_SIZE: Final[int] = 500
MAX_ROWS: Final[int] = 5000

# The tag plugin registers its search option under a uid like "Ticket.PluginTagTag.name".
TAG_FIELD_UID_FRAGMENT: Final[str] = "PluginTag"

_SEARCH_OK_STATUSES: Final[frozenset[int]] = frozenset({200, 206})


class TagFieldCache:
    """
    Process-lifetime memo of the tag plugin's search field id.

    Both outcomes are memoized: a discovered id and a confirmed absence. A failed catalog
    request is not an answer and is retried on the next call.
    """

    def __init__(self) -> None:
        self._known = False
        self._field_id: int | None = None
        self._lock = asyncio.Lock()

    @property
    def known(self) -> bool:
        return self._known

    async def discover(self, client: AsyncGlpiClient, session_token: str) -> int | None:
        if self._known:
            return self._field_id
        async with self._lock:
            if self._known:
                return self._field_id
            data = await client.get_json_or_none(
                f"listSearchOptions/{ENTITY_TYPE}", session_token=session_token
            )
            if not isinstance(data, Mapping):
                log.warning("glpi.search_options_unavailable")
                return None
            self._field_id = find_tag_field(data)
            self._known = True
            log.info("glpi.tag_field_discovered", field_id=self._field_id)
            return self._field_id


def find_tag_field(options: Mapping[str, Any]) -> int | None:
    # Section headers ({"common": "Characteristics"}) are plain strings and skipped.
    for key, raw in options.items():
        if not isinstance(raw, Mapping) or not str(key).isdigit():
            continue
        try:
            option = SearchOption.model_validate(raw)
        except ValidationError:
            continue
        if option.uid and TAG_FIELD_UID_FRAGMENT in option.uid:
            return int(key)
    return None


def build_search_params(
    *,
    group_id: int | None,
    date_from: str | date,
    date_to: str | date,
    tag_field_id: int | None,
    start: int,
    end: int,
) -> list[tuple[str, str]]:
    lower, upper = exclusive_day_bounds(date_from, date_to)

    criteria: list[dict[str, str]] = []
    if group_id is not None:
        criteria.append(
            {"field": str(FIELD_GROUP), "searchtype": "equals", "value": str(group_id)}
        )
    criteria.append(
        {"field": str(FIELD_OPEN_DATE), "searchtype": "morethan", "value": lower}
    )
    criteria.append(
        {"field": str(FIELD_OPEN_DATE), "searchtype": "lessthan", "value": upper}
    )

    params: list[tuple[str, str]] = []
    for index, criterion in enumerate(criteria):
        if index > 0:
            params.append((f"criteria[{index}][link]", "AND"))
        for key, value in criterion.items():
            params.append((f"criteria[{index}][{key}]", value))

    display = list(DISPLAY_FIELDS)
    if tag_field_id is not None:
        display.append(tag_field_id)
    for index, field_id in enumerate(display):
        params.append((f"forcedisplay[{index}]", str(field_id)))

    params.append(("range", f"{start}-{end}"))
    return params


async def _fetch_page(
    client: AsyncGlpiClient, session_token: str, params: list[tuple[str, str]]
) -> SearchResponse:
    try:
        response = await client.get(
            f"search/{ENTITY_TYPE}", session_token=session_token, params=params
        )
    except httpx.HTTPError as exc:
        raise SearchError(f"Ticket search failed: {exc.__class__.__name__}") from exc

    if response.status_code not in _SEARCH_OK_STATUSES:
        raise SearchError(
            error_detail(response, "Ticket search failed"), status_code=response.status_code
        )

    try:
        return SearchResponse.model_validate(response_json_or_none(response))
    except ValidationError as exc:
        raise SearchError("Ticket search returned an unexpected payload") from exc


def _coerce_id(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str):
        text = value.strip()
        return int(text) if text.isdigit() and int(text) > 0 else None
    if isinstance(value, list):
        for item in value:
            coerced = _coerce_id(item)
            if coerced is not None:
                return coerced
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _optional_text(value: Any) -> str | None:
    return str(value) if value not in (None, "") else None


def map_row(
    row: Mapping[str, Any],
    *,
    technicians: Mapping[int, str],
    tag_field_id: int | None,
) -> SearchRow | None:
    ticket_id = _coerce_id(row.get(str(FIELD_ID)))
    if ticket_id is None:
        return None
    technician_id = _coerce_id(row.get(str(FIELD_TECHNICIAN)))
    return SearchRow(
        id=ticket_id,
        name=_text(row.get(str(FIELD_NAME))),
        technician=technicians.get(technician_id, "") if technician_id else "",
        status=map_status(row.get(str(FIELD_STATUS))),
        priority=map_priority(row.get(str(FIELD_PRIORITY))),
        date=_optional_text(row.get(str(FIELD_OPEN_DATE))),
        date_mod=_optional_text(row.get(str(FIELD_DATE_MOD))),
        tags=_text(row.get(str(tag_field_id))) if tag_field_id is not None else "",
    )


async def search_tickets(
    client: AsyncGlpiClient,
    session_token: str,
    *,
    group_id: int | None,
    date_from: str | date,
    date_to: str | date,
    tag_field_id: int | None,
    resolver: UserNameResolver,
) -> list[SearchRow]:
    """Run the paginated ticket search for one group (or all groups when ``None``)."""
    raw_rows: list[dict[str, Any]] = []
    start = 0
    while start < MAX_ROWS:
        end = min(start + PAGE_SIZE, MAX_ROWS) - 1
        params = build_search_params(
            group_id=group_id,
            date_from=date_from,
            date_to=date_to,
            tag_field_id=tag_field_id,
            start=start,
            end=end,
        )
        page = await _fetch_page(client, session_token, params)
        raw_rows.extend(page.data)
        log.debug("glpi.search_page", start=start, rows=len(page.data), total=page.totalcount)
        if not page.data or len(raw_rows) >= page.totalcount:
            break
        start += PAGE_SIZE

    technician_ids = [
        tid for tid in (_coerce_id(row.get(str(FIELD_TECHNICIAN))) for row in raw_rows) if tid
    ]
    technicians = await resolver.resolve_many(technician_ids)

    rows: list[SearchRow] = []
    for raw in raw_rows[:MAX_ROWS]:
        mapped = map_row(raw, technicians=technicians, tag_field_id=tag_field_id)
        if mapped is not None:
            rows.append(mapped)
    return rows


async def list_groups(client: AsyncGlpiClient, session_token: str) -> list[GroupRow]:
    try:
        response = await client.get(
            "Group", session_token=session_token, params={"range": "0-999", "order": "ASC"}
        )
    except httpx.HTTPError as exc:
        raise SearchError(f"Group listing failed: {exc.__class__.__name__}") from exc
    if response.status_code not in _SEARCH_OK_STATUSES:
        raise SearchError(
            error_detail(response, "Group listing failed"), status_code=response.status_code
        )

    data = response_json_or_none(response)
    if not isinstance(data, list):
        return []

    groups: list[GroupRow] = []
    for raw in data:
        try:
            group = Group.model_validate(raw)
        except ValidationError:
            continue
        if not group.id or not group.name:
            continue
        groups.append(GroupRow(id=group.id, name=group.name, completename=group.completename))
    groups.sort(key=lambda g: (g.completename or g.name).casefold())
    return groups
