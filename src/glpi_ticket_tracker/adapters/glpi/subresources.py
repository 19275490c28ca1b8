"""Per-ticket sub-collections. Every failure here degrades to "empty", never raises."""
from __future__ import annotations

from typing import TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from glpi_ticket_tracker.adapters.glpi.models import Document, TicketUser
from glpi_ticket_tracker.adapters.glpi.users import GlpiJsonClient
from glpi_ticket_tracker.observability import metrics

log = structlog.get_logger(__name__)

_M = TypeVar("_M", bound=BaseModel)

FOLLOWUPS = "ITILFollowup"
SOLUTIONS = "ITILSolution"
TASKS = "TicketTask"
VALIDATIONS = "TicketValidation"
DOCUMENT_LINKS = "Document_Item"
TICKET_USERS = "Ticket_User"

TICKET_USER_ASSIGNED = 2


async def fetch_sub_items(
    client: GlpiJsonClient,
    session_token: str,
    ticket_id: str,
    item_type: str,
    model: type[_M],
) -> list[_M]:
    data = await client.get_json_or_none(
        f"Ticket/{ticket_id}/{item_type}", session_token=session_token
    )
    if not isinstance(data, list):
        metrics.glpi_degraded_total.labels(resource=item_type).inc()
        return []

    items: list[_M] = []
    for raw in data:
        try:
            items.append(model.model_validate(raw))
        except ValidationError:
            log.info("glpi.sub_item_skipped", item_type=item_type, ticket_id=ticket_id)
    return items


async def fetch_assignee_id(
    client: GlpiJsonClient, session_token: str, ticket_id: str
) -> int | None:
    links = await fetch_sub_items(client, session_token, ticket_id, TICKET_USERS, TicketUser)
    for link in links:
        if link.type == TICKET_USER_ASSIGNED:
            return link.users_id
    return None


async def fetch_document(
    client: GlpiJsonClient, session_token: str, document_id: int | None
) -> Document | None:
    if not document_id:
        return None
    data = await client.get_json_or_none(f"Document/{document_id}", session_token=session_token)
    if not isinstance(data, dict):
        metrics.glpi_degraded_total.labels(resource="Document").inc()
        return None
    try:
        return Document.model_validate(data)
    except ValidationError:
        metrics.glpi_degraded_total.labels(resource="Document").inc()
        return None


def file_extension(filename: str) -> str:
    dot = filename.rfind(".")
    return filename[dot:] if dot != -1 else filename
