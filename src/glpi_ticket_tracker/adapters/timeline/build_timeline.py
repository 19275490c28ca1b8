from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence

from glpi_ticket_tracker.adapters.glpi.models import (
    Document,
    DocumentItem,
    Followup,
    GlpiTicket,
    Solution,
    Task,
    Validation,
)
from glpi_ticket_tracker.adapters.glpi.subresources import file_extension
from glpi_ticket_tracker.domain.html_sanitize import sanitize_to_safe_html
from glpi_ticket_tracker.domain.ticket_models import EventType, TimelineEvent
from glpi_ticket_tracker.domain.time_utils import parse_timestamp

ResolveUser = Callable[[int | None], Awaitable[str]]
FetchDocument = Callable[[int | None], Awaitable[Document | None]]

DESCRIPTION_EVENT_ID = "desc"


async def _item_events(
    items: Sequence[Followup | Solution | Task],
    *,
    prefix: str,
    event_type: EventType,
    resolve_user: ResolveUser,
) -> list[TimelineEvent]:
    authors = await asyncio.gather(*(resolve_user(item.users_id) for item in items))
    return [
        TimelineEvent(
            id=f"{prefix}-{item.id}",
            date=item.date_creation,
            author=author,
            content=sanitize_to_safe_html(item.content),
            type=event_type,
        )
        for item, author in zip(items, authors, strict=True)
    ]


async def _validation_event(validation: Validation, resolve_user: ResolveUser) -> TimelineEvent:
    submitter, validator = await asyncio.gather(
        resolve_user(validation.users_id),
        resolve_user(validation.users_id_validate),
    )
    if validation.comment_validation:
        author = validator
        content = sanitize_to_safe_html(validation.comment_validation)
    else:
        author = submitter
        content = sanitize_to_safe_html(validation.comment_submission)
    return TimelineEvent(
        id=f"validation-{validation.id}",
        date=validation.date_mod or validation.date_creation,
        author=author,
        content=content or f"{submitter} requested approval from {validator}",
        type="validation",
    )


async def _attachment_event(
    link: DocumentItem,
    *,
    resolve_user: ResolveUser,
    fetch_document: FetchDocument,
) -> TimelineEvent | None:
    document = await fetch_document(link.documents_id)
    if document is None:
        return None
    author = await resolve_user(link.users_id or document.users_id)
    extension = file_extension(document.filename or document.name or "")
    return TimelineEvent(
        id=f"doc-{link.id}",
        date=link.date_creation or document.date_creation,
        author=author,
        content=f"Attachment {extension}",
        type="attachment",
    )


def sort_newest_first(events: list[TimelineEvent]) -> list[TimelineEvent]:
    # list.sort is stable: equal timestamps keep their category order.
    return sorted(events, key=lambda event: parse_timestamp(event.date), reverse=True)


async def build_timeline(
    ticket: GlpiTicket,
    *,
    followups: Sequence[Followup],
    solutions: Sequence[Solution],
    tasks: Sequence[Task],
    validations: Sequence[Validation],
    document_links: Sequence[DocumentItem],
    resolve_user: ResolveUser,
    fetch_document: FetchDocument,
) -> list[TimelineEvent]:
    """
    Merge a ticket's description, followups, solutions, tasks, approvals and attachments
    into one timeline, newest first.
    """
    events: list[TimelineEvent] = []

    if ticket.content:
        events.append(
            TimelineEvent(
                id=DESCRIPTION_EVENT_ID,
                date=ticket.date_creation,
                author=await resolve_user(ticket.users_id_recipient),
                content=sanitize_to_safe_html(ticket.content),
                type="comment",
            )
        )

    events.extend(
        await _item_events(
            followups, prefix="followup", event_type="comment", resolve_user=resolve_user
        )
    )
    events.extend(
        await _item_events(
            solutions, prefix="solution", event_type="solution", resolve_user=resolve_user
        )
    )
    events.extend(
        await _item_events(tasks, prefix="task", event_type="task", resolve_user=resolve_user)
    )
    events.extend(
        await asyncio.gather(*(_validation_event(v, resolve_user) for v in validations))
    )

    attachments = await asyncio.gather(
        *(
            _attachment_event(link, resolve_user=resolve_user, fetch_document=fetch_document)
            for link in document_links
        )
    )
    events.extend(event for event in attachments if event is not None)

    return sort_newest_first(events)
