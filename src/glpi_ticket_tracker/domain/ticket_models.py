from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

TicketStatus = Literal["new", "in-progress", "pending", "resolved", "closed"]
TicketPriority = Literal["low", "medium", "high", "urgent"]
EventType = Literal["comment", "solution", "task", "validation", "attachment"]


class _TrackerModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class TimelineEvent(_TrackerModel):
    id: str
    date: str | None = None
    author: str
    content: str
    type: EventType


class AggregatedTicket(_TrackerModel):
    id: str
    title: str
    status: TicketStatus
    priority: TicketPriority
    assignee: str
    requester: str
    created_at: str | None = None
    updated_at: str | None = None
    # Change detection belongs to the caller; the GLPI client always reports False.
    has_new_updates: bool = False
    updates: list[TimelineEvent] = Field(default_factory=list)


class SearchRow(_TrackerModel):
    id: int
    name: str
    technician: str = ""
    status: TicketStatus
    priority: TicketPriority
    date: str | None = None
    date_mod: str | None = None
    tags: str = ""


class GroupRow(_TrackerModel):
    id: int
    name: str
    completename: str | None = None


class ConnectionTestResult(_TrackerModel):
    success: bool
    message: str
    ticket_snapshot: dict[str, Any] | None = None
