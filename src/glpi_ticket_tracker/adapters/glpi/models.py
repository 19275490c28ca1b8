from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator


class _GlpiModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class GlpiConfig(BaseModel):
    """Per-user credentials for one GLPI installation."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: str = Field(min_length=1)
    app_token: SecretStr
    user_token: SecretStr

    @field_validator("base_url")
    @classmethod
    def _strip_base_url(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("base_url must not be empty")
        return value


class SessionResponse(_GlpiModel):
    session_token: str = Field(min_length=1)


class GlpiTicket(_GlpiModel):
    id: int
    name: str | None = None
    content: str | None = None
    status: int | None = None
    priority: int | None = None
    date_creation: str | None = None
    date_mod: str | None = None
    users_id_recipient: int | None = None
    users_id_lastupdater: int | None = None


class _ItilItem(_GlpiModel):
    id: int
    content: str | None = None
    date_creation: str | None = None
    users_id: int | None = None


class Followup(_ItilItem):
    pass


class Solution(_ItilItem):
    status: int | None = None


class Task(_ItilItem):
    state: int | None = None
    is_private: int | None = None
    actiontime: int | None = None


class Validation(_GlpiModel):
    id: int
    comment_submission: str | None = None
    comment_validation: str | None = None
    date_creation: str | None = None
    date_mod: str | None = None
    users_id: int | None = None
    users_id_validate: int | None = None
    status: int | None = None


class DocumentItem(_GlpiModel):
    id: int
    documents_id: int | None = None
    date_creation: str | None = None
    users_id: int | None = None


class Document(_GlpiModel):
    id: int | None = None
    name: str | None = None
    filename: str | None = None
    date_creation: str | None = None
    users_id: int | None = None


class User(_GlpiModel):
    id: int | None = None
    name: str | None = None
    realname: str | None = None
    firstname: str | None = None


class TicketUser(_GlpiModel):
    id: int | None = None
    users_id: int | None = None
    # 1 = requester, 2 = assigned, 3 = observer
    type: int | None = None


class Group(_GlpiModel):
    id: int | None = None
    name: str | None = None
    completename: str | None = None


class SearchOption(_GlpiModel):
    uid: str | None = None
    name: str | None = None
    table: str | None = None
    field: str | None = None


class SearchResponse(_GlpiModel):
    totalcount: int = 0
    count: int | None = None
    data: list[dict[str, Any]] = Field(default_factory=list)
