from __future__ import annotations

import asyncio
from typing import Protocol

from pydantic import ValidationError

from glpi_ticket_tracker.adapters.glpi.models import User
from glpi_ticket_tracker.observability import metrics

UNKNOWN_USER = "Unknown user"


class GlpiJsonClient(Protocol):
    async def get_json_or_none(self, path: str, *, session_token: str, params=None): ...


def display_name(user: User) -> str:
    if user.firstname and user.realname:
        return f"{user.firstname} {user.realname}"
    return user.name or UNKNOWN_USER


class UserNameResolver:
    """
    Memoized ``users_id -> display name`` lookup bound to one GLPI session.

    The cache holds the lookup task itself, so concurrent resolutions of the same id share
    one request. Create a new resolver per session; tokens die with the session.
    """

    def __init__(self, client: GlpiJsonClient, session_token: str) -> None:
        self._client = client
        self._session_token = session_token
        self._cache: dict[int, asyncio.Task[str]] = {}

    def resolve(self, user_id: int | None) -> asyncio.Future[str]:
        if not user_id:
            done: asyncio.Future[str] = asyncio.get_running_loop().create_future()
            done.set_result(UNKNOWN_USER)
            return done

        cached = self._cache.get(user_id)
        if cached is not None:
            return cached

        task = asyncio.ensure_future(self._lookup(user_id))
        self._cache[user_id] = task
        return task

    async def resolve_many(self, user_ids: list[int]) -> dict[int, str]:
        unique = list(dict.fromkeys(uid for uid in user_ids if uid))
        names = await asyncio.gather(*(self.resolve(uid) for uid in unique))
        return dict(zip(unique, names, strict=True))

    async def _lookup(self, user_id: int) -> str:
        data = await self._client.get_json_or_none(
            f"User/{user_id}", session_token=self._session_token
        )
        if not isinstance(data, dict):
            metrics.glpi_degraded_total.labels(resource="User").inc()
            return UNKNOWN_USER
        try:
            user = User.model_validate(data)
        except ValidationError:
            metrics.glpi_degraded_total.labels(resource="User").inc()
            return UNKNOWN_USER
        return display_name(user)
