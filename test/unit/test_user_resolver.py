from __future__ import annotations

import asyncio

from glpi_ticket_tracker.adapters.glpi.users import UNKNOWN_USER, UserNameResolver


class _FakeClient:
    def __init__(self, users: dict[int, object]) -> None:
        self.users = users
        self.calls: list[str] = []

    async def get_json_or_none(self, path: str, *, session_token: str, params=None):
        self.calls.append(path)
        assert session_token == "sess"
        await asyncio.sleep(0)
        return self.users.get(int(path.rsplit("/", 1)[1]))


def test_concurrent_duplicate_lookups_share_one_request() -> None:
    client = _FakeClient({7: {"firstname": "Ada", "realname": "Lovelace", "name": "ada"}})

    async def run() -> list[str]:
        resolver = UserNameResolver(client, "sess")
        return await asyncio.gather(*(resolver.resolve(7) for _ in range(5)))

    assert asyncio.run(run()) == ["Ada Lovelace"] * 5
    assert client.calls == ["User/7"]


def test_falsy_ids_resolve_without_a_request() -> None:
    client = _FakeClient({})

    async def run() -> tuple[str, str]:
        resolver = UserNameResolver(client, "sess")
        return await resolver.resolve(0), await resolver.resolve(None)

    assert asyncio.run(run()) == (UNKNOWN_USER, UNKNOWN_USER)
    assert client.calls == []


def test_login_name_is_used_without_full_name() -> None:
    client = _FakeClient({8: {"firstname": "Alan", "name": "aturing"}})

    async def run() -> str:
        return await UserNameResolver(client, "sess").resolve(8)

    assert asyncio.run(run()) == "aturing"


def test_failed_lookup_degrades_to_placeholder() -> None:
    client = _FakeClient({9: ["ERROR_ITEM_NOT_FOUND", "not found"]})

    async def run() -> tuple[str, str]:
        resolver = UserNameResolver(client, "sess")
        return await resolver.resolve(9), await resolver.resolve(10)

    assert asyncio.run(run()) == (UNKNOWN_USER, UNKNOWN_USER)


def test_resolve_many_deduplicates() -> None:
    client = _FakeClient({7: {"name": "ada"}, 8: {"name": "alan"}})

    async def run() -> dict[int, str]:
        return await UserNameResolver(client, "sess").resolve_many([7, 8, 7, 0])

    assert asyncio.run(run()) == {7: "ada", 8: "alan"}
    assert sorted(client.calls) == ["User/7", "User/8"]
