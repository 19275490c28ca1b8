from __future__ import annotations

import asyncio

import httpx
import pytest
import respx

from glpi_ticket_tracker.adapters.glpi.client import (
    AsyncGlpiClient,
    normalize_base_url,
    parse_glpi_error,
)
from glpi_ticket_tracker.adapters.glpi.errors import SessionError
from glpi_ticket_tracker.adapters.glpi.models import GlpiConfig

API = "https://glpi.example/apirest.php"


def _config(base_url: str = "https://glpi.example") -> GlpiConfig:
    return GlpiConfig(base_url=base_url, app_token="app-secret", user_token="user-secret")


def _open_session_error(status_code: int, **response_kwargs) -> str:
    async def run() -> None:
        async with AsyncGlpiClient(_config()) as client:
            await client.open_session()

    with respx.mock:
        respx.get(f"{API}/initSession").mock(
            return_value=httpx.Response(status_code, **response_kwargs)
        )
        with pytest.raises(SessionError) as exc:
            asyncio.run(run())
    return str(exc.value)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("https://glpi.example", "https://glpi.example"),
        ("https://glpi.example/", "https://glpi.example"),
        ("https://glpi.example/apirest.php", "https://glpi.example"),
        (" https://glpi.example/glpi/APIREST.PHP/ ", "https://glpi.example/glpi"),
    ],
)
def test_normalize_base_url(raw: str, expected: str) -> None:
    assert normalize_base_url(raw) == expected


def test_parse_glpi_error_shapes() -> None:
    assert parse_glpi_error(["ERROR_X", "bad thing"]) == "ERROR_X: bad thing"
    assert parse_glpi_error(["ERROR_X"]) == "ERROR_X"
    assert parse_glpi_error({"0": "ERROR_Y", "1": "other"}) == "ERROR_Y: other"
    assert parse_glpi_error({"message": "nope"}) == "nope"
    assert parse_glpi_error({"error": "denied"}) == "denied"
    assert parse_glpi_error({"unrelated": 1}) == ""
    assert parse_glpi_error(None) == ""


def test_rejects_base_url_without_scheme() -> None:
    with pytest.raises(ValueError):
        AsyncGlpiClient(_config("glpi.example"))


def test_open_session_sends_credentials() -> None:
    async def run() -> str:
        async with AsyncGlpiClient(_config("https://glpi.example/apirest.php")) as client:
            return await client.open_session()

    with respx.mock:
        route = respx.get(f"{API}/initSession").mock(
            return_value=httpx.Response(200, json={"session_token": "sess-1"})
        )
        assert asyncio.run(run()) == "sess-1"
        request = route.calls.last.request
        assert request.headers["App-Token"] == "app-secret"
        assert request.headers["Authorization"] == "user_token user-secret"


def test_open_session_error_array_body() -> None:
    message = _open_session_error(
        401, json=["ERROR_GLPI_LOGIN_USER_TOKEN", "parameter user_token seems invalid"]
    )
    assert message == "ERROR_GLPI_LOGIN_USER_TOKEN: parameter user_token seems invalid"


def test_open_session_error_object_body() -> None:
    message = _open_session_error(400, json={"0": "ERROR_WRONG_APP_TOKEN", "1": "bad app"})
    assert message == "ERROR_WRONG_APP_TOKEN: bad app"


def test_open_session_error_message_body() -> None:
    assert _open_session_error(403, json={"message": "forbidden"}) == "forbidden"


def test_open_session_error_without_structured_body() -> None:
    message = _open_session_error(500, text="<html>oops</html>")
    assert message == "Failed to open session (HTTP 500)"


def test_open_session_missing_token() -> None:
    message = _open_session_error(200, json={})
    assert "session token" in message


def test_session_is_killed_even_when_the_body_fails() -> None:
    async def run() -> None:
        async with AsyncGlpiClient(_config()) as client, client.session() as token:
            assert token == "sess-1"
            raise RuntimeError("boom")

    with respx.mock:
        respx.get(f"{API}/initSession").mock(
            return_value=httpx.Response(200, json={"session_token": "sess-1"})
        )
        kill = respx.get(f"{API}/killSession").mock(return_value=httpx.Response(200, json=True))
        with pytest.raises(RuntimeError):
            asyncio.run(run())
        assert kill.called
        assert kill.calls.last.request.headers["Session-Token"] == "sess-1"


def test_kill_session_failure_is_swallowed() -> None:
    async def run() -> None:
        async with AsyncGlpiClient(_config()) as client, client.session():
            pass

    with respx.mock:
        respx.get(f"{API}/initSession").mock(
            return_value=httpx.Response(200, json={"session_token": "sess-1"})
        )
        respx.get(f"{API}/killSession").mock(side_effect=httpx.ConnectError("down"))
        asyncio.run(run())


def test_get_json_or_none_degrades() -> None:
    async def run() -> tuple[object, object, object]:
        async with AsyncGlpiClient(_config()) as client:
            ok = await client.get_json_or_none("User/7", session_token="sess")
            missing = await client.get_json_or_none("User/8", session_token="sess")
            broken = await client.get_json_or_none("User/9", session_token="sess")
            return ok, missing, broken

    with respx.mock:
        respx.get(f"{API}/User/7").mock(return_value=httpx.Response(200, json={"name": "ada"}))
        respx.get(f"{API}/User/8").mock(return_value=httpx.Response(404, json=["E", "m"]))
        respx.get(f"{API}/User/9").mock(side_effect=httpx.ReadTimeout("slow"))
        assert asyncio.run(run()) == ({"name": "ada"}, None, None)
