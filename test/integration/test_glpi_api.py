from __future__ import annotations

import httpx
import respx
from fastapi.testclient import TestClient

from glpi_ticket_tracker.adapters.glpi.errors import SearchError, SessionError
from glpi_ticket_tracker.app.server import create_app
from glpi_ticket_tracker.app.service import GlpiService
from glpi_ticket_tracker.config.settings import Settings

API = "https://glpi.example/apirest.php"

_CREDENTIALS = {
    "base_url": "https://glpi.example",
    "app_token": "app-secret",
    "user_token": "user-secret",
}


def _client(tmp_path, service: GlpiService | None = None) -> TestClient:
    settings = Settings.from_mapping(
        {"storage": {"config_path": str(tmp_path / "glpi-config.json")}}
    )
    return TestClient(create_app(settings, service=service), raise_server_exceptions=False)


def test_config_lifecycle_never_returns_tokens(tmp_path) -> None:
    client = _client(tmp_path)

    assert client.get("/api/glpi-config").json() == {"configured": False}

    assert client.put("/api/glpi-config", json=_CREDENTIALS).json() == {"status": "ok"}
    body = client.get("/api/glpi-config").json()
    assert body["configured"] is True
    assert body["base_url"] == "https://glpi.example"
    assert body["app_token"] == "[redacted]"
    assert body["user_token"] == "[redacted]"
    assert client.get("/healthz").json()["glpi_configured"] is True

    assert client.delete("/api/glpi-config").json() == {"status": "ok"}
    assert client.get("/api/glpi-config").json() == {"configured": False}


def test_put_config_rejects_incomplete_body(tmp_path) -> None:
    client = _client(tmp_path)
    response = client.put("/api/glpi-config", json={"base_url": "https://glpi.example"})
    assert response.status_code == 422
    assert response.json()["code"] == "invalid_config"


def test_unconfigured_operations_return_409(tmp_path) -> None:
    client = _client(tmp_path)

    response = client.get("/api/glpi/tickets/1", headers={"X-Request-Id": "req-409"})
    assert response.status_code == 409
    assert response.json() == {
        "detail": "GLPI API configuration not found",
        "code": "glpi_not_configured",
        "request_id": "req-409",
    }
    assert client.get("/api/glpi/groups").status_code == 409
    assert (
        client.get(
            "/api/glpi/search", params={"date_from": "2024-01-01", "date_to": "2024-01-02"}
        ).status_code
        == 409
    )


def test_fetch_ticket_round_trip(tmp_path) -> None:
    client = _client(tmp_path)
    client.put("/api/glpi-config", json=_CREDENTIALS)

    with respx.mock:
        respx.get(f"{API}/initSession").mock(
            return_value=httpx.Response(200, json={"session_token": "sess"})
        )
        respx.get(f"{API}/killSession").mock(return_value=httpx.Response(200, json=True))
        respx.get(f"{API}/Ticket/1234").mock(
            return_value=httpx.Response(
                200,
                json={
                    "id": 1234,
                    "name": "Printer",
                    "content": "&lt;p&gt;Hello&lt;/p&gt;",
                    "status": 3,
                    "priority": 3,
                    "date_creation": "2024-01-01 09:00:00",
                    "users_id_recipient": 0,
                },
            )
        )
        for item_type in (
            "ITILFollowup",
            "ITILSolution",
            "TicketTask",
            "TicketValidation",
            "Document_Item",
            "Ticket_User",
        ):
            respx.get(f"{API}/Ticket/1234/{item_type}").mock(
                return_value=httpx.Response(200, json=[])
            )
        respx.get(f"{API}/Ticket/9999").mock(return_value=httpx.Response(404, json=[]))

        found = client.get("/api/glpi/tickets/1234")
        missing = client.get("/api/glpi/tickets/9999")

    assert found.status_code == 200
    body = found.json()
    assert body["status"] == "pending"
    assert body["priority"] == "medium"
    assert body["requester"] == "Unknown user"
    assert body["updates"] == [
        {
            "id": "desc",
            "date": "2024-01-01 09:00:00",
            "author": "Unknown user",
            "content": "<p>Hello</p>",
            "type": "comment",
        }
    ]

    assert missing.status_code == 404
    assert missing.json()["code"] == "ticket_not_found"


class _FailingService(GlpiService):
    async def search_tickets(self, group_id, date_from, date_to):
        raise SearchError("ERROR_RANGE_EXCEED_TOTAL: too far", status_code=400)

    async def list_groups(self):
        raise SessionError("ERROR_GLPI_LOGIN_USER_TOKEN: invalid")


def test_glpi_failures_map_to_502(tmp_path, config_store) -> None:
    client = _client(tmp_path, service=_FailingService(config_store))

    search = client.get(
        "/api/glpi/search",
        params={"group_id": 3, "date_from": "2024-01-01", "date_to": "2024-01-02"},
    )
    assert search.status_code == 502
    assert search.json()["code"] == "glpi_search_failed"
    assert search.json()["detail"] == "ERROR_RANGE_EXCEED_TOTAL: too far"

    groups = client.get("/api/glpi/groups")
    assert groups.status_code == 502
    assert groups.json()["code"] == "glpi_session_failed"


def test_search_validates_range(tmp_path, config_store) -> None:
    client = _client(tmp_path, service=GlpiService(config_store))

    reversed_range = client.get(
        "/api/glpi/search", params={"date_from": "2024-02-01", "date_to": "2024-01-01"}
    )
    assert reversed_range.status_code == 422
    assert reversed_range.json()["code"] == "invalid_range"

    malformed = client.get(
        "/api/glpi/search", params={"date_from": "yesterday", "date_to": "2024-01-01"}
    )
    assert malformed.status_code == 422


def test_test_connection_reports_failure_in_body(tmp_path) -> None:
    client = _client(tmp_path)
    response = client.post(
        "/api/glpi/test-connection",
        json={"base_url": "not-a-url", "app_token": "a", "user_token": "u"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["ticket_snapshot"] is None
