from __future__ import annotations

from pydantic import SecretStr

from glpi_ticket_tracker.config.redact import (
    REDACTED_VALUE,
    redact_settings_dict,
    scrub_secrets_in_text,
)
from glpi_ticket_tracker.observability.logger import _scrub_event_dict


def test_scrub_glpi_credential_headers() -> None:
    text = (
        "initSession failed: Authorization: user_token abc123 "
        "App-Token: app456 Session-Token: sess789"
    )
    out = scrub_secrets_in_text(text)
    assert "abc123" not in out
    assert "app456" not in out
    assert "sess789" not in out
    assert "initSession failed" in out


def test_scrub_bare_user_token_and_query_strings() -> None:
    assert "xyz" not in scrub_secrets_in_text("header was user_token xyz")
    assert "s3" not in scrub_secrets_in_text("GET /apirest.php/initSession?session_token=s3&x=1")


def test_redact_settings_dict_is_deep_and_non_mutating() -> None:
    data = {
        "glpi": {
            "base_url": "https://glpi.example",
            "app_token": "app",
            "user_token": "user",
            "nested": [{"session_token": "sess"}],
        },
        "other": SecretStr("hidden"),
    }
    out = redact_settings_dict(data)
    assert out["glpi"]["base_url"] == "https://glpi.example"
    assert out["glpi"]["app_token"] == REDACTED_VALUE
    assert out["glpi"]["user_token"] == REDACTED_VALUE
    assert out["glpi"]["nested"][0]["session_token"] == REDACTED_VALUE
    assert out["other"] == REDACTED_VALUE
    assert data["glpi"]["app_token"] == "app"


def test_logger_scrubs_secrets_from_event_values() -> None:
    event = {
        "event": "glpi.request_failed",
        "exception": "RuntimeError: App-Token: abc123",
        "user_token": "u",
    }
    scrubbed = _scrub_event_dict(None, "", dict(event))
    assert "abc123" not in scrubbed["exception"]
    assert scrubbed["user_token"] == REDACTED_VALUE
    assert scrubbed["event"] == "glpi.request_failed"
