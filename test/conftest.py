from __future__ import annotations

import os
import socket
import sys
from pathlib import Path

import pytest

_ENV_KEYS = (
    "CONFIG_PATH",
    "SERVER_HOST",
    "SERVER_PORT",
    "GLPI_BASE_URL",
    "GLPI_URL",
    "GLPI_API_URL",
    "GLPI_APP_TOKEN",
    "GLPI_USER_TOKEN",
    "GLPI_TIMEOUT_SECONDS",
    "GLPI_VERIFY_TLS",
    "GLPI_TRUST_ENV",
    "STORAGE_CONFIG_PATH",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_JSON",
    "METRICS_ENABLED",
)

GLPI_BASE_URL = "https://glpi.example"
GLPI_API = f"{GLPI_BASE_URL}/apirest.php"


def pytest_configure() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    src_path = repo_root / "src"
    sys.path.insert(0, str(src_path))


@pytest.fixture(autouse=True)
def _disable_network(monkeypatch: pytest.MonkeyPatch) -> None:
    """
    Prevent accidental real network calls in unit/integration tests.

    Respx mocks should still work because they intercept at the HTTP client layer.
    """
    if (os.environ.get("ALLOW_NETWORK_TESTS") or "").strip().lower() in {"1", "true", "yes"}:
        return

    def _blocked(*_args: object, **_kwargs: object) -> None:
        raise RuntimeError(
            "Network access is disabled in tests (set ALLOW_NETWORK_TESTS=1 to override)."
        )

    monkeypatch.setattr(socket, "create_connection", _blocked)
    monkeypatch.setattr(socket.socket, "connect", _blocked, raising=True)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Run in an empty directory with no tracker-related environment variables set."""
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def glpi_config():
    from glpi_ticket_tracker.adapters.glpi.models import GlpiConfig

    return GlpiConfig(base_url=GLPI_BASE_URL, app_token="app-secret", user_token="user-secret")


@pytest.fixture
def config_store(tmp_path: Path, glpi_config):
    from glpi_ticket_tracker.app.config_store import FileConfigStore

    store = FileConfigStore(tmp_path / "glpi-config.json")
    store.save(glpi_config)
    return store


@pytest.fixture
def service(config_store):
    from glpi_ticket_tracker.app.service import GlpiService

    return GlpiService(config_store)
