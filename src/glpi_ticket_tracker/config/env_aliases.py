"""Flat environment variable names (``GLPI_BASE_URL``) mapped onto nested settings."""
from __future__ import annotations

import os
import warnings
from collections.abc import Mapping
from typing import Any

SettingsPath = tuple[str, ...]

FLAT_ENV_VARS: dict[str, SettingsPath] = {
    "SERVER_HOST": ("server", "host"),
    "SERVER_PORT": ("server", "port"),
    "GLPI_BASE_URL": ("glpi", "base_url"),
    "GLPI_APP_TOKEN": ("glpi", "app_token"),
    "GLPI_USER_TOKEN": ("glpi", "user_token"),
    "GLPI_TIMEOUT_SECONDS": ("glpi", "timeout_seconds"),
    "GLPI_VERIFY_TLS": ("glpi", "verify_tls"),
    "GLPI_TRUST_ENV": ("glpi", "trust_env"),
    "STORAGE_CONFIG_PATH": ("storage", "config_path"),
    "LOG_LEVEL": ("observability", "log_level"),
    "LOG_FORMAT": ("observability", "log_format"),
    "LOG_JSON": ("observability", "json_logs"),
    "METRICS_ENABLED": ("observability", "metrics_enabled"),
}

# Deprecated name -> canonical name. The canonical variable wins when both are set.
DEPRECATED_ENV_VARS: dict[str, str] = {
    "GLPI_URL": "GLPI_BASE_URL",
    "GLPI_API_URL": "GLPI_BASE_URL",
}


def _assign(data: dict[str, Any], path: SettingsPath, value: str) -> None:
    *parents, leaf = path
    node = data
    for part in parents:
        node = node.setdefault(part, {})
    node[leaf] = value


def deprecated_in_use(env: Mapping[str, str] | None = None) -> list[tuple[str, str]]:
    """Return ``(deprecated, canonical)`` pairs whose deprecated name is set."""
    env = os.environ if env is None else env
    return [(old, new) for old, new in DEPRECATED_ENV_VARS.items() if env.get(old)]


def flat_env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for name, path in FLAT_ENV_VARS.items():
        if value := env.get(name):
            _assign(data, path, value)

    for old, new in deprecated_in_use(env):
        if env.get(new):
            continue
        warnings.warn(
            f"Environment variable '{old}' is deprecated. Use '{new}' instead.",
            DeprecationWarning,
            stacklevel=2,
        )
        _assign(data, FLAT_ENV_VARS[new], env[old])
    return data


def get_flat_env_settings_source() -> dict[str, Any]:
    return flat_env_overrides(os.environ)
