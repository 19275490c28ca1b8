"""Secret redaction for config dumps, API responses and log events."""
from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import SecretStr

REDACTED_VALUE = "[redacted]"

# Keys whose values are always hidden, compared case-insensitively.
_SENSITIVE_KEYS = frozenset(
    {
        "app_token",
        "user_token",
        "session_token",
        "app-token",
        "session-token",
        "glpi_app_token",
        "glpi_user_token",
    }
)
_SENSITIVE_KEY_PARTS = ("token", "secret", "password", "authorization", "apikey", "api_key")

_Substitution = tuple[re.Pattern[str], Callable[[re.Match[str]], str]]

# Applied in order; each pattern leaves already-redacted text alone.
_TEXT_SUBSTITUTIONS: tuple[_Substitution, ...] = (
    # Authorization: user_token <token> (GLPI initSession), or Bearer/Basic schemes.
    (
        re.compile(r"(?i)\b(authorization)\s*[:=]\s*(user_token|token|bearer|basic)\s+([^\s,;]+)"),
        lambda m: f"{m.group(1)}: {m.group(2)} {REDACTED_VALUE}",
    ),
    # A bare "user_token <token>" outside an Authorization header.
    (
        re.compile(r"(?i)\buser_token\s+(?!\[redacted\])([^\s,;\"']+)"),
        lambda m: f"user_token {REDACTED_VALUE}",
    ),
    # App-Token / Session-Token request headers.
    (
        re.compile(r"(?i)\b(app-token|session-token)\s*[:=]\s*(?!\[redacted\])([^\s,;]+)"),
        lambda m: f"{m.group(1)}: {REDACTED_VALUE}",
    ),
    # key=value and key: value pairs, query strings included.
    (
        re.compile(
            r"(?i)\b((?:app|user|session|access)[_-]?token|token|secret|password|passwd)"
            r"\s*[:=]\s*(?!\[redacted\])([^\s,;&]+)"
        ),
        lambda m: f"{m.group(1)}={REDACTED_VALUE}",
    ),
)


def scrub_secrets_in_text(text: str) -> str:
    """Best-effort removal of GLPI credentials from free-form text (exception strings)."""
    for pattern, replace in _TEXT_SUBSTITUTIONS:
        if not text:
            break
        text = pattern.sub(replace, text)
    return text


def _is_sensitive_key(key: str) -> bool:
    lowered = key.strip().lower()
    return lowered in _SENSITIVE_KEYS or any(part in lowered for part in _SENSITIVE_KEY_PARTS)


def _redact(value: Any) -> Any:
    if isinstance(value, SecretStr):
        return REDACTED_VALUE
    if isinstance(value, str):
        return scrub_secrets_in_text(value)
    if isinstance(value, Mapping):
        return redact_settings_dict(value)
    if isinstance(value, (list, tuple)):
        return type(value)(_redact(item) for item in value)
    return value


def redact_settings_dict(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Deep copy of ``data`` with secrets hidden; the input is not mutated.

    Values under sensitive keys and every ``SecretStr`` become ``REDACTED_VALUE``;
    other strings are passed through :func:`scrub_secrets_in_text`.
    """
    return {
        str(key): REDACTED_VALUE if _is_sensitive_key(str(key)) else _redact(value)
        for key, value in data.items()
    }
