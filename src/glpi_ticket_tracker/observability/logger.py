from __future__ import annotations

import logging
import os
import sys
from typing import Any, Literal

import structlog
from structlog.stdlib import ProcessorFormatter

from glpi_ticket_tracker.config.redact import redact_settings_dict

LogFormat = Literal["json", "human"]

# httpx/httpcore log every request line (URLs and query strings included) at INFO/DEBUG.
_QUIET_LOGGERS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def _scrub_event_dict(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    return redact_settings_dict(event_dict)


def _drop_color_message(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    # uvicorn duplicates its message with ANSI colour codes under this key.
    event_dict.pop("color_message", None)
    return event_dict


def _as_format(value: str | None) -> LogFormat | None:
    normalized = (value or "").strip().lower()
    if normalized == "json":
        return "json"
    if normalized == "human":
        return "human"
    return None


def _pick_format(explicit: str | None, json_logs: bool) -> LogFormat:
    """Explicit setting, then LOG_FORMAT, then the ``json_logs`` flag."""
    return (
        _as_format(explicit)
        or _as_format(os.environ.get("LOG_FORMAT"))
        or ("json" if json_logs else "human")
    )


def _shared_processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _drop_color_message,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _scrub_event_dict,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def configure_logging(
    *,
    log_level: str = "INFO",
    json_logs: bool = False,
    log_format: str | None = None,
) -> None:
    """
    Route structlog and stdlib records through one redacting stdout handler.

    ``LOG_LEVEL`` in the environment overrides ``log_level``. An explicit ``log_format``
    wins over ``LOG_FORMAT``, which wins over ``json_logs``.
    """
    level = ((os.environ.get("LOG_LEVEL") or "").strip() or log_level).upper()
    shared = _shared_processors()

    renderer: Any = (
        structlog.processors.JSONRenderer()
        if _pick_format(log_format, json_logs) == "json"
        else structlog.dev.ConsoleRenderer()
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ProcessorFormatter(processor=renderer, foreign_pre_chain=shared))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name in _UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = []
        uvicorn_logger.propagate = True
    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    structlog.configure(
        processors=[*shared, ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
