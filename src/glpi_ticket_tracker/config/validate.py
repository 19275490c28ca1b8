"""Cross-field checks that pydantic field validation cannot express on its own."""
from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

import httpx
from pydantic import ValidationError

from glpi_ticket_tracker.config.settings import Settings

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@dataclass(frozen=True)
class ConfigValidationIssue:
    path: str
    message: str


class ConfigValidationError(ValueError):
    """All configuration problems found in one pass, one ``- path: message`` line each."""

    def __init__(self, issues: Iterable[ConfigValidationIssue]):
        self.issues = list(issues)
        details = "\n".join(f"- {issue.path}: {issue.message}" for issue in self.issues)
        super().__init__(f"Configuration is invalid:\n{details}")


def issues_from_pydantic_error(error: ValidationError) -> list[ConfigValidationIssue]:
    return [
        ConfigValidationIssue(
            path=".".join(str(part) for part in item.get("loc", ())) or "<root>",
            message=item.get("msg", "Invalid value"),
        )
        for item in error.errors(include_url=False)
    ]


def _log_level_issues(settings: Settings) -> Iterator[ConfigValidationIssue]:
    level = settings.observability.log_level
    if level.upper() not in _LOG_LEVELS:
        yield ConfigValidationIssue(
            path="observability.log_level",
            message=f"Unsupported log level {level!r} (allowed: {', '.join(_LOG_LEVELS)})",
        )


def _base_url_issues(settings: Settings) -> Iterator[ConfigValidationIssue]:
    base_url = settings.glpi.base_url
    if base_url is None:
        return
    try:
        url = httpx.URL(base_url.strip())
    except httpx.InvalidURL:
        url = None
    if url is None or url.scheme not in ("http", "https") or not url.host:
        yield ConfigValidationIssue(
            path="glpi.base_url",
            message="Must be an absolute http(s) URL, e.g. https://glpi.example",
        )


def _storage_issues(settings: Settings) -> Iterator[ConfigValidationIssue]:
    if settings.storage.config_path.is_dir():
        yield ConfigValidationIssue(
            path="storage.config_path",
            message=f"{settings.storage.config_path} is a directory, expected a file path",
        )


def validate_settings(settings: Settings) -> None:
    issues = [
        *_log_level_issues(settings),
        *_base_url_issues(settings),
        *_storage_issues(settings),
    ]
    if issues:
        raise ConfigValidationError(issues)
