"""Settings loading: ``.env``, an optional YAML file, then environment overrides."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from glpi_ticket_tracker.config.settings import Settings
from glpi_ticket_tracker.config.validate import (
    ConfigValidationError,
    ConfigValidationIssue,
    issues_from_pydantic_error,
    validate_settings,
)

DEFAULT_CONFIG_PATH = Path("config/config.yaml")

_HINTS: dict[str, str] = {
    "glpi": "Set `GLPI_BASE_URL`, `GLPI_APP_TOKEN` and `GLPI_USER_TOKEN` together.",
    "glpi.base_url": "Set `GLPI_BASE_URL` (or YAML `glpi.base_url`).",
    "glpi.timeout_seconds": "Set `GLPI_TIMEOUT_SECONDS` to a positive number or leave it unset.",
    "storage.config_path": "Set `STORAGE_CONFIG_PATH` to a writable file path.",
}


def _fail(path: str, message: str) -> ConfigValidationError:
    return ConfigValidationError([ConfigValidationIssue(path=path, message=message)])


def _yaml_mapping(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise _fail(str(path), f"Unable to read config file: {exc}") from exc
    except yaml.YAMLError as exc:
        raise _fail(str(path), f"Invalid YAML: {exc}") from exc

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise _fail(str(path), "YAML root must be a mapping/object")
    return raw


def _yaml_settings(config_path: str | Path | None) -> dict[str, Any]:
    """
    Read the YAML layer. A path given as argument or via ``CONFIG_PATH`` must exist;
    the default ``config/config.yaml`` is optional.
    """
    requested = config_path if config_path is not None else os.environ.get("CONFIG_PATH")
    if requested:
        path = Path(requested)
        if not path.exists():
            raise _fail("CONFIG_PATH", f"Config file not found: {path}")
        return _yaml_mapping(path)

    if DEFAULT_CONFIG_PATH.exists():
        return _yaml_mapping(DEFAULT_CONFIG_PATH)
    return {}


def _with_hint(issue: ConfigValidationIssue) -> ConfigValidationIssue:
    hint = _HINTS.get(issue.path)
    if not hint or hint in issue.message:
        return issue
    return ConfigValidationIssue(issue.path, f"{issue.message} {hint}")


def load_settings(*, config_path: str | Path | None = None) -> Settings:
    dotenv_path = Path(".env")
    if dotenv_path.is_file():
        load_dotenv(dotenv_path=dotenv_path, override=False)

    yaml_data = _yaml_settings(config_path)
    try:
        settings = Settings(**yaml_data)
    except ValidationError as exc:
        raise ConfigValidationError(
            [_with_hint(issue) for issue in issues_from_pydantic_error(exc)]
        ) from exc

    validate_settings(settings)
    return settings
