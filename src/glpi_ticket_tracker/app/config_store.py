"""Credential store for the GLPI connection (base URL, app token, user token)."""
from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Protocol

import structlog
from pydantic import ValidationError

from glpi_ticket_tracker.adapters.glpi.models import GlpiConfig

log = structlog.get_logger(__name__)


class GlpiConfigStore(Protocol):
    def load(self) -> GlpiConfig | None: ...

    def save(self, config: GlpiConfig) -> None: ...

    def clear(self) -> None: ...


def config_to_dict(config: GlpiConfig) -> dict[str, str]:
    return {
        "base_url": config.base_url,
        "app_token": config.app_token.get_secret_value(),
        "user_token": config.user_token.get_secret_value(),
    }


class FileConfigStore:
    """JSON file holding the current user's GLPI credentials (mode 0600, atomic replace)."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> GlpiConfig | None:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            return GlpiConfig.model_validate(json.loads(raw))
        except (ValueError, ValidationError):
            log.warning("config_store.invalid_file", path=str(self._path))
            return None

    def save(self, config: GlpiConfig) -> None:
        parent = self._path.parent
        parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps(config_to_dict(config), indent=2).encode("utf-8")

        fd, tmp_name = tempfile.mkstemp(dir=str(parent), prefix=".tmp-")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                os.fchmod(f.fileno(), 0o600)
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self._path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
