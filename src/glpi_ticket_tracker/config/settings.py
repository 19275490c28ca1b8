from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from glpi_ticket_tracker.config.env_aliases import get_flat_env_settings_source


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ServerSettings(_Section):
    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=1, le=65535)


class GlpiSettings(_Section):
    # None = no timeout (GLPI calls run to completion).
    timeout_seconds: float | None = Field(default=None, gt=0)
    verify_tls: bool = True
    # If true, httpx honours HTTP_PROXY/HTTPS_PROXY/NO_PROXY from the environment.
    trust_env: bool = False
    # Optional bootstrap credentials; copied into the credential store when it is empty.
    base_url: str | None = None
    app_token: SecretStr | None = None
    user_token: SecretStr | None = None

    @model_validator(mode="after")
    def _bootstrap_credentials_complete(self) -> GlpiSettings:
        missing = {self.base_url is None, self.app_token is None, self.user_token is None}
        if len(missing) > 1:
            raise ValueError(
                "glpi.base_url, glpi.app_token and glpi.user_token must be set together"
            )
        return self


class StorageSettings(_Section):
    # JSON credential store written by PUT /api/glpi-config.
    config_path: Path = Path("data/glpi-config.json")

    @field_validator("config_path")
    @classmethod
    def _expand_user(cls, value: Path) -> Path:
        return value.expanduser()


class ObservabilitySettings(_Section):
    log_level: str = "INFO"
    # Wins over LOG_FORMAT and json_logs when set.
    log_format: Literal["json", "human"] | None = None
    json_logs: bool = False
    metrics_enabled: bool = False

    @field_validator("log_format", mode="before")
    @classmethod
    def _normalize_log_format(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class Settings(BaseSettings):
    """
    Process settings. Precedence, highest first: nested env vars (``GLPI__BASE_URL``),
    flat env vars (``GLPI_BASE_URL``), then values passed in (the YAML file).
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        env_nested_delimiter="__",
        extra="forbid",
    )

    server: ServerSettings = Field(default_factory=ServerSettings)
    glpi: GlpiSettings = Field(default_factory=GlpiSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Settings:
        """Build settings from nested dicts only; the environment is ignored (tests)."""
        return _MappingOnlySettings(**dict(data))

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[Any, ...]:
        # load_settings copies .env into os.environ, so dotenv_settings is not consulted.
        return (env_settings, get_flat_env_settings_source, init_settings, file_secret_settings)


class _MappingOnlySettings(Settings):
    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[Any, ...]:
        return (init_settings,)
