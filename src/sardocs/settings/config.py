"""Configuration loader for the SAR document service using Pydantic settings."""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

ENV_VAR_NAME = "SARDOCS_ENV"
DEFAULT_ENV = "local"
PROJECT_ROOT = Path(__file__).resolve().parents[3]
CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_CONFIG_FILE = CONFIG_DIR / "settings.default.toml"
LOCAL_CONFIG_FILE = CONFIG_DIR / "settings.local.toml"
SETTINGS_FILE_ENV_VAR = "SARDOCS_SETTINGS_FILE"


def _resolve_env(explicit_env: str | None = None) -> str:
    """Return the active environment name.

    Args:
        explicit_env: Environment value supplied directly by the caller.

    Returns:
        A stripped environment name, falling back to ``DEFAULT_ENV``.
    """

    env = explicit_env or os.getenv(ENV_VAR_NAME) or DEFAULT_ENV
    return env.strip()


def _env_file_candidates(env: str) -> list[Path]:
    """List candidate ``.env`` files used during settings resolution."""

    return [
        PROJECT_ROOT / ".env",
        PROJECT_ROOT / f".env.{env}",
        PROJECT_ROOT / ".env.local",
    ]


def _resolve_config_path(raw_path: str | None) -> Path | None:
    """Return an absolute config path from user input."""

    if not raw_path:
        return None
    candidate = Path(raw_path).expanduser()
    if not candidate.is_absolute():
        candidate = (PROJECT_ROOT / candidate).resolve()
    return candidate


def _config_file_priority(include_missing: bool = False) -> tuple[Path, ...]:
    """Return config files in descending precedence order."""

    ordered: list[Path] = []
    env_override = _resolve_config_path(os.getenv(SETTINGS_FILE_ENV_VAR))
    if env_override:
        ordered.append(env_override)
    ordered.append(LOCAL_CONFIG_FILE)
    ordered.append(DEFAULT_CONFIG_FILE)
    if include_missing:
        return tuple(ordered)
    return tuple(path for path in ordered if path.exists())


class TomlConfigSettingsSource(PydanticBaseSettingsSource):
    """Pydantic settings source that loads values from a TOML file."""

    def __init__(self, settings_cls: type[BaseSettings], path: Path) -> None:
        super().__init__(settings_cls)
        self.path = path
        self._data: dict[str, Any] | None = None

    def _load(self) -> dict[str, Any]:
        if self._data is not None:
            return self._data
        if not self.path.exists():
            self._data = {}
            return self._data
        try:
            with self.path.open("rb") as handle:
                self._data = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:  # pragma: no cover - invalid files surface immediately
            raise ValueError(f"Invalid TOML syntax in {self.path}") from exc
        return self._data

    def __call__(self) -> dict[str, Any]:  # pragma: no cover - trivial wrapper
        return self._load()

    def get_field_value(self, field_name: str, field):  # pragma: no cover - passthrough helper
        data = self._load()
        return data.get(field_name), field_name in data


class RuntimeSettings(BaseSettings):
    """Process-level runtime controls."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("LOG_LEVEL", "RUNTIME__LOG_LEVEL"),
    )
    debug: bool = Field(
        default=False,
        validation_alias=AliasChoices("DEBUG", "RUNTIME__DEBUG"),
    )


class APISettings(BaseSettings):
    """HTTP facade configuration."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    title: str = Field(
        default="SAR Document Service",
        validation_alias=AliasChoices("API_TITLE", "API__TITLE"),
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        validation_alias=AliasChoices("API_CORS_ORIGINS", "API__CORS_ORIGINS"),
    )
    port: int = Field(
        default=3000,
        validation_alias=AliasChoices("PORT", "API__PORT"),
    )
    rate_limit_requests: int = Field(
        default=100,
        validation_alias=AliasChoices("API_RATE_LIMIT_REQUESTS", "API__RATE_LIMIT_REQUESTS"),
    )
    rate_limit_window_seconds: int = Field(
        default=900,
        validation_alias=AliasChoices("API_RATE_LIMIT_WINDOW_SECONDS", "API__RATE_LIMIT_WINDOW_SECONDS"),
    )
    trust_forwarded_for: bool = Field(
        default=False,
        validation_alias=AliasChoices("API_TRUST_FORWARDED_FOR", "API__TRUST_FORWARDED_FOR"),
    )


class SearchSettings(BaseSettings):
    """Elasticsearch connection and query defaults for the SAR index."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    url: str = Field(
        default="http://localhost:9200",
        validation_alias=AliasChoices("ELASTICSEARCH_URL", "SEARCH__URL"),
    )
    username: str | None = Field(
        default="elastic",
        validation_alias=AliasChoices("ELASTICSEARCH_USERNAME", "SEARCH__USERNAME"),
    )
    password: str | None = Field(
        default="elastic",
        validation_alias=AliasChoices("ELASTICSEARCH_PASSWORD", "SEARCH__PASSWORD"),
    )
    index: str = Field(
        default="sar-reports",
        validation_alias=AliasChoices("ELASTICSEARCH_INDEX", "SEARCH__INDEX"),
    )
    verify_tls: bool = Field(
        default=False,
        validation_alias=AliasChoices("ELASTICSEARCH_VERIFY_TLS", "SEARCH__VERIFY_TLS"),
    )
    timeout_seconds: float = Field(
        default=10.0,
        validation_alias=AliasChoices("ELASTICSEARCH_TIMEOUT", "SEARCH__TIMEOUT_SECONDS"),
    )
    default_page_size: int = Field(
        default=10,
        validation_alias=AliasChoices("SEARCH_DEFAULT_PAGE_SIZE", "SEARCH__DEFAULT_PAGE_SIZE"),
    )
    max_page_size: int = Field(
        default=100,
        validation_alias=AliasChoices("SEARCH_MAX_PAGE_SIZE", "SEARCH__MAX_PAGE_SIZE"),
    )
    search_fields: list[str] = Field(
        default_factory=lambda: [
            "financial_institution_name",
            "suspect_name",
            "suspect_entity_name",
            "account_number",
            "address",
        ],
        validation_alias=AliasChoices("SEARCH_FIELDS", "SEARCH__SEARCH_FIELDS"),
    )


class DocumentSettings(BaseSettings):
    """Document generation inputs."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    template_path: Path = Field(
        default=PROJECT_ROOT / "sar-template.pdf",
        validation_alias=AliasChoices("SAR_TEMPLATE_PATH", "DOCUMENTS__TEMPLATE_PATH"),
    )


class ObservabilitySettings(BaseSettings):
    """Logging and metrics configuration."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    structured_logging: bool = Field(
        default=True,
        validation_alias=AliasChoices("OBS_STRUCTURED_LOGGING", "OBSERVABILITY__STRUCTURED_LOGGING"),
    )
    statsd_host: str | None = Field(
        default=None,
        validation_alias=AliasChoices("OBS_STATSD_HOST", "OBSERVABILITY__STATSD_HOST"),
    )
    statsd_port: int = Field(
        default=8125,
        validation_alias=AliasChoices("OBS_STATSD_PORT", "OBSERVABILITY__STATSD_PORT"),
    )
    statsd_prefix: str = Field(
        default="sardocs",
        validation_alias=AliasChoices("OBS_STATSD_PREFIX", "OBSERVABILITY__STATSD_PREFIX"),
    )
    service_name: str = Field(
        default="sardocs-api",
        validation_alias=AliasChoices("OBS_SERVICE_NAME", "OBSERVABILITY__SERVICE_NAME"),
    )


class Settings(BaseSettings):
    """Top-level configuration model with nested sections for each subsystem."""

    env: str = Field(
        default_factory=lambda: _resolve_env(),
        validation_alias=AliasChoices("ENV", "ENVIRONMENT", "RUNTIME__ENV"),
    )
    project_root: Path = Field(default=PROJECT_ROOT)
    runtime: RuntimeSettings = Field(default_factory=RuntimeSettings)
    api: APISettings = Field(default_factory=APISettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    documents: DocumentSettings = Field(default_factory=DocumentSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    env_files: tuple[Path, ...] = Field(default_factory=tuple, exclude=True)
    config_files: tuple[Path, ...] = Field(default_factory=tuple, exclude=True)

    model_config = SettingsConfigDict(
        env_prefix="SARDOCS_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Extend settings sources with TOML-based config files."""

        config_sources = [TomlConfigSettingsSource(settings_cls, path) for path in _config_file_priority()]
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            *config_sources,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Normalize relative paths once the model is initialised."""

        template_path = self.documents.template_path
        if not template_path.is_absolute():
            resolved = (self.project_root / template_path).resolve()
            object.__setattr__(self, "documents", self.documents.model_copy(update={"template_path": resolved}))
        return self

    @model_validator(mode="after")
    def _apply_environment_overrides(self) -> "Settings":
        """Force environment-specific defaults after basic resolution."""

        if self.env.lower() == "local":
            observability_update = {"structured_logging": False}
            object.__setattr__(self, "observability", self.observability.model_copy(update=observability_update))
        return self

    @property
    def log_level(self) -> str:
        """str: Effective logging level for the running process."""

        return self.runtime.log_level

    @property
    def debug(self) -> bool:
        """bool: True when error details may be exposed to HTTP callers."""

        return self.runtime.debug

    @property
    def is_local(self) -> bool:
        """bool: True when the active environment is ``local``."""

        return self.env.lower() == "local"


def _load_settings(env: str | None = None) -> Settings:
    """Load settings with optional environment override.

    Args:
        env: Environment name supplied programmatically.

    Returns:
        Fully parsed :class:`Settings` instance with env files applied.
    """

    resolved_env = _resolve_env(env)
    candidate_files = [path for path in _env_file_candidates(resolved_env) if path.exists()]
    config_files = _config_file_priority()
    return Settings(
        _env_file=[str(path) for path in candidate_files],
        _env_file_encoding="utf-8",
        env=resolved_env,
        env_files=tuple(candidate_files),
        config_files=config_files,
    )


@lru_cache(maxsize=1)
def get_settings(env: str | None = None) -> Settings:
    """Return cached settings for the requested environment."""

    return _load_settings(env)


def reload_settings(env: str | None = None) -> Settings:
    """Clear the cached settings and reload from disk."""

    get_settings.cache_clear()
    return get_settings(env)


__all__ = [
    "Settings",
    "get_settings",
    "reload_settings",
    "PROJECT_ROOT",
    "ENV_VAR_NAME",
]
