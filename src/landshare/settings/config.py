"""Configuration loader for landshare services using Pydantic settings."""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

ENV_VAR_NAME = "LANDSHARE_ENV"
DEFAULT_ENV = "local"
PROJECT_ROOT = Path(__file__).resolve().parents[3]
CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_CONFIG_FILE = CONFIG_DIR / "settings.default.toml"
LOCAL_CONFIG_FILE = CONFIG_DIR / "settings.local.toml"
SETTINGS_FILE_ENV_VAR = "LANDSHARE_SETTINGS_FILE"


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


def _read_env_value(*keys: str) -> str | None:
    """Return the first present environment variable from ``keys``."""

    for key in keys:
        value = os.getenv(key)
        if value is not None:
            return value
    return None


class RuntimeSettings(BaseSettings):
    """Process-level runtime controls."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("LOG_LEVEL", "RUNTIME__LOG_LEVEL"),
    )


class APISettings(BaseSettings):
    """Admin API credentials for deployed environments."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    key: str = Field(
        default="",
        validation_alias=AliasChoices("API_KEY", "API__KEY"),
    )


class IdentitySettings(BaseSettings):
    """Operator authentication mode.

    ``mock`` also accepts the built-in development tokens and only takes effect
    in the ``local`` environment; ``api_key`` accepts the configured key alone.
    """

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    provider: Literal["mock", "api_key"] = Field(
        default="api_key",
        validation_alias=AliasChoices("IDENTITY_PROVIDER", "IDENTITY__PROVIDER"),
    )


class StorageSettings(BaseSettings):
    """Document store configuration."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    backend: Literal["memory", "firestore"] = Field(
        default="memory",
        validation_alias=AliasChoices("STORAGE_BACKEND", "STORAGE__BACKEND"),
    )
    firestore_project: str | None = Field(
        default=None,
        validation_alias=AliasChoices("FIRESTORE_PROJECT", "STORAGE__FIRESTORE__PROJECT"),
    )
    firestore_database: str | None = Field(
        default=None,
        validation_alias=AliasChoices("FIRESTORE_DATABASE", "STORAGE__FIRESTORE__DATABASE"),
    )
    seed_path: Path | None = Field(
        default=None,
        validation_alias=AliasChoices("STORAGE_SEED_PATH", "STORAGE__SEED_PATH"),
    )


class CollectionSettings(BaseSettings):
    """Names of the store collections the services read and write."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    user_profiles: str = "user_profiles"
    investments: str = "investments"
    investment_requests: str = "investment_requests"
    plot_ownership: str = "plot_ownership"
    plots: str = "plots"
    audit_log: str = "admin_audit_log"
    merge_journal: str = "user_merge_journal"


class MigrationSettings(BaseSettings):
    """Ownership backfill configuration."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    error_display_limit: int = Field(
        default=10,
        ge=1,
        validation_alias=AliasChoices("MIGRATION_ERROR_DISPLAY_LIMIT", "MIGRATION__ERROR_DISPLAY_LIMIT"),
    )
    sample_missing_limit: int = Field(
        default=10,
        ge=0,
        validation_alias=AliasChoices("MIGRATION_SAMPLE_MISSING_LIMIT", "MIGRATION__SAMPLE_MISSING_LIMIT"),
    )
    persist_reports: bool = Field(
        default=True,
        validation_alias=AliasChoices("MIGRATION_PERSIST_REPORTS", "MIGRATION__PERSIST_REPORTS"),
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
        default="landshare",
        validation_alias=AliasChoices("OBS_STATSD_PREFIX", "OBSERVABILITY__STATSD_PREFIX"),
    )
    service_name: str = Field(
        default="landshare-admin",
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
    identity: IdentitySettings = Field(default_factory=IdentitySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    collections: CollectionSettings = Field(default_factory=CollectionSettings)
    migration: MigrationSettings = Field(default_factory=MigrationSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    env_files: tuple[Path, ...] = Field(default_factory=tuple, exclude=True)
    config_files: tuple[Path, ...] = Field(default_factory=tuple, exclude=True)

    model_config = SettingsConfigDict(
        env_prefix="LANDSHARE_",
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

        seed_path = self.storage.seed_path
        if seed_path and not seed_path.is_absolute():
            resolved = (self.project_root / seed_path).resolve()
            object.__setattr__(self, "storage", self.storage.model_copy(update={"seed_path": resolved}))
        return self

    @model_validator(mode="after")
    def _apply_environment_overrides(self) -> "Settings":
        """Force environment-specific defaults after basic resolution."""

        if self.env.lower() == "local":
            identity_update = {"provider": "mock"}
            object.__setattr__(self, "identity", self.identity.model_copy(update=identity_update))
            storage_update = {"backend": "memory", "firestore_project": None, "firestore_database": None}
            object.__setattr__(self, "storage", self.storage.model_copy(update=storage_update))
            object.__setattr__(
                self, "observability", self.observability.model_copy(update={"structured_logging": False})
            )

        def _legacy_env_keys(*keys: str) -> tuple[str, ...]:
            resolved: list[str] = []
            for key in keys:
                for candidate in (f"LANDSHARE_{key}", key):
                    if candidate not in resolved:
                        resolved.append(candidate)
            return tuple(resolved)

        migration_updates: dict[str, object] = {}
        for field_name, keys, minimum in (
            ("error_display_limit", ("MIGRATION__ERROR_DISPLAY_LIMIT", "MIGRATION_ERROR_DISPLAY_LIMIT"), 1),
            ("sample_missing_limit", ("MIGRATION__SAMPLE_MISSING_LIMIT", "MIGRATION_SAMPLE_MISSING_LIMIT"), 0),
        ):
            raw_value = _read_env_value(*_legacy_env_keys(*keys))
            if raw_value is None or not raw_value.strip():
                continue
            try:
                migration_updates[field_name] = max(minimum, int(raw_value))
            except ValueError as exc:
                raise ValueError(f"{keys[0]} must be an integer") from exc

        persist_override = _read_env_value(
            *_legacy_env_keys("MIGRATION__PERSIST_REPORTS", "MIGRATION_PERSIST_REPORTS")
        )
        if persist_override is not None:
            migration_updates["persist_reports"] = persist_override.strip().lower() not in {"false", "0", "off", "no"}

        if migration_updates:
            object.__setattr__(self, "migration", self.migration.model_copy(update=migration_updates))

        return self

    @property
    def log_level(self) -> str:
        """str: Effective logging level for the running process."""

        return self.runtime.log_level

    @property
    def api_key(self) -> str:
        """str: Shared API token for the admin endpoints."""

        return self.api.key

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
