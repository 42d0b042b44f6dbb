"""DB Bridge — Configuration.

Configuration is loaded from (in order of increasing priority):
    1. Built-in defaults (this file)
    2. System config: /etc/db-bridge/config.yaml
    3. User config:   ~/.db-bridge/config.yaml
    4. ``$DATABASE_CONFIG_PATH`` and an explicit ``--config`` file
    5. Environment variables prefixed with DB_BRIDGE_

Saved connection parameter sets live under ``connections`` in the config
file and may be supplemented from the environment (see ``ConfigResolver``).
Nothing here opens a connection: saved sets are only used when a caller
explicitly asks to connect by name.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Annotated, Any, Literal, Mapping

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from db_bridge.exceptions import ValidationError
from db_bridge.logging import get_logger

log = get_logger(__name__)


# ---------------------------------------------------------------------------
# Sub-configuration blocks
# ---------------------------------------------------------------------------


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = Field(default=40100, ge=1024, le=65535)
    log_level: Literal["debug", "info", "warning", "error"] = "info"
    api_token: str | None = Field(
        default=None,
        description="When set, every HTTP request must carry it in X-DB-Bridge-Token.",
    )


class LoggingConfig(BaseModel):
    level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    format: Literal["json", "console"] = "console"
    file: Path | None = None


class DriverConfig(BaseModel):
    """Defaults applied to every driver unless a connection overrides them."""

    max_connections: Annotated[int, Field(ge=1, le=100)] = 10
    connection_timeout: Annotated[float, Field(gt=0, le=300)] = Field(
        default=5.0,
        description="Seconds to wait for the initial connection round-trip.",
    )
    idle_timeout: Annotated[float, Field(ge=0, le=3600)] = Field(
        default=30.0,
        description="Seconds an idle pooled connection is kept before release.",
    )
    query_timeout: float | None = Field(default=None, gt=0, le=3600)


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DB_BRIDGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    drivers: DriverConfig = Field(default_factory=DriverConfig)
    connections: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        description="Saved connection parameter sets keyed by connection name.",
    )

    @field_validator("connections", mode="before")
    @classmethod
    def drop_empty_connections(cls, v: object) -> object:
        if isinstance(v, dict):
            return {name: cfg for name, cfg in v.items() if cfg}
        return v

    @classmethod
    def load(cls, config_file: Path | None = None) -> "Settings":
        """Load settings from file(s) + environment variables."""
        data: dict[str, Any] = {}

        candidates = [
            Path("/etc/db-bridge/config.yaml"),
            Path.home() / ".db-bridge" / "config.yaml",
        ]
        if env_path := os.environ.get("DATABASE_CONFIG_PATH"):
            candidates.append(Path(env_path))
        if config_file:
            candidates.append(config_file)

        for path in candidates:
            if path.exists():
                import yaml  # lazy import, only needed when a file exists

                # JSON documents parse as YAML too.
                with path.open() as f:
                    loaded = yaml.safe_load(f) or {}
                _merge(data, loaded)
                log.debug("config_file_loaded", path=str(path))

        return cls(**data)


def _merge(target: dict[str, Any], source: Mapping[str, Any]) -> None:
    """Recursively merge *source* into *target* (later files win per key)."""
    for key, value in source.items():
        if isinstance(value, Mapping) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = value


# Module-level singleton, replaced by ``Settings.load()`` at startup.
_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def override_settings(settings: Settings) -> None:
    """Replace the module-level singleton. Used in tests."""
    global _settings
    _settings = settings


# ---------------------------------------------------------------------------
# Configuration resolver: saved connection parameter sets
# ---------------------------------------------------------------------------

# Single-database variables -> the "default" connection.
_DEFAULT_ENV_FIELDS: dict[str, str] = {
    "DB_TYPE": "type",
    "DB_HOST": "host",
    "DB_PORT": "port",
    "DB_NAME": "database",
    "DB_USER": "user",
    "DB_PASSWORD": "password",
}

# ``{NAME}_DB_{FIELD}`` -> connection ``name.lower()``.
_NAMED_ENV_PATTERN = re.compile(r"^([A-Z][A-Z0-9_]*?)_DB_([A-Z_]+)$")

_NAMED_ENV_FIELDS: dict[str, str] = {
    "TYPE": "type",
    "HOST": "host",
    "PORT": "port",
    "NAME": "database",
    "USER": "user",
    "PASSWORD": "password",
    "SSL": "ssl",
    "MAX_CONNECTIONS": "max_connections",
    "IDLE_TIMEOUT": "idle_timeout",
    "CONNECTION_TIMEOUT": "connection_timeout",
    "ACQUIRE_TIMEOUT": "acquire_timeout",
    "REGION": "region",
    "ACCESS_KEY_ID": "access_key_id",
    "SECRET_ACCESS_KEY": "secret_access_key",
    "ENDPOINT": "endpoint",
    "DB": "db",
}

_INT_FIELDS = frozenset({"port", "max_connections", "db"})
_BOOL_FIELDS = frozenset({"ssl"})
# Variables carry milliseconds; drivers take seconds.
_MILLIS_FIELDS = frozenset({"idle_timeout", "connection_timeout", "acquire_timeout"})

REQUIRED_PROFILE_FIELDS = ("type", "host", "database", "user", "password")


def _coerce(field: str, raw: str) -> Any:
    if field in _INT_FIELDS:
        return int(raw)
    if field in _BOOL_FIELDS:
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if field in _MILLIS_FIELDS:
        return int(raw) / 1000
    return raw


class ConfigResolver:
    """Supplies named connection parameter sets.

    Sources, in increasing priority:
        1. ``Settings.connections`` (config files / DB_BRIDGE_CONNECTIONS__*)
        2. ``DB_TYPE``, ``DB_HOST``, ... -> connection ``default``
        3. ``{NAME}_DB_{FIELD}`` variables -> connection ``name``

    The resolver is only consulted by the connect-by-name path; the
    ConnectionManager never reads it on its own.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._profiles: dict[str, dict[str, Any]] = {
            name: dict(cfg) for name, cfg in settings.connections.items()
        }
        self._load_environment(os.environ if environ is None else environ)

    def _load_environment(self, environ: Mapping[str, str]) -> None:
        default: dict[str, Any] = {}
        for var, field in _DEFAULT_ENV_FIELDS.items():
            if raw := environ.get(var):
                self._set_env_field(default, var, field, raw)
        if default:
            self._profiles["default"] = {**self._profiles.get("default", {}), **default}

        named: dict[str, dict[str, Any]] = {}
        for var, raw in environ.items():
            match = _NAMED_ENV_PATTERN.match(var)
            if match is None:
                continue
            prefix, suffix = match.groups()
            # DB_-prefixed variables never name a connection (DB_X_DB_HOST).
            if prefix == "DB" or prefix.startswith("DB_"):
                continue
            field = _NAMED_ENV_FIELDS.get(suffix)
            if field is None or not raw:
                continue
            self._set_env_field(named.setdefault(prefix.lower(), {}), var, field, raw)

        for name, cfg in named.items():
            if cfg:
                self._profiles[name] = {**self._profiles.get(name, {}), **cfg}

    @staticmethod
    def _set_env_field(target: dict[str, Any], var: str, field: str, raw: str) -> None:
        try:
            target[field] = _coerce(field, raw)
        except ValueError:
            log.warning("config_env_invalid", variable=var, field=field)

    # ------------------------------------------------------------------
    # Lookup interface
    # ------------------------------------------------------------------

    def lookup(self, name: str = "default") -> dict[str, Any] | None:
        """Return a copy of the parameter set saved as *name*, or ``None``."""
        profile = self._profiles.get(name)
        return dict(profile) if profile is not None else None

    def list_names(self) -> list[str]:
        return list(self._profiles)

    def has(self, name: str) -> bool:
        return name in self._profiles

    def set(self, name: str, params: Mapping[str, Any]) -> None:
        self._profiles[name] = dict(params)

    @staticmethod
    def validate(params: Mapping[str, Any]) -> bool:
        """Check that a saved relational profile is complete.

        Raises:
            ValidationError: Listing every missing field.
        """
        missing = [f for f in REQUIRED_PROFILE_FIELDS if not params.get(f)]
        if missing:
            raise ValidationError.missing(missing)
        return True
