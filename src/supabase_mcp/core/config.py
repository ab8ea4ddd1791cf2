"""Configuration management for supabase-mcp.

Settings are read once at startup from the environment and an optional
``.env.local`` file, validated, and frozen. Components receive the parts
they need through their constructors.

Precedence order (highest to lowest):
1. Process environment
2. ``.env.local`` in the working directory
3. Built-in defaults
"""

from __future__ import annotations

import os
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qs, urlparse

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from supabase_mcp.core.exceptions import ConfigError

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_ENV_FILE = Path(".env.local")
DEFAULT_API_URL = "https://api.supabase.com"

DATABASE_TOOLS: tuple[str, ...] = (
    "execute-sql",
    "describe-table",
    "describe-functions",
    "get-function-definition",
    "list-tables",
    "show-constraints",
)

STORAGE_TOOLS: tuple[str, ...] = (
    "upload-file",
    "download-file",
    "delete-file",
    "move-file",
    "copy-file",
    "create-bucket",
    "delete-bucket",
    "empty-bucket",
    "list-buckets",
    "list-files",
    "get-file-info",
    "generate-signed-url",
)

ALL_TOOLS: tuple[str, ...] = DATABASE_TOOLS + STORAGE_TOOLS

_TRUTHY = {"1", "true", "yes", "on"}

_VALID_SSLMODES = {
    "disable",
    "allow",
    "prefer",
    "require",
    "verify-ca",
    "verify-full",
}


class DatabaseMode(StrEnum):
    DIRECT = "postgres"
    REMOTE = "management-api"


def parse_dsn(dsn: str) -> dict[str, Any]:
    """Supports postgresql:// and postgres:// schemes with query params."""
    parsed = urlparse(dsn)
    if parsed.scheme not in ("postgresql", "postgres"):
        msg = f"Invalid DSN scheme: '{parsed.scheme}'. Expected 'postgresql' or 'postgres'"
        raise ConfigError(msg)

    result: dict[str, Any] = {}
    if parsed.hostname:
        result["host"] = parsed.hostname
    try:
        port = parsed.port
    except ValueError as e:
        msg = f"Invalid DSN port: {e}"
        raise ConfigError(msg) from e
    if port:
        result["port"] = port
    if parsed.path and parsed.path.strip("/"):
        result["dbname"] = parsed.path.strip("/")
    if parsed.username:
        result["user"] = parsed.username
    if parsed.password:
        result["password"] = parsed.password
    query_params = parse_qs(parsed.query)
    if "sslmode" in query_params:
        result["sslmode"] = query_params["sslmode"][0]
    if "connect_timeout" in query_params:
        raw_timeout = query_params["connect_timeout"][0]
        try:
            result["connect_timeout"] = int(raw_timeout)
        except ValueError:
            msg = f"Invalid DSN connect_timeout: '{raw_timeout}'. Must be an integer"
            raise ConfigError(msg) from None
    if "application_name" in query_params:
        result["application_name"] = query_params["application_name"][0]
    return result


class DirectSettings(BaseModel):
    """Native socket connection to Postgres."""

    model_config = ConfigDict(frozen=True)

    connection_string: str
    sslmode: str = "require"
    connect_timeout: int = 10
    application_name: str = "supabase-mcp"

    @field_validator("sslmode")
    @classmethod
    def validate_sslmode(cls, v: str) -> str:
        if v not in _VALID_SSLMODES:
            msg = f"Invalid sslmode: '{v}'. Must be one of: {', '.join(sorted(_VALID_SSLMODES))}"
            raise ValueError(msg)
        return v

    def connect_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for psycopg, deferring to values set in the DSN."""
        dsn_fields = parse_dsn(self.connection_string)
        kwargs: dict[str, Any] = {}
        if "sslmode" not in dsn_fields:
            kwargs["sslmode"] = self.sslmode
        if "connect_timeout" not in dsn_fields:
            kwargs["connect_timeout"] = self.connect_timeout
        if "application_name" not in dsn_fields:
            kwargs["application_name"] = self.application_name
        return kwargs


class RemoteSettings(BaseModel):
    """HTTPS query-execution endpoint authenticated by a bearer token."""

    model_config = ConfigDict(frozen=True)

    project_ref: str
    access_token: str
    api_url: str = DEFAULT_API_URL

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class StorageSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    service_key: str

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    database_mode: DatabaseMode = DatabaseMode.DIRECT
    direct: DirectSettings | None = None
    remote: RemoteSettings | None = None
    storage: StorageSettings | None = None
    enabled_tools: tuple[str, ...] = ALL_TOOLS
    query_timeout: float = 30.0
    verbose: bool = False
    sentry_dsn: str | None = None
    sentry_environment: str = "local"

    @property
    def database_enabled(self) -> bool:
        return any(name in DATABASE_TOOLS for name in self.enabled_tools)

    @property
    def storage_enabled(self) -> bool:
        return any(name in STORAGE_TOOLS for name in self.enabled_tools)


def _read_environment(
    environ: Mapping[str, str] | None, env_file: Path | None
) -> dict[str, str]:
    values: dict[str, str] = {}
    if env_file is not None and env_file.exists():
        values.update(
            {k: v for k, v in dotenv_values(env_file).items() if v is not None}
        )
    values.update(os.environ if environ is None else environ)
    return values


def _require(env: Mapping[str, str], name: str, reason: str) -> str:
    value = env.get(name, "").strip()
    if not value:
        msg = f"{name} is required {reason}"
        raise ConfigError(msg)
    return value


def _parse_tool_list(raw: str | None) -> tuple[str, ...]:
    if raw is None or not raw.strip():
        return ALL_TOOLS
    names = tuple(dict.fromkeys(n.strip() for n in raw.split(",") if n.strip()))
    unknown = [n for n in names if n not in ALL_TOOLS]
    if unknown:
        msg = (
            f"Unknown tool(s) in SUPABASE_MCP_TOOLS: {', '.join(unknown)}. "
            f"Available: {', '.join(ALL_TOOLS)}"
        )
        raise ConfigError(msg)
    return names


def load_settings(
    environ: Mapping[str, str] | None = None,
    env_file: Path | None = DEFAULT_ENV_FILE,
) -> Settings:
    """Build Settings from environment variables.

    Raises ConfigError when a required value is missing or malformed.
    """
    env = _read_environment(environ, env_file)

    raw_mode = env.get("DATABASE_MODE", DatabaseMode.DIRECT.value).strip()
    try:
        mode = DatabaseMode(raw_mode or DatabaseMode.DIRECT.value)
    except ValueError:
        valid = ", ".join(m.value for m in DatabaseMode)
        msg = f"Invalid DATABASE_MODE: '{raw_mode}'. Must be one of: {valid}"
        raise ConfigError(msg) from None

    raw_timeout = env.get("SUPABASE_QUERY_TIMEOUT", "30")
    try:
        query_timeout = float(raw_timeout)
    except ValueError:
        msg = f"Invalid SUPABASE_QUERY_TIMEOUT value: '{raw_timeout}'. Must be a number"
        raise ConfigError(msg) from None
    if query_timeout <= 0:
        msg = f"Invalid SUPABASE_QUERY_TIMEOUT value: '{raw_timeout}'. Must be positive"
        raise ConfigError(msg)

    enabled_tools = _parse_tool_list(env.get("SUPABASE_MCP_TOOLS"))

    resolved: dict[str, Any] = {
        "database_mode": mode,
        "enabled_tools": enabled_tools,
        "query_timeout": query_timeout,
        "verbose": env.get("SUPABASE_MCP_VERBOSE", "").strip().lower() in _TRUTHY,
        "sentry_dsn": env.get("SENTRY_DSN") or None,
        "sentry_environment": env.get("SENTRY_ENVIRONMENT") or "local",
    }

    try:
        database_enabled = any(name in DATABASE_TOOLS for name in enabled_tools)
        if database_enabled and mode is DatabaseMode.DIRECT:
            dsn = _require(env, "SUPABASE_CONNECTION_STRING", "for postgres mode")
            parse_dsn(dsn)
            direct: dict[str, Any] = {"connection_string": dsn}
            if env.get("SUPABASE_SSLMODE"):
                direct["sslmode"] = env["SUPABASE_SSLMODE"]
            resolved["direct"] = DirectSettings(**direct)
        elif database_enabled:
            resolved["remote"] = RemoteSettings(
                project_ref=_require(
                    env, "SUPABASE_PROJECT_REF", "for management-api mode"
                ),
                access_token=_require(
                    env, "SUPABASE_ACCESS_TOKEN", "for management-api mode"
                ),
                api_url=env.get("SUPABASE_API_URL") or DEFAULT_API_URL,
            )

        if any(name in STORAGE_TOOLS for name in enabled_tools):
            resolved["storage"] = StorageSettings(
                url=_require(env, "SUPABASE_URL", "when storage tools are enabled"),
                service_key=_require(
                    env, "SUPABASE_SERVICE_KEY", "when storage tools are enabled"
                ),
            )

        return Settings(**resolved)
    except ValidationError as e:
        msg = f"Invalid configuration: {e}"
        raise ConfigError(msg) from e
