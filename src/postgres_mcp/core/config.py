"""Configuration management for postgres-mcp.

Resolves the connection string and pool sizing from CLI flags and
environment variables.

Precedence order (highest to lowest):
1. CLI flags (--dsn, --pool-min-size, --pool-max-size)
2. DATABASE_URL
3. POSTGRES_URL
4. POSTGRES_MCP_POOL_* environment variables (pool sizing only)
5. Built-in defaults
"""

from __future__ import annotations

import os
from typing import Any
from urllib.parse import parse_qs, urlparse

import psycopg
from psycopg.conninfo import conninfo_to_dict, make_conninfo
from pydantic import BaseModel, computed_field, field_validator, model_validator

from postgres_mcp.core.exceptions import ConfigError

# First non-empty variable wins.
DSN_ENV_VARS: tuple[str, ...] = ("DATABASE_URL", "POSTGRES_URL")

_POOL_ENV_VARS: dict[str, str] = {
    "POSTGRES_MCP_POOL_MIN_SIZE": "pool_min_size",
    "POSTGRES_MCP_POOL_MAX_SIZE": "pool_max_size",
    "POSTGRES_MCP_POOL_TIMEOUT": "pool_timeout",
}

_DEFAULTS: dict[str, Any] = {
    "pool_min_size": 1,
    "pool_max_size": 10,
    "pool_timeout": 30.0,
    "application_name": "postgres-mcp",
}


def parse_dsn(dsn: str) -> dict[str, Any]:
    """Supports postgresql:// and postgres:// URLs as well as key=value strings."""
    if "://" in dsn:
        return _parse_url(dsn)

    try:
        params = conninfo_to_dict(dsn)
    except psycopg.ProgrammingError as e:
        msg = f"Invalid connection string: {e}"
        raise ConfigError(msg) from e
    if not params:
        msg = "Invalid connection string: no connection parameters found"
        raise ConfigError(msg)
    if "port" in params:
        params["port"] = _int_param("port", params["port"])
    if "connect_timeout" in params:
        params["connect_timeout"] = _int_param(
            "connect_timeout", params["connect_timeout"]
        )
    return dict(params)


def _parse_url(dsn: str) -> dict[str, Any]:
    parsed = urlparse(dsn)
    if parsed.scheme not in ("postgresql", "postgres"):
        msg = f"Invalid DSN scheme: '{parsed.scheme}'. Expected 'postgresql' or 'postgres'"
        raise ConfigError(msg)

    result: dict[str, Any] = {}
    try:
        port = parsed.port
    except ValueError as e:
        msg = f"Invalid DSN port: {e}"
        raise ConfigError(msg) from e
    if parsed.hostname:
        result["host"] = parsed.hostname
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
        result["connect_timeout"] = _int_param(
            "connect_timeout", query_params["connect_timeout"][0]
        )
    if "application_name" in query_params:
        result["application_name"] = query_params["application_name"][0]
    return result


def _int_param(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        msg = f"Invalid {name} value: '{value}'. Must be an integer"
        raise ConfigError(msg) from None


class ServerConfig(BaseModel):
    dsn: str
    pool_min_size: int = 1
    pool_max_size: int = 10
    pool_timeout: float = 30.0
    application_name: str = "postgres-mcp"
    sources: dict[str, str] = {}

    @field_validator("dsn")
    @classmethod
    def validate_dsn(cls, v: str) -> str:
        parse_dsn(v)
        return v

    @field_validator("pool_min_size", "pool_max_size")
    @classmethod
    def validate_pool_size(cls, v: int) -> int:
        if v < 1:
            msg = f"Invalid pool size: {v}. Must be at least 1"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def validate_pool_bounds(self) -> ServerConfig:
        if self.pool_min_size > self.pool_max_size:
            msg = (
                f"pool_min_size ({self.pool_min_size}) exceeds "
                f"pool_max_size ({self.pool_max_size})"
            )
            raise ValueError(msg)
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def redacted_dsn(self) -> str:
        params = parse_dsn(self.dsn)
        if "password" in params:
            params["password"] = "****"  # pragma: allowlist secret
        return make_conninfo(**{k: str(v) for k, v in params.items()})

    def connection_kwargs(self) -> dict[str, Any]:
        """Per-connection keyword arguments for the pool.

        application_name is only applied when the DSN does not set one.
        """
        kwargs: dict[str, Any] = {"autocommit": True}
        if "application_name" not in parse_dsn(self.dsn):
            kwargs["application_name"] = self.application_name
        return kwargs


def dsn_from_env(env: dict[str, str] | None = None) -> tuple[str, str] | None:
    """Return (dsn, variable name) for the first non-empty DSN variable."""
    environ = os.environ if env is None else env
    for name in DSN_ENV_VARS:
        value = environ.get(name, "").strip()
        if value:
            return value, name
    return None


def resolve_config(
    dsn: str | None = None,
    env: dict[str, str] | None = None,
    **cli_overrides: Any,
) -> ServerConfig:
    """Resolve configuration using precedence chain.

    CLI > DATABASE_URL > POSTGRES_URL > pool env vars > built-in defaults.
    Raises ConfigError when no connection string is available or any
    value is invalid.
    """
    environ = os.environ if env is None else env
    sources: dict[str, str] = {}
    resolved: dict[str, Any] = dict(_DEFAULTS)
    for key in resolved:
        sources[key] = "default"

    for env_var, field_name in _POOL_ENV_VARS.items():
        value = environ.get(env_var)
        if value is None or value == "":
            continue
        try:
            resolved[field_name] = (
                float(value) if field_name == "pool_timeout" else int(value)
            )
        except ValueError:
            msg = f"Invalid {env_var} value: '{value}'. Must be a number"
            raise ConfigError(msg) from None
        sources[field_name] = f"env: {env_var}"

    if dsn:
        resolved["dsn"] = dsn
        sources["dsn"] = "cli: --dsn"
    else:
        found = dsn_from_env(environ)
        if found is None:
            names = " or ".join(DSN_ENV_VARS)
            msg = f"{names} environment variable must be set"
            raise ConfigError(msg)
        resolved["dsn"], env_name = found
        sources["dsn"] = f"env: {env_name}"

    cli_to_field = {
        "pool_min_size": "pool_min_size",
        "pool_max_size": "pool_max_size",
        "pool_timeout": "pool_timeout",
        "application_name": "application_name",
    }
    for cli_name, field_name in cli_to_field.items():
        value = cli_overrides.get(cli_name)
        if value is not None:
            resolved[field_name] = value
            sources[field_name] = f"cli: --{cli_name.replace('_', '-')}"

    resolved["sources"] = sources
    try:
        return ServerConfig(**resolved)
    except ConfigError:
        raise
    except ValueError as e:
        msg = f"Invalid configuration: {e}"
        raise ConfigError(msg) from e
