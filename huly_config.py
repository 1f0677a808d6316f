"""Configuration loading for the Huly MCP server."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator

logger = logging.getLogger(__name__)

__all__ = [
    "CONFIG_FILE_NAME",
    "ConfigError",
    "ConfigFileError",
    "ConfigValidationError",
    "HulyConfig",
    "ServerSettings",
    "load_config",
    "load_server_settings",
]

CONFIG_FILE_NAME = ".hulyrc.json"
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_HTTP_PORT = 3000
DEFAULT_HTTP_HOST = "127.0.0.1"

_ENV_NAMES = {
    "url": "HULY_URL",
    "workspace": "HULY_WORKSPACE",
    "connection_timeout_ms": "HULY_CONNECTION_TIMEOUT",
}


class ConfigError(RuntimeError):
    pass


class ConfigValidationError(ConfigError):
    """Raised when a configuration value is missing or malformed."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class ConfigFileError(ConfigError):
    """Raised when the optional config file cannot be parsed."""

    def __init__(self, message: str, *, path: str) -> None:
        super().__init__(message)
        self.path = path


def _normalize_url(value: str) -> str:
    value = value.strip()
    if not value.startswith(("http://", "https://")):
        raise ValueError("must be an http:// or https:// URL")
    return value.rstrip("/")


def _non_empty(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


class _FileConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str | None = None
    workspace: str | None = None
    connectionTimeout: int | None = Field(default=None, gt=0)

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str | None) -> str | None:
        return None if value is None else _normalize_url(value)

    @field_validator("workspace")
    @classmethod
    def _check_workspace(cls, value: str | None) -> str | None:
        return None if value is None else _non_empty(value)


class HulyConfig(BaseModel):
    """Resolved connection settings for one Huly workspace."""

    model_config = ConfigDict(frozen=True)

    url: str
    workspace: str
    email: str | None = None
    password: SecretStr | None = None
    token: SecretStr | None = None
    connection_timeout_ms: int = DEFAULT_TIMEOUT_MS

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return _normalize_url(value)

    @field_validator("workspace")
    @classmethod
    def _check_workspace(cls, value: str) -> str:
        return _non_empty(value)

    @field_validator("connection_timeout_ms")
    @classmethod
    def _check_timeout(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @property
    def timeout_seconds(self) -> float:
        return self.connection_timeout_ms / 1000.0

    @property
    def uses_token(self) -> bool:
        return self.token is not None


class ServerSettings(BaseModel):
    """Process level settings for the MCP transport."""

    transport: Literal["stdio", "http"] = "stdio"
    http_host: str = DEFAULT_HTTP_HOST
    http_port: int = Field(default=DEFAULT_HTTP_PORT, gt=0, lt=65536)
    allowed_host: str | None = None
    toolsets: frozenset[str] | None = None
    log_level: str = "INFO"


def _read_config_file(directory: Path) -> _FileConfig:
    path = directory / CONFIG_FILE_NAME
    if not path.is_file():
        return _FileConfig()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigFileError(f"Failed to read {path}: {exc}", path=str(path)) from exc
    if not isinstance(raw, dict):
        raise ConfigFileError(f"{path} must contain a JSON object", path=str(path))
    try:
        return _FileConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigFileError(f"Invalid configuration in {path}: {exc}", path=str(path)) from exc


def _env_value(env: Mapping[str, str], name: str) -> str | None:
    value = env.get(name)
    if value is None:
        return None
    value = value.strip()
    if not value:
        raise ConfigValidationError(f"Environment variable {name} must not be blank", field=name)
    return value


def load_config(
    env: Mapping[str, str] | None = None,
    *,
    directory: Path | None = None,
) -> HulyConfig:
    """Build the Huly connection config.

    Environment variables win over ``.hulyrc.json`` in ``directory`` (the
    working directory by default). Credentials are only read from the
    environment.
    """

    env = os.environ if env is None else env
    file_config = _read_config_file(directory or Path.cwd())

    url = _env_value(env, "HULY_URL") or file_config.url
    if not url:
        raise ConfigValidationError("HULY_URL must be configured", field="HULY_URL")
    workspace = _env_value(env, "HULY_WORKSPACE") or file_config.workspace
    if not workspace:
        raise ConfigValidationError("HULY_WORKSPACE must be configured", field="HULY_WORKSPACE")

    timeout_ms = file_config.connectionTimeout or DEFAULT_TIMEOUT_MS
    raw_timeout = _env_value(env, "HULY_CONNECTION_TIMEOUT")
    if raw_timeout is not None:
        try:
            timeout_ms = int(raw_timeout)
        except ValueError:
            raise ConfigValidationError(
                "HULY_CONNECTION_TIMEOUT must be an integer number of milliseconds",
                field="HULY_CONNECTION_TIMEOUT",
            ) from None

    token = _env_value(env, "HULY_TOKEN")
    email = _env_value(env, "HULY_EMAIL")
    password = _env_value(env, "HULY_PASSWORD")
    if token is None and (email is None or password is None):
        raise ConfigValidationError(
            "Either HULY_TOKEN or both HULY_EMAIL and HULY_PASSWORD must be configured",
            field="HULY_EMAIL" if email is None else "HULY_PASSWORD",
        )

    payload: dict[str, Any] = {
        "url": url,
        "workspace": workspace,
        "email": email,
        "password": password,
        "token": token,
        "connection_timeout_ms": timeout_ms,
    }
    try:
        return HulyConfig.model_validate(payload)
    except ValidationError as exc:
        error = exc.errors()[0]
        loc = str(error["loc"][0]) if error.get("loc") else ""
        field = _ENV_NAMES.get(loc, loc or None)
        raise ConfigValidationError(f"Invalid configuration for {field}: {error['msg']}", field=field) from exc


def _parse_toolsets(raw: str | None) -> frozenset[str] | None:
    if raw is None:
        return None
    names = frozenset(part.strip().lower() for part in raw.split(",") if part.strip())
    return names or None


def load_server_settings(env: Mapping[str, str] | None = None) -> ServerSettings:
    env = os.environ if env is None else env
    transport = env.get("MCP_TRANSPORT", "stdio").strip().lower() or "stdio"
    if transport not in ("stdio", "http"):
        raise ConfigValidationError("MCP_TRANSPORT must be 'stdio' or 'http'", field="MCP_TRANSPORT")

    raw_port = env.get("MCP_HTTP_PORT")
    try:
        port = int(raw_port) if raw_port else DEFAULT_HTTP_PORT
    except ValueError:
        raise ConfigValidationError("MCP_HTTP_PORT must be an integer", field="MCP_HTTP_PORT") from None

    try:
        return ServerSettings(
            transport=transport,
            http_host=env.get("MCP_HTTP_HOST") or DEFAULT_HTTP_HOST,
            http_port=port,
            allowed_host=env.get("ALLOWED_HOST") or None,
            toolsets=_parse_toolsets(env.get("TOOLSETS")),
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )
    except ValidationError as exc:
        raise ConfigValidationError(f"Invalid server settings: {exc}") from exc
