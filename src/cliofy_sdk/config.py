"""Configuration for the Cliofy SDK.

Uses Pydantic v2 for the persisted configuration record, with
environment-derived defaults and the on-disk layout of the per-user
configuration directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    TypeAdapter,
    ValidationError as PydanticValidationError,
    field_validator,
    model_validator,
)

DEFAULT_ENDPOINT = "http://localhost:5173"
DEFAULT_TIMEOUT_MS = 30_000

CONFIG_DIR_NAME = ".cliofy"
CONFIG_FILE_NAME = "config.json"
SESSION_FILE_NAME = "session.json"
LOGS_DIR_NAME = "logs"

ENV_PREFIX = "CLIOFY_"

# Fields cleared on logout or failed refresh. endpoint/timeout/last_login survive.
TOKEN_FIELDS = (
    "id_token",
    "refresh_token",
    "token_expires_at",
    "subject_id",
    "subject_email",
)

_http_url = TypeAdapter(HttpUrl)

NonEmptyStr = Annotated[str, Field(min_length=1)]


def _validate_endpoint(value: str) -> str:
    """Check ``value`` parses as an http(s) URL and return it unchanged."""
    try:
        _http_url.validate_python(value)
    except PydanticValidationError as e:
        msg = f"endpoint must be an http(s) URL, got {value!r}"
        raise ValueError(msg) from e
    return value


class TelemetryConfig(BaseModel):
    """Logging and tracing configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    service_name: str = "cliofy-sdk"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> Self:
        """Create telemetry config from environment variables."""
        return cls(
            enabled=os.environ.get(f"{prefix}TELEMETRY", "1") not in {"0", "false", "False"},
            log_level=os.environ.get(f"{prefix}LOG_LEVEL", "INFO"),
        )


class EnvironmentDefaults(BaseModel):
    """Endpoint and timeout used when no configuration record exists."""

    model_config = ConfigDict(frozen=True)

    endpoint: str = DEFAULT_ENDPOINT
    timeout: Annotated[int, Field(gt=0)] = DEFAULT_TIMEOUT_MS

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> Self:
        """Read endpoint and timeout overrides from the environment.

        Invalid values are ignored with a warning and the built-in
        fallback is used instead.
        """
        from .telemetry import get_logger

        logger = get_logger()
        endpoint = os.environ.get(f"{prefix}ENDPOINT") or DEFAULT_ENDPOINT
        try:
            _validate_endpoint(endpoint)
        except ValueError as e:
            logger.warning("invalid_env_endpoint", value=endpoint, error=str(e))
            endpoint = DEFAULT_ENDPOINT

        timeout = DEFAULT_TIMEOUT_MS
        raw_timeout = os.environ.get(f"{prefix}TIMEOUT")
        if raw_timeout:
            try:
                timeout = int(raw_timeout)
                if timeout <= 0:
                    raise ValueError("timeout must be positive")
            except ValueError as e:
                logger.warning("invalid_env_timeout", value=raw_timeout, error=str(e))
                timeout = DEFAULT_TIMEOUT_MS

        return cls(endpoint=endpoint, timeout=timeout)


class StoredConfig(BaseModel):
    """The configuration record persisted to ``config.json``.

    Field aliases are the JSON keys on disk. Unknown keys are ignored so
    that newer files still load with older SDK versions.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    endpoint: str = DEFAULT_ENDPOINT
    timeout: Annotated[int, Field(gt=0)] = DEFAULT_TIMEOUT_MS

    id_token: NonEmptyStr | None = Field(default=None, alias="idToken")
    refresh_token: NonEmptyStr | None = Field(default=None, alias="refreshToken")
    token_expires_at: int | None = Field(default=None, alias="tokenExpiresAt")
    subject_id: NonEmptyStr | None = Field(default=None, alias="subjectId")
    subject_email: str | None = Field(default=None, alias="subjectEmail")
    last_login: str | None = Field(default=None, alias="lastLogin")

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """Validate endpoint is an http(s) URL."""
        return _validate_endpoint(v)

    @model_validator(mode="after")
    def validate_token_fields(self) -> Self:
        """Enforce the authenticated/unauthenticated pairing."""
        if (self.id_token is None) != (self.subject_id is None):
            msg = "idToken and subjectId must be both present or both absent"
            raise ValueError(msg)
        if self.token_expires_at is not None and not self.id_token:
            msg = "tokenExpiresAt requires idToken"
            raise ValueError(msg)
        return self

    @classmethod
    def defaults(cls, env: EnvironmentDefaults | None = None) -> Self:
        """Build the default record."""
        env = env or EnvironmentDefaults()
        return cls(endpoint=env.endpoint, timeout=env.timeout)

    @property
    def endpoint_str(self) -> str:
        """Get endpoint without trailing slash."""
        return self.endpoint.rstrip("/")

    @property
    def timeout_seconds(self) -> float:
        """Get timeout in seconds, as httpx expects."""
        return self.timeout / 1000

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with on-disk keys, omitting absent fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class ConfigPaths:
    """Paths inside the configuration directory."""

    config_file: Path
    session_file: Path
    logs_dir: Path

    @classmethod
    def in_dir(cls, config_dir: Path) -> "ConfigPaths":
        """Lay out the standard files under ``config_dir``."""
        return cls(
            config_file=config_dir / CONFIG_FILE_NAME,
            session_file=config_dir / SESSION_FILE_NAME,
            logs_dir=config_dir / LOGS_DIR_NAME,
        )


def default_config_dir(prefix: str = ENV_PREFIX) -> Path:
    """Get the per-user configuration directory."""
    override = os.environ.get(f"{prefix}CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / CONFIG_DIR_NAME
