"""Cliofy Python SDK."""

from .auth import AuthManager
from .client import CliofyClient, get_client, reset_client
from .config import EnvironmentDefaults, StoredConfig, TelemetryConfig
from .credentials import CredentialState
from .errors import (
    AuthenticationFailedError,
    CliofyError,
    ConfigPersistError,
    ConfigurationInvalidError,
    ErrorCode,
    NetworkUnreachableError,
    NoRefreshCredentialError,
    RefreshFailedError,
    RemoteRejectedError,
    ResponseFormatError,
    ValidationError,
)
from .identity import HttpIdentityExchange, IdentityExchange
from .models import (
    AuthSession,
    AuthStatus,
    CreateTaskRequest,
    CurrentUser,
    HealthStatus,
    Task,
    TaskFilter,
    TokenGrant,
    TokenInfo,
    TokenVerification,
    UpdateProfileRequest,
    UpdateTaskRequest,
    UserProfile,
)
from .store import ConfigStore
from .telemetry import configure_telemetry

__all__ = [
    "AuthManager",
    "CliofyClient",
    "get_client",
    "reset_client",
    "EnvironmentDefaults",
    "StoredConfig",
    "TelemetryConfig",
    "CredentialState",
    "AuthenticationFailedError",
    "CliofyError",
    "ConfigPersistError",
    "ConfigurationInvalidError",
    "ErrorCode",
    "NetworkUnreachableError",
    "NoRefreshCredentialError",
    "RefreshFailedError",
    "RemoteRejectedError",
    "ResponseFormatError",
    "ValidationError",
    "HttpIdentityExchange",
    "IdentityExchange",
    "AuthSession",
    "AuthStatus",
    "CreateTaskRequest",
    "CurrentUser",
    "HealthStatus",
    "Task",
    "TaskFilter",
    "TokenGrant",
    "TokenInfo",
    "TokenVerification",
    "UpdateProfileRequest",
    "UpdateTaskRequest",
    "UserProfile",
    "ConfigStore",
    "configure_telemetry",
]

__version__ = "0.1.0"
