"""Error classes for the Cliofy SDK.

Every failure the SDK surfaces is a ``CliofyError`` subclass carrying a
stable error code, so presentation code can render a message and choose
an exit code without inspecting exception types from httpx or pydantic.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standardized error codes for the Cliofy SDK."""

    # Authentication errors (1xxx)
    NO_REFRESH_CREDENTIAL = "AUTH_1001"
    REFRESH_FAILED = "AUTH_1002"
    AUTHENTICATION_FAILED = "AUTH_1003"

    # Configuration errors (2xxx)
    CONFIG_INVALID = "CFG_2001"
    CONFIG_PERSIST_FAILED = "CFG_2002"
    CONFIG_LOAD_CORRUPTED = "CFG_2003"

    # Network errors (3xxx)
    NETWORK_UNREACHABLE = "NET_3001"

    # Input validation (4xxx)
    VALIDATION_ERROR = "VAL_4001"

    # Remote API errors (5xxx)
    REMOTE_REJECTED = "API_5001"
    RESPONSE_FORMAT = "API_5002"


class CliofyError(Exception):
    """Base error for the Cliofy SDK with structured error information."""

    def __init__(
        self,
        message: str,
        code: ErrorCode | str,
        *,
        status_code: int | None = None,
        correlation_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.status_code = status_code
        self.correlation_id = correlation_id
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error": self.message,
            "code": self.code,
            "status_code": self.status_code,
            "correlation_id": self.correlation_id,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class ConfigurationInvalidError(CliofyError):
    """Configuration record failed schema validation on save."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.CONFIG_INVALID,
            details={"field": field} if field else None,
        )
        self.field = field


class ConfigPersistError(CliofyError):
    """Configuration record could not be written to disk."""

    def __init__(
        self,
        message: str = "Failed to save configuration",
        *,
        path: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
        super().__init__(message, ErrorCode.CONFIG_PERSIST_FAILED, details=details)
        self.__cause__ = cause


class NoRefreshCredentialError(CliofyError):
    """Token needs a refresh but no refresh credential is stored."""

    def __init__(self, message: str = "No refresh token available") -> None:
        super().__init__(
            message,
            ErrorCode.NO_REFRESH_CREDENTIAL,
            status_code=401,
        )


class RefreshFailedError(CliofyError):
    """The identity exchange rejected the refresh credential."""

    def __init__(
        self,
        message: str = "Token refresh failed",
        *,
        cause: Exception | None = None,
        correlation_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.REFRESH_FAILED,
            status_code=401,
            correlation_id=correlation_id,
            details={"cause": str(cause)} if cause else None,
        )
        self.__cause__ = cause


class AuthenticationFailedError(CliofyError):
    """Request was rejected as unauthenticated after the one permitted retry."""

    def __init__(
        self,
        message: str = "Authentication failed",
        *,
        cause: Exception | None = None,
        correlation_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.AUTHENTICATION_FAILED,
            status_code=401,
            correlation_id=correlation_id,
            details={"cause": str(cause)} if cause else None,
        )
        self.__cause__ = cause


class ValidationError(CliofyError):
    """Caller input failed validation before any request was made."""

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details,
        )


class NetworkUnreachableError(CliofyError):
    """No response was received from the endpoint."""

    def __init__(
        self,
        endpoint: str,
        *,
        correlation_id: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            f"Network error: Could not connect to {endpoint}",
            ErrorCode.NETWORK_UNREACHABLE,
            correlation_id=correlation_id,
            details={"endpoint": endpoint, "cause": str(cause)}
            if cause
            else {"endpoint": endpoint},
        )
        self.endpoint = endpoint
        self.__cause__ = cause


class RemoteRejectedError(CliofyError):
    """The server answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        correlation_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.REMOTE_REJECTED,
            status_code=status_code,
            correlation_id=correlation_id,
            details=details,
        )


class ResponseFormatError(CliofyError):
    """The server answered 2xx but the body did not match the expected shape."""

    def __init__(
        self,
        message: str = "Invalid response format",
        *,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.RESPONSE_FORMAT,
            details={"cause": str(cause)} if cause else None,
        )
        self.__cause__ = cause
