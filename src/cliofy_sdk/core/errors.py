"""Centralized error factory for the Cliofy SDK.

Provides consistent error creation from httpx responses and exceptions.
"""

from __future__ import annotations

import uuid
from typing import Any

import httpx

from ..errors import (
    CliofyError,
    NetworkUnreachableError,
    RemoteRejectedError,
)

UNKNOWN_ERROR_MESSAGE = "Unknown error occurred"


class ErrorFactory:
    """Centralized error creation with consistent structure.

    All errors created through this factory include:
    - Standardized error codes
    - A correlation ID, taken from ``X-Request-ID`` when the server sent one
    - Consistent detail structure for logging
    """

    @staticmethod
    def generate_correlation_id() -> str:
        """Generate a unique correlation ID."""
        return str(uuid.uuid4())

    @staticmethod
    def extract_message(body: Any) -> str:
        """Best-effort error message from a response body."""
        if isinstance(body, str) and body:
            return body
        if isinstance(body, dict):
            for key in ("error", "message"):
                value = body.get(key)
                if isinstance(value, str) and value:
                    return value
        return UNKNOWN_ERROR_MESSAGE

    @staticmethod
    def extract_details(body: Any) -> str | None:
        """Best-effort error details from a response body."""
        if isinstance(body, dict):
            for key in ("details", "description"):
                value = body.get(key)
                if value:
                    return str(value)
        return None

    @staticmethod
    def from_http_response(
        response: httpx.Response,
        *,
        correlation_id: str | None = None,
    ) -> RemoteRejectedError:
        """Create SDK error from a non-2xx HTTP response.

        Args:
            response: HTTP response object.
            correlation_id: Optional correlation ID for tracing.

        Returns:
            RemoteRejectedError carrying the server status and message.
        """
        correlation_id = (
            correlation_id
            or response.headers.get("X-Request-ID")
            or ErrorFactory.generate_correlation_id()
        )

        body: Any
        try:
            body = response.json()
        except ValueError:
            body = response.text

        details: dict[str, Any] = {}
        detail = ErrorFactory.extract_details(body)
        if detail:
            details["details"] = detail

        return RemoteRejectedError(
            ErrorFactory.extract_message(body),
            status_code=response.status_code,
            correlation_id=correlation_id,
            details=details,
        )

    @staticmethod
    def from_exception(
        exc: Exception,
        *,
        endpoint: str,
        correlation_id: str | None = None,
    ) -> CliofyError:
        """Create SDK error from exception.

        Args:
            exc: Original exception.
            endpoint: Endpoint the request targeted.
            correlation_id: Optional correlation ID for tracing.

        Returns:
            Appropriate CliofyError subclass.
        """
        if isinstance(exc, CliofyError):
            if exc.correlation_id is None:
                exc.correlation_id = correlation_id
            return exc

        correlation_id = correlation_id or ErrorFactory.generate_correlation_id()

        if isinstance(exc, httpx.HTTPStatusError):
            return ErrorFactory.from_http_response(
                exc.response,
                correlation_id=correlation_id,
            )

        return NetworkUnreachableError(
            endpoint,
            correlation_id=correlation_id,
            cause=exc,
        )
