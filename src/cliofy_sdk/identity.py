"""Identity exchange: turns credentials into token material.

The SDK treats the identity provider as a black box reached over HTTP.
Anything satisfying ``IdentityExchange`` can be passed to the client in
its place.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
from pydantic import ValidationError as PydanticValidationError

from .core.errors import UNKNOWN_ERROR_MESSAGE, ErrorFactory
from .errors import AuthenticationFailedError, ResponseFormatError
from .models import TokenGrant
from .telemetry import get_logger, trace_operation

EXCHANGE_PATH = "/auth/exchange"
LOGIN_PATH = "/auth/login"
REGISTER_PATH = "/auth/register"


class IdentityExchange(Protocol):
    """Protocol for identity providers."""

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """Exchange a refresh credential for new token material."""
        ...

    async def sign_in(self, email: str, password: str) -> TokenGrant:
        """Exchange email and password for token material."""
        ...

    async def register(self, email: str, password: str) -> TokenGrant:
        """Create an account and return its token material."""
        ...


class HttpIdentityExchange:
    """Identity exchange backed by the Cliofy ``auth/*`` endpoints."""

    def __init__(self, http: httpx.AsyncClient) -> None:
        """Initialize identity exchange.

        Args:
            http: Client whose base URL is the Cliofy endpoint. No bearer
                header is attached to identity calls.
        """
        self._http = http
        self._logger = get_logger()

    @property
    def endpoint(self) -> str:
        return str(self._http.base_url).rstrip("/")

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """Exchange a refresh credential for new token material.

        Raises:
            RemoteRejectedError: On a non-2xx response.
            ResponseFormatError: If the body is not a token grant.
            NetworkUnreachableError: If no response was received.
        """
        response = await self._post(EXCHANGE_PATH, {"refreshToken": refresh_token})
        if not response.is_success:
            raise ErrorFactory.from_http_response(response)
        return self._parse_grant(response)

    async def sign_in(self, email: str, password: str) -> TokenGrant:
        """Exchange email and password for token material.

        Raises:
            AuthenticationFailedError: If the credentials were rejected.
            ResponseFormatError: If the body lacks a subject id.
        """
        with trace_operation("sign_in"):
            return await self._credential_grant(
                LOGIN_PATH, email, password, "Invalid email or password"
            )

    async def register(self, email: str, password: str) -> TokenGrant:
        """Create an account and return its token material."""
        with trace_operation("register"):
            return await self._credential_grant(
                REGISTER_PATH, email, password, "Registration failed"
            )

    async def _credential_grant(
        self,
        path: str,
        email: str,
        password: str,
        rejected_message: str,
    ) -> TokenGrant:
        response = await self._post(path, {"email": email, "password": password})
        if response.status_code in (400, 401, 409):
            rejected = ErrorFactory.from_http_response(response)
            message = (
                rejected.message
                if rejected.message != UNKNOWN_ERROR_MESSAGE
                else rejected_message
            )
            self._logger.warning("credentials_rejected", path=path, status=response.status_code)
            raise AuthenticationFailedError(message, cause=rejected)
        if not response.is_success:
            raise ErrorFactory.from_http_response(response)

        grant = self._parse_grant(response)
        if not grant.subject_id:
            raise ResponseFormatError("Token grant is missing subjectId")
        return grant

    async def _post(self, path: str, body: dict[str, Any]) -> httpx.Response:
        try:
            return await self._http.post(path, json=body)
        except httpx.HTTPError as e:
            raise ErrorFactory.from_exception(e, endpoint=self.endpoint) from e

    @staticmethod
    def _parse_grant(response: httpx.Response) -> TokenGrant:
        try:
            return TokenGrant.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise ResponseFormatError("Malformed token grant", cause=e) from e
