"""Authenticated HTTP executor for the Cliofy SDK.

Wraps every API call with proactive token refresh before sending and a
single refresh-and-retry when the server answers 401.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from ..errors import AuthenticationFailedError, CliofyError
from ..telemetry import get_logger, trace_operation
from .errors import ErrorFactory

if TYPE_CHECKING:
    from ..credentials import CredentialState
    from .refresh import RefreshCoordinator


class AuthenticatedExecutor:
    """Executes API requests with bearer auth and bounded 401 recovery."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        credentials: CredentialState,
        coordinator: RefreshCoordinator,
        *,
        endpoint: str,
    ) -> None:
        """Initialize authenticated executor.

        Args:
            client: Async HTTP client with the endpoint as base URL.
            credentials: Source of the current bearer token.
            coordinator: Shared refresh coordinator.
            endpoint: Endpoint named in network error messages.
        """
        self._client = client
        self._credentials = credentials
        self._coordinator = coordinator
        self._endpoint = endpoint
        self._logger = get_logger()

    async def execute(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Execute an authenticated request.

        Args:
            method: HTTP method.
            url: Path relative to the endpoint.
            json: Optional JSON body.
            params: Optional query parameters.

        Returns:
            The 2xx HTTP response.

        Raises:
            NoRefreshCredentialError: Token is stale and cannot be refreshed.
            RefreshFailedError: Proactive refresh was rejected.
            AuthenticationFailedError: 401 persisted after one refresh and retry.
            RemoteRejectedError: Any other non-2xx response.
            NetworkUnreachableError: No response was received.
        """
        await self._coordinator.ensure_fresh()
        response = await self._send(method, url, 0, json=json, params=params)

        if response.status_code == 401:
            response = await self._retry_unauthorized(method, url, json=json, params=params)

        if not response.is_success:
            raise ErrorFactory.from_http_response(response)
        return response

    async def _retry_unauthorized(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        self._logger.info("unauthorized_retrying", method=method, url=url)
        try:
            await self._coordinator.ensure_fresh(force=True)
        except CliofyError as e:
            self._credentials.discard()
            raise AuthenticationFailedError(
                "Authentication failed: token refresh failed", cause=e
            ) from e

        response = await self._send(method, url, 1, **kwargs)
        if response.status_code == 401:
            self._credentials.discard()
            rejected = ErrorFactory.from_http_response(response)
            raise AuthenticationFailedError(
                cause=rejected, correlation_id=rejected.correlation_id
            )
        return response

    async def _send(
        self,
        method: str,
        url: str,
        attempt: int,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one request with the current bearer token attached."""
        headers: dict[str, str] = {}
        token = self._credentials.id_token
        if token:
            headers["Authorization"] = f"Bearer {token}"

        with trace_operation(
            "http_request",
            attributes={"http.method": method, "http.url": url, "attempt": attempt},
        ) as span:
            try:
                response = await self._client.request(method, url, headers=headers, **kwargs)
            except httpx.TransportError as e:
                self._logger.warning(
                    "request_failed", method=method, url=url, error=str(e)
                )
                raise ErrorFactory.from_exception(e, endpoint=self._endpoint) from e
            span.set_attribute("http.status_code", response.status_code)
            return response
