"""Single-flight token refresh.

When several requests discover a stale token at the same time, exactly
one call reaches the identity exchange and every caller awaits that
call's outcome.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from ..errors import NoRefreshCredentialError, RefreshFailedError, ResponseFormatError
from ..telemetry import get_logger, trace_operation

if TYPE_CHECKING:
    from ..credentials import CredentialState
    from ..identity import IdentityExchange


class RefreshCoordinator:
    """Coalesces concurrent refresh requests into one exchange call."""

    def __init__(
        self,
        credentials: CredentialState,
        identity: IdentityExchange,
    ) -> None:
        self._credentials = credentials
        self._identity = identity
        self._inflight: asyncio.Task[None] | None = None
        self._logger = get_logger()

    @property
    def in_flight(self) -> bool:
        """Whether a refresh call is currently outstanding."""
        return self._inflight is not None

    async def ensure_fresh(self, *, force: bool = False) -> None:
        """Make sure the stored token is fresh, refreshing at most once.

        Args:
            force: Refresh even if the stored expiry says the token is
                still valid. Used after the server rejected the token.

        Raises:
            NoRefreshCredentialError: If a refresh is needed but no
                refresh token is stored.
            RefreshFailedError: If the exchange failed. Token state has
                been cleared.
        """
        # No await between the marker check and setting it.
        if self._inflight is None:
            if not force and not self._credentials.needs_refresh():
                return
            refresh_token = self._credentials.refresh_token
            if not refresh_token:
                raise NoRefreshCredentialError()
            self._inflight = asyncio.ensure_future(self._refresh(refresh_token))
            # Mark the outcome retrieved even if every waiter was cancelled.
            self._inflight.add_done_callback(lambda t: t.cancelled() or t.exception())

        # A cancelled waiter must not cancel the refresh other callers share.
        await asyncio.shield(self._inflight)

    async def _refresh(self, refresh_token: str) -> None:
        try:
            with trace_operation("refresh_token"):
                try:
                    grant = await self._identity.refresh(refresh_token)
                    expires_in = grant.lifetime_seconds()
                    subject_id = grant.subject_id or self._credentials.subject_id
                    if not subject_id:
                        raise ResponseFormatError("Token grant has no subject")
                    self._credentials.apply_new_tokens(
                        grant.id_token,
                        grant.refresh_token,
                        expires_in,
                        subject_id,
                        grant.subject_email or self._credentials.subject_email,
                    )
                except Exception as e:
                    self._logger.warning("token_refresh_failed", error=str(e))
                    self._credentials.discard()
                    raise RefreshFailedError(cause=e) from e
            self._logger.info("token_refreshed", expires_in=expires_in)
        finally:
            self._inflight = None
