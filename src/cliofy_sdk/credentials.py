"""Credential and token state derived from the configuration store."""

from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Callable

from .config import TOKEN_FIELDS
from .errors import ConfigPersistError
from .models import AuthStatus, TokenInfo
from .telemetry import get_logger

if TYPE_CHECKING:
    from .store import ConfigStore

# Refresh when the token expires in less than 5 minutes.
REFRESH_BUFFER_MS = 5 * 60 * 1000


def _now_ms() -> int:
    return int(time.time() * 1000)


class CredentialState:
    """Read-mostly view of the token fields held by a ``ConfigStore``.

    Holds no copy of the record: every predicate reads the store's
    current record, and every mutation goes through the store.
    """

    def __init__(
        self,
        store: ConfigStore,
        *,
        clock: Callable[[], int] | None = None,
    ) -> None:
        """Initialize credential state.

        Args:
            store: Store owning the configuration record.
            clock: Returns the current time in epoch milliseconds.
        """
        self._store = store
        self._clock = clock or _now_ms
        self._logger = get_logger()

    def now_ms(self) -> int:
        """Current time according to this state's clock."""
        return self._clock()

    @property
    def id_token(self) -> str | None:
        return self._store.config.id_token

    @property
    def refresh_token(self) -> str | None:
        return self._store.config.refresh_token

    @property
    def subject_id(self) -> str | None:
        return self._store.config.subject_id

    @property
    def subject_email(self) -> str | None:
        return self._store.config.subject_email

    @property
    def expires_at(self) -> int | None:
        return self._store.config.token_expires_at

    @property
    def last_login(self) -> str | None:
        return self._store.config.last_login

    def is_authenticated(self) -> bool:
        """Check whether a token and subject are both stored."""
        config = self._store.config
        return bool(config.id_token and config.subject_id)

    def needs_refresh(self, now_ms: int | None = None) -> bool:
        """Check whether the token is within the refresh buffer of expiry.

        A token with no known expiry is treated as fresh.
        """
        expires_at = self._store.config.token_expires_at
        if expires_at is None:
            return False
        now = self._clock() if now_ms is None else now_ms
        return now >= expires_at - REFRESH_BUFFER_MS

    def is_expired(self, now_ms: int | None = None) -> bool:
        """Check whether the token is past its expiry."""
        expires_at = self._store.config.token_expires_at
        if expires_at is None:
            return False
        now = self._clock() if now_ms is None else now_ms
        return now >= expires_at

    def clear(self) -> None:
        """Remove all token fields, keeping endpoint and timeout.

        Raises:
            ConfigPersistError: If the file cannot be written. The token
                fields are gone from memory regardless.
        """
        self._store.remove(*TOKEN_FIELDS)
        self._logger.info("credentials_cleared")

    def discard(self) -> None:
        """Clear token fields after a failure, logging a failed write instead of raising."""
        try:
            self.clear()
        except ConfigPersistError as e:
            self._logger.error("credentials_clear_failed", code=e.code, error=str(e))

    def apply_new_tokens(
        self,
        id_token: str,
        refresh_token: str,
        expires_in: int,
        subject_id: str,
        subject_email: str | None = None,
    ) -> None:
        """Persist freshly issued token material.

        Args:
            id_token: Bearer token.
            refresh_token: Refresh credential.
            expires_in: Token lifetime in seconds.
            subject_id: Authenticated principal.
            subject_email: Principal's email, if known.
        """
        now = self._clock()
        self._store.update(
            id_token=id_token,
            refresh_token=refresh_token,
            token_expires_at=now + expires_in * 1000,
            subject_id=subject_id,
            subject_email=subject_email,
            last_login=datetime.fromtimestamp(now / 1000, tz=UTC).isoformat(),
        )
        self._logger.info("tokens_applied", subject_id=subject_id, expires_in=expires_in)

    def status(self) -> AuthStatus:
        """Get the current authentication status."""
        if not self.is_authenticated():
            return AuthStatus.UNAUTHENTICATED
        if self.needs_refresh():
            return AuthStatus.TOKEN_EXPIRED
        return AuthStatus.AUTHENTICATED

    def token_info(self) -> TokenInfo:
        """Get expiry information about the stored token."""
        if not self.id_token:
            return TokenInfo(has_token=False, is_expired=True, needs_refresh=False)
        now = self._clock()
        return TokenInfo(
            has_token=True,
            expires_at=self.expires_at,
            is_expired=self.is_expired(now),
            needs_refresh=self.needs_refresh(now),
        )
