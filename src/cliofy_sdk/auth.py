"""Authentication manager for the Cliofy SDK.

Handles sign-in, registration, logout, token verification and session
state on top of the credential store, the identity exchange and the
account endpoints.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Protocol

from .errors import (
    AuthenticationFailedError,
    CliofyError,
    NoRefreshCredentialError,
    RefreshFailedError,
    ResponseFormatError,
    ValidationError,
)
from .models import (
    AuthSession,
    AuthStatus,
    CurrentUser,
    TokenGrant,
    TokenInfo,
    TokenVerification,
    UserProfile,
)
from .telemetry import get_logger

if TYPE_CHECKING:
    from .core.refresh import RefreshCoordinator
    from .credentials import CredentialState
    from .identity import IdentityExchange

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6

NOT_AUTHENTICATED = "Not authenticated"

# Errors meaning the server will not accept the stored token.
TOKEN_REJECTED_ERRORS = (
    AuthenticationFailedError,
    NoRefreshCredentialError,
    RefreshFailedError,
)


class AccountApi(Protocol):
    """Authenticated account endpoints used by the auth manager."""

    async def verify_token(self) -> TokenVerification:
        ...

    async def get_user_profile(self) -> UserProfile:
        ...


def password_problems(password: str) -> list[str]:
    """List the reasons a password is too weak for registration."""
    problems: list[str] = []
    if len(password) < MIN_PASSWORD_LENGTH:
        problems.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not re.search(r"[A-Za-z]", password):
        problems.append("Password must contain at least one letter")
    if not re.search(r"\d", password):
        problems.append("Password must contain at least one number")
    return problems


class AuthManager:
    """Sign-in and session state for the current user."""

    def __init__(
        self,
        credentials: CredentialState,
        identity: IdentityExchange,
        coordinator: RefreshCoordinator,
        *,
        api: AccountApi,
    ) -> None:
        self._credentials = credentials
        self._identity = identity
        self._coordinator = coordinator
        self._api = api
        self._logger = get_logger()

    async def login(self, email: str, password: str) -> AuthSession:
        """Sign in with email and password and store the issued tokens.

        Raises:
            ValidationError: If the email or password is malformed.
            AuthenticationFailedError: If the credentials were rejected.
        """
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format", details={"field": "email"})
        if not password:
            raise ValidationError("Password is required", details={"field": "password"})

        grant = await self._identity.sign_in(email, password)
        return self._start_session(grant, email)

    async def register(self, email: str, password: str) -> AuthSession:
        """Create an account and store its tokens."""
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format", details={"field": "email"})
        problems = password_problems(password)
        if problems:
            raise ValidationError(", ".join(problems), details={"field": "password"})

        grant = await self._identity.register(email, password)
        return self._start_session(grant, email)

    def _start_session(self, grant: TokenGrant, email: str) -> AuthSession:
        subject_id = grant.subject_id
        if not subject_id:
            raise ResponseFormatError("Token grant is missing subjectId")
        subject_email = grant.subject_email or email
        self._credentials.apply_new_tokens(
            grant.id_token,
            grant.refresh_token,
            grant.lifetime_seconds(),
            subject_id,
            subject_email,
        )
        self._logger.info("login_succeeded", subject_id=subject_id)
        return AuthSession(
            subject_id=subject_id,
            subject_email=subject_email,
            expires_at=self._credentials.expires_at or 0,
        )

    def logout(self) -> None:
        """Clear the stored session."""
        self._credentials.clear()

    async def refresh(self) -> None:
        """Force a token refresh, joining one already in flight."""
        await self._coordinator.ensure_fresh(force=True)

    def is_authenticated(self) -> bool:
        return self._credentials.is_authenticated()

    def status(self) -> AuthStatus:
        return self._credentials.status()

    def token_info(self) -> TokenInfo:
        return self._credentials.token_info()

    def current_subject(self) -> tuple[str | None, str | None]:
        """Get the stored subject id and email."""
        return self._credentials.subject_id, self._credentials.subject_email

    async def verify_token(self) -> TokenVerification:
        """Check the stored token with the server.

        A token the server rejects is cleared. Other failures, such as
        an unreachable endpoint, are reported without touching the
        stored credentials.
        """
        if not self.is_authenticated():
            return TokenVerification(valid=False, error=NOT_AUTHENTICATED)

        try:
            verification = await self._api.verify_token()
        except TOKEN_REJECTED_ERRORS as e:
            self._credentials.discard()
            return TokenVerification(valid=False, error=e.message)
        except CliofyError as e:
            self._logger.warning("token_verification_failed", code=e.code, error=e.message)
            return TokenVerification(valid=False, error=e.message)

        if not verification.valid:
            self._logger.info("token_rejected", error=verification.error)
            self._credentials.discard()
        return verification

    async def current_user(self) -> CurrentUser:
        """Look up the signed-in user's profile."""
        if not self.is_authenticated():
            return CurrentUser(success=False, error=NOT_AUTHENTICATED)
        try:
            return CurrentUser(success=True, user=await self._api.get_user_profile())
        except CliofyError as e:
            return CurrentUser(success=False, error=e.message)
