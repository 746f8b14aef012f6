"""Unit tests for the auth manager and the HTTP identity exchange."""

import asyncio
import json
import time

import httpx
import jwt
import pytest

from cliofy_sdk.auth import AuthManager, password_problems
from cliofy_sdk.core.refresh import RefreshCoordinator
from cliofy_sdk.credentials import CredentialState
from cliofy_sdk.errors import (
    AuthenticationFailedError,
    NetworkUnreachableError,
    RemoteRejectedError,
    ResponseFormatError,
    ValidationError,
)
from cliofy_sdk.identity import HttpIdentityExchange
from cliofy_sdk.models import (
    DEFAULT_TOKEN_LIFETIME,
    AuthStatus,
    TokenGrant,
    TokenVerification,
    UserProfile,
)

ENDPOINT = "https://api.cliofy.test"
SIGNING_KEY = "test-signing-key-that-is-long-enough-for-hs256"


class FakeAccountApi:
    """Account endpoints returning canned results or raising."""

    def __init__(self) -> None:
        self.verification = TokenVerification(valid=True, user_id="user-123")
        self.profile = UserProfile(
            id="user-123",
            email="user@example.com",
            created_at="2025-01-01T00:00:00Z",
            updated_at="2025-01-02T00:00:00Z",
        )
        self.error: Exception | None = None
        self.calls = 0

    async def verify_token(self) -> TokenVerification:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.verification

    async def get_user_profile(self) -> UserProfile:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.profile


@pytest.fixture
def account_api() -> FakeAccountApi:
    return FakeAccountApi()


@pytest.fixture
def manager(credentials: CredentialState, identity, account_api: FakeAccountApi) -> AuthManager:
    return AuthManager(
        credentials,
        identity,
        RefreshCoordinator(credentials, identity),
        api=account_api,
    )


def exchange(handler) -> HttpIdentityExchange:
    return HttpIdentityExchange(
        httpx.AsyncClient(base_url=ENDPOINT, transport=httpx.MockTransport(handler))
    )


class TestLogin:
    def test_login_stores_session(self, manager: AuthManager, credentials: CredentialState, identity) -> None:
        session = asyncio.run(manager.login("user@example.com", "secret1"))

        assert session.subject_id == "user-123"
        assert session.subject_email == "user@example.com"
        assert session.expires_at == credentials.now_ms() + 3600 * 1000
        assert identity.sign_in_calls == [("user@example.com", "secret1")]
        assert manager.is_authenticated()
        assert manager.status() is AuthStatus.AUTHENTICATED
        assert manager.current_subject() == ("user-123", "user@example.com")

    def test_login_rejects_bad_email(self, manager: AuthManager, identity) -> None:
        with pytest.raises(ValidationError):
            asyncio.run(manager.login("not-an-email", "secret1"))

        assert identity.sign_in_calls == []

    def test_login_requires_password(self, manager: AuthManager) -> None:
        with pytest.raises(ValidationError):
            asyncio.run(manager.login("user@example.com", ""))

    def test_login_rejected(self, manager: AuthManager, identity) -> None:
        identity.error = AuthenticationFailedError("Invalid email or password")

        with pytest.raises(AuthenticationFailedError):
            asyncio.run(manager.login("user@example.com", "wrong1"))

        assert not manager.is_authenticated()

    def test_grant_without_subject(self, manager: AuthManager, identity) -> None:
        identity.subject_id = None

        with pytest.raises(ResponseFormatError):
            asyncio.run(manager.login("user@example.com", "secret1"))

        assert not manager.is_authenticated()


class TestRegister:
    def test_register_stores_session(self, manager: AuthManager, identity) -> None:
        asyncio.run(manager.register("new@example.com", "abc123"))

        assert identity.register_calls == [("new@example.com", "abc123")]
        assert manager.is_authenticated()

    def test_weak_password(self, manager: AuthManager, identity) -> None:
        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(manager.register("new@example.com", "abc"))

        assert "at least 6 characters" in exc_info.value.message
        assert identity.register_calls == []

    @pytest.mark.parametrize(
        ("password", "count"),
        [("abc123", 0), ("abcdef", 1), ("123456", 1), ("a1", 1), ("", 3)],
    )
    def test_password_problems(self, password: str, count: int) -> None:
        assert len(password_problems(password)) == count


class TestSessionState:
    def test_logout_clears(self, manager: AuthManager, authenticated: CredentialState) -> None:
        manager.logout()

        assert not authenticated.is_authenticated()
        assert manager.status() is AuthStatus.UNAUTHENTICATED

    def test_refresh_forces_exchange(self, manager: AuthManager, authenticated: CredentialState, identity) -> None:
        asyncio.run(manager.refresh())

        assert identity.refresh_calls == ["refresh-token-0"]
        assert authenticated.id_token == "id-token-1"

    def test_token_info(self, manager: AuthManager, authenticated: CredentialState) -> None:
        info = manager.token_info()

        assert info.has_token
        assert not info.needs_refresh


class TestVerifyToken:
    def test_not_authenticated(self, manager: AuthManager, account_api: FakeAccountApi) -> None:
        result = asyncio.run(manager.verify_token())

        assert not result.valid
        assert result.error == "Not authenticated"
        assert account_api.calls == 0

    def test_valid_token(self, manager: AuthManager, authenticated: CredentialState) -> None:
        result = asyncio.run(manager.verify_token())

        assert result.valid
        assert result.user_id == "user-123"
        assert authenticated.is_authenticated()

    def test_invalid_verdict_clears(
        self, manager: AuthManager, authenticated: CredentialState, account_api: FakeAccountApi
    ) -> None:
        account_api.verification = TokenVerification(valid=False, error="Token revoked")

        result = asyncio.run(manager.verify_token())

        assert result.error == "Token revoked"
        assert not authenticated.is_authenticated()

    def test_rejected_token_clears(
        self, manager: AuthManager, authenticated: CredentialState, account_api: FakeAccountApi
    ) -> None:
        account_api.error = AuthenticationFailedError()

        result = asyncio.run(manager.verify_token())

        assert not result.valid
        assert result.error == "Authentication failed"
        assert not authenticated.is_authenticated()

    def test_network_failure_keeps_credentials(
        self, manager: AuthManager, authenticated: CredentialState, account_api: FakeAccountApi
    ) -> None:
        account_api.error = NetworkUnreachableError(ENDPOINT)

        result = asyncio.run(manager.verify_token())

        assert not result.valid
        assert result.error == f"Network error: Could not connect to {ENDPOINT}"
        assert authenticated.is_authenticated()


class TestCurrentUser:
    def test_not_authenticated(self, manager: AuthManager) -> None:
        result = asyncio.run(manager.current_user())

        assert not result.success
        assert result.user is None

    def test_profile_returned(self, manager: AuthManager, authenticated: CredentialState) -> None:
        result = asyncio.run(manager.current_user())

        assert result.success
        assert result.user is not None
        assert result.user.email == "user@example.com"

    def test_error_reported(
        self, manager: AuthManager, authenticated: CredentialState, account_api: FakeAccountApi
    ) -> None:
        account_api.error = RemoteRejectedError("Server exploded", status_code=500)

        result = asyncio.run(manager.current_user())

        assert not result.success
        assert result.error == "Server exploded"


class TestTokenGrant:
    def test_explicit_lifetime(self) -> None:
        grant = TokenGrant(idToken="t", refreshToken="r", expiresIn=120)
        assert grant.lifetime_seconds() == 120

    def test_lifetime_from_jwt_exp(self) -> None:
        now = time.time()
        token = jwt.encode({"sub": "u1", "exp": int(now) + 900}, SIGNING_KEY, algorithm="HS256")
        grant = TokenGrant(idToken=token, refreshToken="r")

        assert grant.lifetime_seconds(now=int(now)) == 900

    def test_expired_jwt_has_zero_lifetime(self) -> None:
        token = jwt.encode({"exp": 1000}, SIGNING_KEY, algorithm="HS256")
        grant = TokenGrant(idToken=token, refreshToken="r")

        assert grant.lifetime_seconds(now=5000) == 0

    def test_opaque_token_uses_default(self) -> None:
        grant = TokenGrant(idToken="opaque", refreshToken="r")
        assert grant.lifetime_seconds() == DEFAULT_TOKEN_LIFETIME


class TestHttpIdentityExchange:
    def test_refresh_posts_refresh_token(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"idToken": "t2", "refreshToken": "r2", "expiresIn": 3600, "subjectId": "u1"},
            )

        grant = asyncio.run(exchange(handler).refresh("r1"))

        assert grant.id_token == "t2"
        assert grant.expires_in == 3600
        assert seen[0].url.path == "/auth/exchange"
        assert json.loads(seen[0].content) == {"refreshToken": "r1"}
        assert "Authorization" not in seen[0].headers

    def test_refresh_rejected(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "invalid_grant"})

        with pytest.raises(RemoteRejectedError) as exc_info:
            asyncio.run(exchange(handler).refresh("r1"))

        assert exc_info.value.message == "invalid_grant"

    def test_refresh_malformed_grant(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"token": "t2"})

        with pytest.raises(ResponseFormatError):
            asyncio.run(exchange(handler).refresh("r1"))

    def test_sign_in_rejected_uses_server_message(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": "Wrong password"})

        with pytest.raises(AuthenticationFailedError) as exc_info:
            asyncio.run(exchange(handler).sign_in("user@example.com", "nope12"))

        assert exc_info.value.message == "Wrong password"

    def test_register_rejected_fallback_message(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(409, json={})

        with pytest.raises(AuthenticationFailedError) as exc_info:
            asyncio.run(exchange(handler).register("user@example.com", "abc123"))

        assert exc_info.value.message == "Registration failed"

    def test_sign_in_requires_subject(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"idToken": "t", "refreshToken": "r"})

        with pytest.raises(ResponseFormatError):
            asyncio.run(exchange(handler).sign_in("user@example.com", "secret1"))

    def test_network_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(NetworkUnreachableError) as exc_info:
            asyncio.run(exchange(handler).refresh("r1"))

        assert exc_info.value.endpoint == ENDPOINT
