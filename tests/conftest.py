"""
Shared test fixtures for Cliofy SDK tests.

Provides a temporary configuration store, a controllable clock, a fake
identity exchange and a factory for clients backed by httpx.MockTransport.
"""

import asyncio
from typing import Any, Callable

import httpx
import pytest

from cliofy_sdk.client import CliofyClient, reset_client
from cliofy_sdk.config import EnvironmentDefaults
from cliofy_sdk.credentials import CredentialState
from cliofy_sdk.http import default_headers
from cliofy_sdk.models import TokenGrant
from cliofy_sdk.store import ConfigStore

ENDPOINT = "https://api.cliofy.test"
NOW_MS = 1_700_000_000_000


class FakeClock:
    """Clock returning a settable epoch-millisecond time."""

    def __init__(self, now_ms: int = NOW_MS) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class FakeIdentity:
    """Identity exchange that records calls and can hold refreshes open."""

    def __init__(self) -> None:
        self.refresh_calls: list[str] = []
        self.sign_in_calls: list[tuple[str, str]] = []
        self.register_calls: list[tuple[str, str]] = []
        self.gate: asyncio.Event | None = None
        self.error: Exception | None = None
        self.subject_id: str | None = "user-123"
        self.issued = 0

    def _grant(self) -> TokenGrant:
        self.issued += 1
        return TokenGrant(
            id_token=f"id-token-{self.issued}",
            refresh_token=f"refresh-token-{self.issued}",
            expires_in=3600,
            subject_id=self.subject_id,
        )

    async def refresh(self, refresh_token: str) -> TokenGrant:
        self.refresh_calls.append(refresh_token)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self._grant()

    async def sign_in(self, email: str, password: str) -> TokenGrant:
        self.sign_in_calls.append((email, password))
        if self.error is not None:
            raise self.error
        return self._grant()

    async def register(self, email: str, password: str) -> TokenGrant:
        self.register_calls.append((email, password))
        if self.error is not None:
            raise self.error
        return self._grant()


@pytest.fixture(autouse=True)
def _isolate_client() -> Any:
    """Drop the process-wide client around every test."""
    reset_client()
    yield
    reset_client()


@pytest.fixture
def env_defaults() -> EnvironmentDefaults:
    """Provide defaults that do not depend on the environment."""
    return EnvironmentDefaults(endpoint=ENDPOINT, timeout=5000)


@pytest.fixture
def config_dir(tmp_path: Any) -> Any:
    """Provide a configuration directory that does not exist yet."""
    return tmp_path / "cliofy"


@pytest.fixture
def store(config_dir: Any, env_defaults: EnvironmentDefaults) -> ConfigStore:
    """Provide a store over a temporary directory."""
    return ConfigStore(config_dir, defaults=env_defaults)


@pytest.fixture
def clock() -> FakeClock:
    """Provide a controllable clock."""
    return FakeClock()


@pytest.fixture
def credentials(store: ConfigStore, clock: FakeClock) -> CredentialState:
    """Provide credential state driven by the fake clock."""
    return CredentialState(store, clock=clock)


@pytest.fixture
def authenticated(credentials: CredentialState) -> CredentialState:
    """Provide credential state holding a fresh token."""
    credentials.apply_new_tokens(
        "id-token-0", "refresh-token-0", 3600, "user-123", "user@example.com"
    )
    return credentials


@pytest.fixture
def stale(authenticated: CredentialState, store: ConfigStore, clock: FakeClock) -> CredentialState:
    """Provide credential state whose token expired a second ago."""
    store.update(token_expires_at=clock() - 1000)
    return authenticated


@pytest.fixture
def identity() -> FakeIdentity:
    """Provide a fake identity exchange."""
    return FakeIdentity()


@pytest.fixture
def make_client(
    store: ConfigStore,
    identity: FakeIdentity,
    clock: FakeClock,
) -> Callable[..., CliofyClient]:
    """Provide a factory for clients whose HTTP calls go to ``handler``."""

    def factory(handler: Callable[[httpx.Request], Any]) -> CliofyClient:
        http = httpx.AsyncClient(
            base_url=ENDPOINT,
            headers=default_headers(),
            transport=httpx.MockTransport(handler),
        )
        return CliofyClient(store, identity=identity, http=http, clock=clock)

    return factory


@pytest.fixture
def sample_task() -> dict[str, Any]:
    """Provide a task payload as the API returns it."""
    return {
        "id": "task-1",
        "created_at": "2025-01-01T00:00:00Z",
        "user_id": "user-123",
        "title": "Write report",
        "content": "",
        "is_completed": False,
        "position": 0,
        "attachments": [],
    }
