"""Async Cliofy API client.

Typed task and profile operations layered on the authenticated executor,
plus the process-wide client slot used by the CLI.
"""

from __future__ import annotations

from typing import Any, Callable, Self, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .auth import AuthManager
from .core.errors import ErrorFactory
from .core.http_executor import AuthenticatedExecutor
from .core.refresh import RefreshCoordinator
from .credentials import CredentialState
from .errors import RemoteRejectedError, ResponseFormatError
from .http import create_async_http_client
from .identity import HttpIdentityExchange, IdentityExchange
from .models import (
    CreateTaskRequest,
    HealthStatus,
    Task,
    TaskFilter,
    TokenVerification,
    UpdateProfileRequest,
    UpdateTaskRequest,
    UserProfile,
)
from .store import ConfigStore
from .telemetry import get_logger, traced_async

M = TypeVar("M", bound=BaseModel)

HEALTH_PATH = "/health"
TASKS_PATH = "/tasks"
PROFILE_PATH = "/user/profile"
VERIFY_PATH = "/auth/verify"


def _parse(model: type[M], data: Any) -> M:
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ResponseFormatError(f"Invalid {model.__name__} payload", cause=e) from e


def _json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise ResponseFormatError("Response body is not JSON", cause=e) from e


def _task_path(task_id: str) -> str:
    return f"{TASKS_PATH}/{quote(task_id, safe='')}"


class CliofyClient:
    """Asynchronous Cliofy API client."""

    def __init__(
        self,
        store: ConfigStore | None = None,
        *,
        identity: IdentityExchange | None = None,
        http: httpx.AsyncClient | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        """Initialize client.

        Args:
            store: Configuration store. A store over the default
                directory is created when omitted.
            identity: Identity exchange. Defaults to the HTTP exchange
                against the stored endpoint.
            http: HTTP client. Created from the stored endpoint and
                timeout when omitted.
            clock: Returns the current time in epoch milliseconds.
        """
        self.store = store or ConfigStore()
        config = self.store.config
        self.endpoint = config.endpoint_str
        self._http = http or create_async_http_client(config)

        self.credentials = CredentialState(self.store, clock=clock)
        self._identity = identity or HttpIdentityExchange(self._http)
        self.coordinator = RefreshCoordinator(self.credentials, self._identity)
        self._executor = AuthenticatedExecutor(
            self._http,
            self.credentials,
            self.coordinator,
            endpoint=self.endpoint,
        )
        self.auth = AuthManager(
            self.credentials, self._identity, self.coordinator, api=self
        )
        self._logger = get_logger()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._http.aclose()

    @traced_async("domain.health_check")
    async def health_check(self) -> HealthStatus:
        """Probe the backend without authentication."""
        try:
            response = await self._http.get(HEALTH_PATH)
        except httpx.HTTPError as e:
            raise ErrorFactory.from_exception(e, endpoint=self.endpoint) from e
        if not response.is_success:
            raise ErrorFactory.from_http_response(response)
        return _parse(HealthStatus, _json(response))

    @traced_async("domain.list_tasks")
    async def list_tasks(self, task_filter: TaskFilter | None = None) -> list[Task]:
        """List tasks, optionally filtered."""
        params = task_filter.to_query_params() if task_filter else None
        response = await self._executor.execute("GET", TASKS_PATH, params=params)
        data = _json(response)
        if not isinstance(data, list):
            raise ResponseFormatError("Invalid response format: expected array of tasks")
        return [_parse(Task, item) for item in data]

    @traced_async("domain.get_task")
    async def get_task(self, task_id: str) -> Task:
        """Get one task by id.

        The API has no single-task endpoint, so this lists every task and
        selects by id.

        Raises:
            RemoteRejectedError: With status 404 if no task has this id.
        """
        for task in await self.list_tasks():
            if task.id == task_id:
                return task
        self._logger.debug("task_not_found", task_id=task_id)
        raise RemoteRejectedError(f"Task with ID {task_id} not found", status_code=404)

    @traced_async("domain.create_task")
    async def create_task(self, request: CreateTaskRequest) -> Task:
        """Create a task."""
        response = await self._executor.execute("POST", TASKS_PATH, json=request.to_body())
        return _parse(Task, _json(response))

    @traced_async("domain.update_task")
    async def update_task(self, task_id: str, request: UpdateTaskRequest) -> Task:
        """Apply a partial update to a task."""
        response = await self._executor.execute(
            "PATCH", _task_path(task_id), json=request.to_body()
        )
        return _parse(Task, _json(response))

    @traced_async("domain.delete_task")
    async def delete_task(self, task_id: str) -> None:
        """Delete a task."""
        await self._executor.execute("DELETE", _task_path(task_id))

    @traced_async("domain.verify_token")
    async def verify_token(self) -> TokenVerification:
        """Ask the server whether the stored bearer token is valid."""
        response = await self._executor.execute("POST", VERIFY_PATH)
        return _parse(TokenVerification, _json(response))

    @traced_async("domain.get_user_profile")
    async def get_user_profile(self) -> UserProfile:
        """Get the authenticated user's profile."""
        response = await self._executor.execute("GET", PROFILE_PATH)
        return self._parse_profile(response)

    @traced_async("domain.update_user_profile")
    async def update_user_profile(self, request: UpdateProfileRequest) -> UserProfile:
        """Update the authenticated user's profile."""
        response = await self._executor.execute("PUT", PROFILE_PATH, json=request.to_body())
        return self._parse_profile(response)

    @staticmethod
    def _parse_profile(response: httpx.Response) -> UserProfile:
        data = _json(response)
        if not isinstance(data, dict) or "profile" not in data:
            raise ResponseFormatError("Invalid response format: expected profile object")
        return _parse(UserProfile, data["profile"])


# Process-wide client slot
_client: CliofyClient | None = None


def get_client(store: ConfigStore | None = None) -> CliofyClient:
    """Get or create the process-wide client.

    Args:
        store: Store for the client on first creation. Ignored once the
            client exists.
    """
    global _client
    if _client is None:
        _client = CliofyClient(store)
    return _client


def reset_client() -> None:
    """Drop the process-wide client. The on-disk record is untouched."""
    global _client
    _client = None
