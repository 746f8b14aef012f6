"""Pydantic models for Cliofy API payloads.

Response models ignore unknown fields so that additive server changes
do not break older clients. Request models are serialized without unset
fields so PATCH bodies only carry what the caller changed.
"""

from __future__ import annotations

import time
from enum import StrEnum
from typing import Annotated, Any

import jwt
from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator

MAX_ATTACHMENT_SIZE = 52_428_800  # 50 MiB

# Lifetime assumed when neither the grant nor the token says otherwise.
DEFAULT_TOKEN_LIFETIME = 3600


class TokenGrant(BaseModel):
    """Token material returned by the identity exchange."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id_token: str = Field(..., min_length=1, alias="idToken")
    refresh_token: str = Field(..., min_length=1, alias="refreshToken")
    expires_in: Annotated[int, Field(gt=0)] | None = Field(default=None, alias="expiresIn")
    subject_id: str | None = Field(default=None, alias="subjectId")
    subject_email: str | None = Field(default=None, alias="subjectEmail")

    def lifetime_seconds(self, *, now: float | None = None) -> int:
        """Get the token lifetime in seconds.

        Uses ``expires_in`` when the exchange sent one, else the ``exp``
        claim of the id token (read without signature verification),
        else ``DEFAULT_TOKEN_LIFETIME``.
        """
        if self.expires_in is not None:
            return self.expires_in

        try:
            claims = jwt.decode(self.id_token, options={"verify_signature": False})
        except jwt.exceptions.PyJWTError:
            return DEFAULT_TOKEN_LIFETIME

        exp = claims.get("exp")
        if not isinstance(exp, (int, float)):
            return DEFAULT_TOKEN_LIFETIME
        now = time.time() if now is None else now
        return max(int(exp - now), 0)


class AuthStatus(StrEnum):
    """Authentication state derived from the stored credentials."""

    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"
    TOKEN_EXPIRED = "token_expired"


class TokenInfo(BaseModel):
    """Snapshot of the stored token's expiry state."""

    model_config = ConfigDict(frozen=True)

    has_token: bool
    expires_at: int | None = None
    is_expired: bool
    needs_refresh: bool


class AuthSession(BaseModel):
    """Result of a successful login or registration."""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    subject_email: str | None = None
    expires_at: int


class HealthStatus(BaseModel):
    """Liveness probe response."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    status: str
    timestamp: str


class Attachment(BaseModel):
    """File attached to a task."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    task_id: str
    created_at: str
    file_name: str = Field(..., min_length=1, max_length=255)
    file_url: HttpUrl
    file_type: str = Field(..., min_length=1, max_length=100)
    file_size: Annotated[int, Field(ge=0, le=MAX_ATTACHMENT_SIZE)]


class TaskUserStates(BaseModel):
    """Per-user flags on a task."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    focused: bool | None = None
    archived: bool | None = None
    priority: Annotated[int, Field(ge=1, le=5)] | None = None
    tags: list[str] = Field(default_factory=list)
    custom_fields: dict[str, Any] = Field(default_factory=dict)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        """Trim, drop empties, de-duplicate and sort."""
        return sorted({tag.strip() for tag in v if tag.strip()})


class Task(BaseModel):
    """A task as returned by the API."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    created_at: str
    user_id: str
    title: str = Field(..., min_length=1, max_length=500)
    content: str = Field(default="", max_length=50_000)
    is_completed: bool = False
    completed_at: str | None = None
    parent_id: str | None = None
    position: Annotated[int, Field(ge=0)] = 0
    start_time: str | None = None
    due_time: str | None = None
    user_states: TaskUserStates | None = None
    attachments: list[Attachment] = Field(default_factory=list)

    @property
    def is_focused(self) -> bool:
        return bool(self.user_states and self.user_states.focused)

    @property
    def is_archived(self) -> bool:
        return bool(self.user_states and self.user_states.archived)

    @property
    def priority(self) -> int | None:
        return self.user_states.priority if self.user_states else None


class TaskFilter(BaseModel):
    """Query filter for listing tasks."""

    model_config = ConfigDict(frozen=True)

    parent_id: str | None = None
    is_completed: bool | None = None
    title_contains: str | None = None
    limit: Annotated[int, Field(gt=0)] | None = None
    offset: Annotated[int, Field(ge=0)] | None = None

    def to_query_params(self) -> dict[str, str]:
        """Convert set fields to query parameters."""
        params: dict[str, str] = {}
        for key, value in self.model_dump(exclude_none=True).items():
            # Booleans go over the wire lowercase.
            params[key] = str(value).lower() if isinstance(value, bool) else str(value)
        return params


class CreateTaskRequest(BaseModel):
    """Body for creating a task."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(..., min_length=1, max_length=500)
    content: str | None = Field(default=None, max_length=50_000)
    parent_id: str | None = None
    position: Annotated[int, Field(ge=0)] = 0
    start_time: str | None = None
    due_time: str | None = None

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class UpdateTaskRequest(BaseModel):
    """Body for a partial task update."""

    model_config = ConfigDict(frozen=True)

    title: str | None = Field(default=None, min_length=1, max_length=500)
    content: str | None = Field(default=None, max_length=50_000)
    is_completed: bool | None = None
    parent_id: str | None = None
    position: Annotated[int, Field(ge=0)] | None = None
    start_time: str | None = None
    due_time: str | None = None
    user_states: TaskUserStates | None = None

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class UserProfile(BaseModel):
    """The authenticated user's profile."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    email: str
    display_name: str | None = None
    avatar_url: str | None = None
    created_at: str
    updated_at: str
    last_sign_in_at: str | None = None
    timezone: str | None = None
    language: str | None = None


class UpdateProfileRequest(BaseModel):
    """Body for updating the user profile."""

    model_config = ConfigDict(frozen=True)

    display_name: str | None = Field(default=None, max_length=100)
    avatar_url: HttpUrl | None = None
    timezone: str | None = None
    language: str | None = None

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class TokenVerification(BaseModel):
    """Server verdict on the stored bearer token."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    valid: bool
    user_id: str | None = None
    exp: int | None = None
    error: str | None = None
    details: str | None = None


class CurrentUser(BaseModel):
    """Result of looking up the signed-in user's profile."""

    model_config = ConfigDict(frozen=True)

    success: bool
    user: UserProfile | None = None
    error: str | None = None
