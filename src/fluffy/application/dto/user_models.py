"""Pydantic models for user and auth HTTP contracts."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from fluffy.application.ports.user_repository_port import UserRecord


class StrictModel(BaseModel):
    """Base model with strict unknown-field rejection."""

    model_config = ConfigDict(extra="forbid")


class RegisterUserRequest(StrictModel):
    """Account registration payload."""

    email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=1)
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)


class LoginUserRequest(StrictModel):
    """Credential login payload."""

    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RefreshTokenRequest(StrictModel):
    """Token refresh payload: the last access token and the current refresh token."""

    access_token: str = Field(min_length=1)
    refresh_token: str = Field(min_length=1)


class UserResponse(StrictModel):
    """Public user representation."""

    id: UUID
    email: str
    first_name: str
    last_name: str
    registered_at: datetime
    last_login_at: datetime | None

    @classmethod
    def from_record(cls, user: UserRecord) -> UserResponse:
        return cls(
            id=user.user_id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            registered_at=user.registered_at,
            last_login_at=user.last_login_at,
        )


class TokenResponse(StrictModel):
    """Issued token pair."""

    access_token: str
    refresh_token: str


class LoginResponse(TokenResponse):
    """Issued token pair plus the authenticated user."""

    user: UserResponse
