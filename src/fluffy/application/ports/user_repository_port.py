"""Port for user account persistence used by authentication flows."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from fluffy.domain.auth.authentication_mode import AuthenticationMode


class DuplicateEmailError(ValueError):
    """Raised when a user with the same normalized email already exists."""

    def __init__(self, *, email: str) -> None:
        super().__init__(f"email already registered: {email}")
        self.email = email


@dataclass(frozen=True)
class UserRecord:
    """User persistence model."""

    user_id: UUID
    email: str
    password_hash: str
    first_name: str
    last_name: str
    authentication_mode: AuthenticationMode
    external_authentication_identifier: str | None
    registered_at: datetime
    last_login_at: datetime | None
    refresh_token: str | None
    refresh_token_expires_at: datetime | None
    updated_at: datetime


@dataclass(frozen=True)
class UserCreateInput:
    """Input payload for inserting one user account."""

    email: str
    password_hash: str
    first_name: str
    last_name: str
    authentication_mode: AuthenticationMode = AuthenticationMode.INTEGRATED


class UserRepositoryPort(Protocol):
    """User repository contract."""

    async def get_by_id(self, *, user_id: UUID) -> UserRecord | None:
        """Return user by id or None."""

    async def get_by_email(self, *, email: str) -> UserRecord | None:
        """Return user by normalized email or None."""

    async def exists_by_email(self, *, email: str) -> bool:
        """Return whether a user with the normalized email exists."""

    async def create_user(self, payload: UserCreateInput) -> UserRecord:
        """Persist a new user, raising `DuplicateEmailError` on email conflict."""

    async def record_login(
        self,
        *,
        user_id: UUID,
        logged_in_at: datetime,
        refresh_token: str,
        refresh_token_expires_at: datetime,
    ) -> UserRecord | None:
        """Store last login time and replace the active refresh token."""

    async def rotate_refresh_token(
        self,
        *,
        user_id: UUID,
        expected_refresh_token: str,
        refresh_token: str,
        refresh_token_expires_at: datetime,
    ) -> bool:
        """Replace the refresh token only if the stored one still equals the expected value."""
