"""SQLAlchemy adapter for user account persistence."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, cast
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fluffy.application.ports.user_repository_port import (
    DuplicateEmailError,
    UserCreateInput,
    UserRecord,
    UserRepositoryPort,
)
from fluffy.domain.auth.authentication_mode import AuthenticationMode
from fluffy.infrastructure.db.metadata import users


class SqlAlchemyUserRepository(UserRepositoryPort):
    """User repository backed by SQLAlchemy async sessions."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._now = now or (lambda: datetime.now(tz=UTC))

    async def get_by_id(self, *, user_id: UUID) -> UserRecord | None:
        statement = sa.select(*users.c).where(users.c.id == user_id).limit(1)

        async with self._session_factory() as session:
            result = await session.execute(statement)

        row = result.mappings().first()
        if row is None:
            return None
        return _to_user_record(row)

    async def get_by_email(self, *, email: str) -> UserRecord | None:
        statement = sa.select(*users.c).where(users.c.email == email).limit(1)

        async with self._session_factory() as session:
            result = await session.execute(statement)

        row = result.mappings().first()
        if row is None:
            return None
        return _to_user_record(row)

    async def exists_by_email(self, *, email: str) -> bool:
        statement = sa.select(sa.exists().where(users.c.email == email))

        async with self._session_factory() as session:
            result = await session.execute(statement)

        return bool(result.scalar())

    async def create_user(self, payload: UserCreateInput) -> UserRecord:
        """Insert one user row, mapping the email unique constraint to `DuplicateEmailError`."""

        now = self._now()
        statement = sa.insert(users).values(
            id=uuid4(),
            email=payload.email,
            password_hash=payload.password_hash,
            first_name=payload.first_name,
            last_name=payload.last_name,
            authentication_mode=payload.authentication_mode.value,
            registered_at=now,
            updated_at=now,
        ).returning(*users.c)

        async with self._session_factory() as session:
            try:
                result = await session.execute(statement)
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                if "email" in str(exc.orig):
                    raise DuplicateEmailError(email=payload.email) from exc
                raise

        row = result.mappings().one()
        return _to_user_record(row)

    async def record_login(
        self,
        *,
        user_id: UUID,
        logged_in_at: datetime,
        refresh_token: str,
        refresh_token_expires_at: datetime,
    ) -> UserRecord | None:
        """Store login time and overwrite the refresh token pair unconditionally."""

        statement = (
            sa.update(users)
            .where(users.c.id == user_id)
            .values(
                last_login_at=logged_in_at,
                refresh_token=refresh_token,
                refresh_token_expires_at=refresh_token_expires_at,
                updated_at=logged_in_at,
            )
            .returning(*users.c)
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)
            row = result.mappings().first()
            await session.commit()

        if row is None:
            return None
        return _to_user_record(row)

    async def rotate_refresh_token(
        self,
        *,
        user_id: UUID,
        expected_refresh_token: str,
        refresh_token: str,
        refresh_token_expires_at: datetime,
    ) -> bool:
        """Compare-and-swap the stored refresh token; False when another writer won."""

        statement = (
            sa.update(users)
            .where(
                users.c.id == user_id,
                users.c.refresh_token == expected_refresh_token,
            )
            .values(
                refresh_token=refresh_token,
                refresh_token_expires_at=refresh_token_expires_at,
                updated_at=self._now(),
            )
        )

        async with self._session_factory() as session:
            result = cast(CursorResult[Any], await session.execute(statement))
            await session.commit()

        return int(result.rowcount or 0) == 1


def _to_user_record(row: sa.RowMapping) -> UserRecord:
    raw_user_id = row["id"]
    user_id = raw_user_id if isinstance(raw_user_id, UUID) else UUID(str(raw_user_id))
    return UserRecord(
        user_id=user_id,
        email=cast(str, row["email"]),
        password_hash=cast(str, row["password_hash"]),
        first_name=cast(str, row["first_name"]),
        last_name=cast(str, row["last_name"]),
        authentication_mode=AuthenticationMode(cast(str, row["authentication_mode"])),
        external_authentication_identifier=cast(
            str | None, row["external_authentication_identifier"]
        ),
        registered_at=_as_utc(cast(datetime, row["registered_at"])),
        last_login_at=_as_optional_utc(row["last_login_at"]),
        refresh_token=cast(str | None, row["refresh_token"]),
        refresh_token_expires_at=_as_optional_utc(row["refresh_token_expires_at"]),
        updated_at=_as_utc(cast(datetime, row["updated_at"])),
    )


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _as_optional_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return _as_utc(value)
