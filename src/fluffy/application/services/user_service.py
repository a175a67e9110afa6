"""Application service for user registration, login, and token refresh."""

from __future__ import annotations

import hmac
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from uuid import UUID, uuid4

from fluffy.application.ports.password_hasher_port import PasswordHasherPort
from fluffy.application.ports.token_service_port import InvalidTokenError, TokenServicePort
from fluffy.application.ports.user_repository_port import (
    DuplicateEmailError,
    UserCreateInput,
    UserRecord,
    UserRepositoryPort,
)
from fluffy.domain.auth.authentication_mode import AuthenticationMode
from fluffy.domain.auth.claims import Claim, ClaimsPrincipal, ClaimTypes
from fluffy.domain.auth.credentials import normalize_user_email, require_user_password

DEFAULT_REFRESH_TOKEN_TTL = timedelta(days=7)

logger = logging.getLogger(__name__)


class RegisterOutcome(StrEnum):
    """Supported registration outcomes."""

    CREATED = "created"
    EMAIL_ALREADY_REGISTERED = "email_already_registered"


class LoginOutcome(StrEnum):
    """Supported login outcomes."""

    SUCCESS = "success"
    INVALID_CREDENTIALS = "invalid_credentials"


class RefreshOutcome(StrEnum):
    """Supported token refresh outcomes."""

    SUCCESS = "success"
    INVALID_ACCESS_TOKEN = "invalid_access_token"
    INVALID_REFRESH_TOKEN = "invalid_refresh_token"


@dataclass(frozen=True)
class RegisterUserInput:
    """Registration request payload."""

    email: str
    password: str
    first_name: str
    last_name: str


@dataclass(frozen=True)
class RegisterResult:
    """Registration result model."""

    outcome: RegisterOutcome
    user: UserRecord | None = None


@dataclass(frozen=True)
class TokenPair:
    """Access token plus the refresh token that may renew it."""

    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class LoginResult:
    """Login result model."""

    outcome: LoginOutcome
    user: UserRecord | None = None
    tokens: TokenPair | None = None


@dataclass(frozen=True)
class RefreshResult:
    """Token refresh result model."""

    outcome: RefreshOutcome
    tokens: TokenPair | None = None


class UserService:
    """Register users, authenticate credentials, and rotate session tokens."""

    def __init__(
        self,
        *,
        users: UserRepositoryPort,
        password_hasher: PasswordHasherPort,
        token_service: TokenServicePort,
        refresh_token_ttl: timedelta = DEFAULT_REFRESH_TOKEN_TTL,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._users = users
        self._password_hasher = password_hasher
        self._token_service = token_service
        self._refresh_token_ttl = refresh_token_ttl
        self._now = now or (lambda: datetime.now(tz=UTC))

    async def get_user_by_id(self, *, user_id: UUID) -> UserRecord | None:
        return await self._users.get_by_id(user_id=user_id)

    async def is_email_registered(self, *, email: str) -> bool:
        return await self._users.exists_by_email(email=normalize_user_email(email=email))

    async def register_user(self, payload: RegisterUserInput) -> RegisterResult:
        """Create an integrated-mode account unless the email is already taken."""

        email = normalize_user_email(email=payload.email)
        password = require_user_password(password=payload.password)

        if await self._users.exists_by_email(email=email):
            logger.info("user_register_rejected email=%s reason=email_already_registered", email)
            return RegisterResult(outcome=RegisterOutcome.EMAIL_ALREADY_REGISTERED)

        try:
            user = await self._users.create_user(
                UserCreateInput(
                    email=email,
                    password_hash=self._password_hasher.hash_password(password),
                    first_name=payload.first_name.strip(),
                    last_name=payload.last_name.strip(),
                    authentication_mode=AuthenticationMode.INTEGRATED,
                )
            )
        except DuplicateEmailError:
            logger.info("user_register_rejected email=%s reason=concurrent_registration", email)
            return RegisterResult(outcome=RegisterOutcome.EMAIL_ALREADY_REGISTERED)

        logger.info("user_registered user_id=%s email=%s", user.user_id, email)
        return RegisterResult(outcome=RegisterOutcome.CREATED, user=user)

    async def login_user(self, *, email: str, password: str) -> LoginResult:
        """Verify credentials and issue a fresh token pair, replacing any previous session."""

        normalized_email = email.strip().lower()
        user = await self._users.get_by_email(email=normalized_email)
        if user is None:
            logger.info("user_login_failed email=%s reason=unknown_user", normalized_email)
            return LoginResult(outcome=LoginOutcome.INVALID_CREDENTIALS)

        is_valid = self._password_hasher.verify_password(
            password=password,
            password_hash=user.password_hash,
        )
        if not is_valid:
            logger.info("user_login_failed email=%s reason=invalid_password", normalized_email)
            return LoginResult(outcome=LoginOutcome.INVALID_CREDENTIALS)

        claims = [
            Claim(ClaimTypes.NAME_IDENTIFIER, str(user.user_id)),
            Claim(ClaimTypes.EMAIL, user.email),
            Claim(ClaimTypes.JTI, str(uuid4())),
        ]
        tokens = TokenPair(
            access_token=self._token_service.generate_access_token(claims),
            refresh_token=self._token_service.generate_refresh_token(),
        )

        now = self._now()
        updated = await self._users.record_login(
            user_id=user.user_id,
            logged_in_at=now,
            refresh_token=tokens.refresh_token,
            refresh_token_expires_at=now + self._refresh_token_ttl,
        )
        if updated is None:
            # Row vanished between read and write.
            logger.warning("user_login_failed email=%s reason=user_removed", normalized_email)
            return LoginResult(outcome=LoginOutcome.INVALID_CREDENTIALS)

        logger.info("user_login_success user_id=%s", user.user_id)
        return LoginResult(outcome=LoginOutcome.SUCCESS, user=updated, tokens=tokens)

    async def refresh_user_token(self, *, access_token: str, refresh_token: str) -> RefreshResult:
        """Exchange an (expired) access token and the current refresh token for a new pair.

        The stored refresh token is swapped only if it still matches the one
        read here, so two concurrent refreshes with the same token cannot both
        succeed.
        """

        try:
            principal = self._token_service.get_principal_from_expired_token(access_token)
        except InvalidTokenError as exc:
            logger.warning("token_refresh_rejected reason=%s", exc.failure.value)
            return RefreshResult(outcome=RefreshOutcome.INVALID_ACCESS_TOKEN)

        user_id = _user_id_from_principal(principal)
        if user_id is None:
            logger.warning("token_refresh_rejected reason=missing_user_identifier")
            return RefreshResult(outcome=RefreshOutcome.INVALID_ACCESS_TOKEN)

        user = await self._users.get_by_id(user_id=user_id)
        now = self._now()
        if user is None or not _refresh_token_matches(user, refresh_token=refresh_token, now=now):
            logger.info("token_refresh_rejected user_id=%s reason=invalid_refresh_token", user_id)
            return RefreshResult(outcome=RefreshOutcome.INVALID_REFRESH_TOKEN)

        claims = [claim for claim in principal.identity_claims() if claim.type != ClaimTypes.JTI]
        claims.append(Claim(ClaimTypes.JTI, str(uuid4())))
        tokens = TokenPair(
            access_token=self._token_service.generate_access_token(claims),
            refresh_token=self._token_service.generate_refresh_token(),
        )

        rotated = await self._users.rotate_refresh_token(
            user_id=user_id,
            expected_refresh_token=refresh_token,
            refresh_token=tokens.refresh_token,
            refresh_token_expires_at=now + self._refresh_token_ttl,
        )
        if not rotated:
            logger.warning("token_refresh_rejected user_id=%s reason=concurrent_rotation", user_id)
            return RefreshResult(outcome=RefreshOutcome.INVALID_REFRESH_TOKEN)

        logger.info("token_refresh_success user_id=%s", user_id)
        return RefreshResult(outcome=RefreshOutcome.SUCCESS, tokens=tokens)


def _user_id_from_principal(principal: ClaimsPrincipal) -> UUID | None:
    claim = principal.find_first(ClaimTypes.NAME_IDENTIFIER)
    if claim is None:
        return None
    try:
        return UUID(claim.value)
    except ValueError:
        return None


def _refresh_token_matches(user: UserRecord, *, refresh_token: str, now: datetime) -> bool:
    if user.refresh_token is None or user.refresh_token_expires_at is None:
        return False
    if user.refresh_token_expires_at <= now:
        return False
    return hmac.compare_digest(
        user.refresh_token.encode("utf-8"),
        refresh_token.encode("utf-8"),
    )
