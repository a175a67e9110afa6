"""Bearer access token parsing and caller resolution for protected endpoints."""

from __future__ import annotations

from uuid import UUID

from fluffy.application.ports.token_service_port import TokenServicePort
from fluffy.application.ports.user_repository_port import UserRecord, UserRepositoryPort
from fluffy.domain.auth.claims import ClaimTypes


class MissingAuthTokenError(PermissionError):
    """Raised when a bearer token is required but not provided."""


class InvalidAuthTokenError(PermissionError):
    """Raised when the bearer header or the access token it carries is invalid."""


def extract_bearer_token(authorization_header: str | None) -> str:
    """Extract the token from a standard `Authorization: Bearer <token>` header."""

    if authorization_header is None or not authorization_header.strip():
        raise MissingAuthTokenError("missing bearer token")

    parts = authorization_header.strip().split()
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise InvalidAuthTokenError("invalid bearer token header")

    return parts[1]


class AccessTokenGuard:
    """Resolve the calling user from a valid, unexpired access token."""

    def __init__(
        self,
        *,
        token_service: TokenServicePort,
        user_repository: UserRepositoryPort,
    ) -> None:
        self._token_service = token_service
        self._user_repository = user_repository

    async def require_user(self, *, authorization_header: str | None) -> UserRecord:
        token = extract_bearer_token(authorization_header)
        validation = self._token_service.validate_token(token)
        if not validation.is_valid or validation.principal is None:
            raise InvalidAuthTokenError("invalid or expired access token")

        claim = validation.principal.find_first(ClaimTypes.NAME_IDENTIFIER)
        if claim is None:
            raise InvalidAuthTokenError("access token has no user identifier")
        try:
            user_id = UUID(claim.value)
        except ValueError as exc:
            raise InvalidAuthTokenError("access token has no user identifier") from exc

        user = await self._user_repository.get_by_id(user_id=user_id)
        if user is None:
            raise InvalidAuthTokenError("invalid or expired access token")
        return user
