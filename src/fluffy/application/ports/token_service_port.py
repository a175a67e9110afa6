"""Port for access/refresh token issuance and validation."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from fluffy.domain.auth.claims import Claim, ClaimsPrincipal


class TokenFailure(StrEnum):
    """Why a presented access token was rejected."""

    MALFORMED = "malformed"
    INVALID_SIGNATURE = "invalid_signature"
    ALGORITHM_MISMATCH = "algorithm_mismatch"
    INVALID_ISSUER = "invalid_issuer"
    INVALID_AUDIENCE = "invalid_audience"
    EXPIRED = "expired"
    NOT_YET_VALID = "not_yet_valid"


class InvalidTokenError(ValueError):
    """Raised when a token is forged, foreign, or structurally broken."""

    def __init__(self, failure: TokenFailure, message: str | None = None) -> None:
        super().__init__(message or f"invalid token: {failure.value}")
        self.failure = failure


@dataclass(frozen=True)
class TokenValidationResult:
    """Outcome of soft access token validation."""

    is_valid: bool
    principal: ClaimsPrincipal | None = None
    failure: TokenFailure | None = None


class TokenServicePort(Protocol):
    """Token issuance/validation contract."""

    def generate_access_token(self, claims: Sequence[Claim]) -> str:
        """Issue a signed, short-lived access token carrying the given claims."""

    def generate_refresh_token(self) -> str:
        """Return a new opaque high-entropy refresh token."""

    def validate_token(self, token: str) -> TokenValidationResult:
        """Validate signature, issuer, audience, and lifetime without raising."""

    def get_principal_from_expired_token(self, token: str) -> ClaimsPrincipal:
        """Return claims of a possibly expired token, raising `InvalidTokenError` otherwise."""
