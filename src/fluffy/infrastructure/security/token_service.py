"""JWT access token and opaque refresh token service."""

from __future__ import annotations

import base64
import logging
import secrets
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

import jwt

from fluffy.application.ports.token_service_port import (
    InvalidTokenError,
    TokenFailure,
    TokenServicePort,
    TokenValidationResult,
)
from fluffy.config.settings import Settings
from fluffy.domain.auth.claims import REGISTERED_TOKEN_CLAIMS, Claim, ClaimsPrincipal, ClaimTypes

SIGNING_ALGORITHM = "HS512"
DEFAULT_ACCESS_TOKEN_TTL = timedelta(minutes=15)
DEFAULT_CLOCK_SKEW = timedelta(seconds=60)
REFRESH_TOKEN_BYTES = 64

_REQUIRED_CLAIMS = ["exp", "iat", "iss", "aud"]

logger = logging.getLogger(__name__)


class JwtTokenService(TokenServicePort):
    """Issue and validate HS512-signed access tokens plus random refresh tokens."""

    def __init__(
        self,
        *,
        secret_key: str,
        issuer: str,
        audience: str,
        access_token_ttl: timedelta = DEFAULT_ACCESS_TOKEN_TTL,
        clock_skew: timedelta = DEFAULT_CLOCK_SKEW,
        now: Callable[[], datetime] | None = None,
        jti_factory: Callable[[], str] | None = None,
    ) -> None:
        self._secret_key = secret_key
        self._issuer = issuer
        self._audience = audience
        self._access_token_ttl = access_token_ttl
        self._clock_skew = clock_skew
        self._now = now or (lambda: datetime.now(tz=UTC))
        self._jti_factory = jti_factory or (lambda: str(uuid4()))

    @classmethod
    def from_settings(cls, settings: Settings) -> JwtTokenService:
        return cls(
            secret_key=settings.token_secret_key,
            issuer=settings.token_issuer,
            audience=settings.token_audience,
            access_token_ttl=timedelta(minutes=settings.access_token_ttl_minutes),
            clock_skew=timedelta(seconds=settings.token_clock_skew_seconds),
        )

    @property
    def access_token_ttl(self) -> timedelta:
        return self._access_token_ttl

    def generate_access_token(self, claims: Sequence[Claim]) -> str:
        """Sign caller claims together with issuer, audience, and lifetime fields.

        Registered lifetime/issuer claims supplied by the caller are dropped in
        favour of freshly computed ones. A `jti` is added when absent so two
        tokens minted in the same second for the same user never collide.
        """

        payload: dict[str, Any] = {}
        for claim in claims:
            if claim.type in REGISTERED_TOKEN_CLAIMS:
                continue
            existing = payload.get(claim.type)
            if existing is None:
                payload[claim.type] = claim.value
            elif isinstance(existing, list):
                existing.append(claim.value)
            else:
                payload[claim.type] = [existing, claim.value]

        payload.setdefault(ClaimTypes.JTI, self._jti_factory())

        issued_at = self._now()
        payload.update(
            iss=self._issuer,
            aud=self._audience,
            iat=issued_at,
            nbf=issued_at,
            exp=issued_at + self._access_token_ttl,
        )
        return jwt.encode(payload, self._secret_key, algorithm=SIGNING_ALGORITHM)

    def generate_refresh_token(self) -> str:
        return base64.b64encode(secrets.token_bytes(REFRESH_TOKEN_BYTES)).decode("ascii")

    def validate_token(self, token: str) -> TokenValidationResult:
        try:
            payload = self._decode(token, verify_lifetime=True)
        except InvalidTokenError as exc:
            logger.debug("access_token_rejected failure=%s", exc.failure.value)
            return TokenValidationResult(is_valid=False, principal=None, failure=exc.failure)
        return TokenValidationResult(is_valid=True, principal=_to_principal(payload))

    def get_principal_from_expired_token(self, token: str) -> ClaimsPrincipal:
        """Extract claims from a token whose lifetime may have ended.

        Signature, algorithm, issuer, and audience are still enforced; any
        failure raises `InvalidTokenError`.
        """

        payload = self._decode(token, verify_lifetime=False)
        return _to_principal(payload)

    def _decode(self, token: str, *, verify_lifetime: bool) -> dict[str, Any]:
        options = {
            "require": _REQUIRED_CLAIMS,
            "verify_exp": verify_lifetime,
            "verify_nbf": verify_lifetime,
            "verify_iat": verify_lifetime,
        }
        try:
            return jwt.decode(
                token,
                self._secret_key,
                algorithms=[SIGNING_ALGORITHM],
                audience=self._audience,
                issuer=self._issuer,
                leeway=self._clock_skew,
                options=options,
            )
        except jwt.ExpiredSignatureError as exc:
            raise InvalidTokenError(TokenFailure.EXPIRED) from exc
        except jwt.ImmatureSignatureError as exc:
            raise InvalidTokenError(TokenFailure.NOT_YET_VALID) from exc
        except jwt.InvalidSignatureError as exc:
            raise InvalidTokenError(TokenFailure.INVALID_SIGNATURE) from exc
        except jwt.InvalidAlgorithmError as exc:
            raise InvalidTokenError(TokenFailure.ALGORITHM_MISMATCH) from exc
        except jwt.InvalidIssuerError as exc:
            raise InvalidTokenError(TokenFailure.INVALID_ISSUER) from exc
        except jwt.InvalidAudienceError as exc:
            raise InvalidTokenError(TokenFailure.INVALID_AUDIENCE) from exc
        except jwt.PyJWTError as exc:
            raise InvalidTokenError(TokenFailure.MALFORMED, f"invalid token: {exc}") from exc


def _to_principal(payload: dict[str, Any]) -> ClaimsPrincipal:
    claims: list[Claim] = []
    for claim_type, value in payload.items():
        values = value if isinstance(value, list) else [value]
        claims.extend(Claim(type=claim_type, value=str(item)) for item in values)
    return ClaimsPrincipal(claims)
