"""Claim value types carried inside access tokens."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass


class ClaimTypes:
    """Well-known claim type names used in access token payloads."""

    NAME_IDENTIFIER = "nameid"
    EMAIL = "email"
    NAME = "unique_name"
    ROLE = "role"
    JTI = "jti"


REGISTERED_TOKEN_CLAIMS = frozenset({"iss", "aud", "exp", "iat", "nbf"})


@dataclass(frozen=True)
class Claim:
    """One (type, value) pair asserted about the token subject."""

    type: str
    value: str


class ClaimsPrincipal:
    """Ordered claim set extracted from a validated token."""

    def __init__(self, claims: Iterable[Claim]) -> None:
        self._claims = tuple(claims)

    @property
    def claims(self) -> tuple[Claim, ...]:
        return self._claims

    def __iter__(self) -> Iterator[Claim]:
        return iter(self._claims)

    def __len__(self) -> int:
        return len(self._claims)

    def __repr__(self) -> str:
        return f"ClaimsPrincipal({list(self._claims)!r})"

    def find_first(self, claim_type: str) -> Claim | None:
        """Return the first claim of the given type or None."""

        for claim in self._claims:
            if claim.type == claim_type:
                return claim
        return None

    def find_all(self, claim_type: str) -> list[Claim]:
        return [claim for claim in self._claims if claim.type == claim_type]

    def has_claim(self, claim_type: str, value: str) -> bool:
        return any(claim.type == claim_type and claim.value == value for claim in self._claims)

    def identity_claims(self) -> list[Claim]:
        """Return claims without registered issuer/audience/lifetime fields."""

        return [claim for claim in self._claims if claim.type not in REGISTERED_TOKEN_CLAIMS]
