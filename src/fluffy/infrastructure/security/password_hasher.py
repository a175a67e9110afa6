"""PBKDF2-HMAC-SHA256 password hasher adapter."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass

from fluffy.application.ports.password_hasher_port import PasswordHasherPort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PasswordHashingParameters:
    """Key-derivation parameters shared by hashing and verification."""

    salt_size: int = 16
    hash_size: int = 32
    iterations: int = 10_000

    @property
    def encoded_size(self) -> int:
        return self.salt_size + self.hash_size


class Pbkdf2PasswordHasher(PasswordHasherPort):
    """Password hashing adapter producing base64(salt || derived_key) strings."""

    def __init__(self, parameters: PasswordHashingParameters | None = None) -> None:
        self._parameters = parameters or PasswordHashingParameters()

    @property
    def parameters(self) -> PasswordHashingParameters:
        return self._parameters

    def hash_password(self, password: str) -> str:
        salt = secrets.token_bytes(self._parameters.salt_size)
        derived = self._derive(password=password, salt=salt)
        return base64.b64encode(salt + derived).decode("ascii")

    def verify_password(self, *, password: str, password_hash: str) -> bool:
        """Return True only when the password re-derives the stored hash exactly.

        Malformed stored hashes (not base64 or of unexpected length) verify as
        False instead of raising, so a corrupt row reads as a failed login.
        """

        try:
            decoded = base64.b64decode(password_hash.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError):
            logger.debug("password_hash_malformed reason=not_base64")
            return False

        if len(decoded) != self._parameters.encoded_size:
            logger.debug(
                "password_hash_malformed reason=length expected=%s actual=%s",
                self._parameters.encoded_size,
                len(decoded),
            )
            return False

        salt = decoded[: self._parameters.salt_size]
        stored = decoded[self._parameters.salt_size :]
        computed = self._derive(password=password, salt=salt)
        return hmac.compare_digest(stored, computed)

    def _derive(self, *, password: str, salt: bytes) -> bytes:
        return hashlib.pbkdf2_hmac(
            "sha256",
            password.encode("utf-8"),
            salt,
            self._parameters.iterations,
            dklen=self._parameters.hash_size,
        )
