from __future__ import annotations

import base64
import hashlib

import pytest

from fluffy.infrastructure.security.password_hasher import (
    PasswordHashingParameters,
    Pbkdf2PasswordHasher,
)


def test_hash_password_never_stores_plaintext_and_verifies() -> None:
    hasher = Pbkdf2PasswordHasher()
    password = "TestPassword123!"

    password_hash = hasher.hash_password(password)

    assert password_hash
    assert password_hash != password
    assert password not in password_hash
    assert hasher.verify_password(password=password, password_hash=password_hash) is True


def test_hash_password_encodes_salt_and_hash_as_48_bytes() -> None:
    hasher = Pbkdf2PasswordHasher()

    decoded = base64.b64decode(hasher.hash_password("TestPassword123!"))

    assert len(decoded) == 16 + 32


def test_same_password_hashes_differently_each_call() -> None:
    hasher = Pbkdf2PasswordHasher()

    first = hasher.hash_password("TestPassword123!")
    second = hasher.hash_password("TestPassword123!")

    assert first != second
    assert hasher.verify_password(password="TestPassword123!", password_hash=first) is True
    assert hasher.verify_password(password="TestPassword123!", password_hash=second) is True


def test_wrong_password_fails_verification() -> None:
    hasher = Pbkdf2PasswordHasher()
    password_hash = hasher.hash_password("TestPassword123!")

    assert (
        hasher.verify_password(password="WrongPassword123!", password_hash=password_hash)
        is False
    )


def test_verification_matches_known_pbkdf2_vector() -> None:
    salt = bytes(range(16))
    derived = hashlib.pbkdf2_hmac("sha256", b"secret", salt, 10_000, dklen=32)
    encoded = base64.b64encode(salt + derived).decode("ascii")

    hasher = Pbkdf2PasswordHasher()

    assert hasher.verify_password(password="secret", password_hash=encoded) is True
    assert hasher.verify_password(password="Secret", password_hash=encoded) is False


@pytest.mark.parametrize(
    "malformed",
    [
        "",
        "not base64 at all!",
        base64.b64encode(b"too-short").decode("ascii"),
        base64.b64encode(bytes(64)).decode("ascii"),
        "ünïcode",
    ],
)
def test_malformed_hash_returns_false_instead_of_raising(malformed: str) -> None:
    hasher = Pbkdf2PasswordHasher()

    assert hasher.verify_password(password="anything", password_hash=malformed) is False


def test_custom_iterations_are_used_for_both_hash_and_verify() -> None:
    fast = Pbkdf2PasswordHasher(PasswordHashingParameters(iterations=1_000))
    default = Pbkdf2PasswordHasher()

    password_hash = fast.hash_password("pw")

    assert fast.verify_password(password="pw", password_hash=password_hash) is True
    assert default.verify_password(password="pw", password_hash=password_hash) is False
