"""Unit tests for auth/passwords.py -- the bcrypt credential hasher.

Covers:
- bcrypt hash/verify round trip uses the configured cost factor
- verify() returns False (never raises) on malformed hashes
- burn() spends bcrypt work without a real hash
"""

import pytest

from auth.passwords import PasswordHasher


@pytest.fixture(scope="module")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


def test_hash_and_verify(hasher: PasswordHasher) -> None:
    hashed = hasher.hash("P@ssw0rd1")
    assert hashed.startswith("$2b$04$")
    assert hasher.verify("P@ssw0rd1", hashed)
    assert not hasher.verify("P@ssw0rd2", hashed)


def test_hashes_are_salted(hasher: PasswordHasher) -> None:
    assert hasher.hash("P@ssw0rd1") != hasher.hash("P@ssw0rd1")


def test_default_cost_factor_is_twelve() -> None:
    assert PasswordHasher().rounds == 12


def test_verify_malformed_hash_returns_false(hasher: PasswordHasher) -> None:
    assert hasher.verify("P@ssw0rd1", "not-a-bcrypt-hash") is False


def test_burn_does_not_raise(hasher: PasswordHasher) -> None:
    hasher.burn("anything")
