"""
auth/passwords.py -- bcrypt credential hasher.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

Cost factor: one value (Settings.bcrypt_rounds, default 12) is used for
every hash the service writes. verify() reads the cost from the stored hash,
so hashes written with another factor still verify.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import bcrypt

DEFAULT_ROUNDS = 12


class PasswordHasher:
    """Salted one-way password hashing with a fixed work factor."""

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds
        # Timing equalization dummy hash [C1]. Verified whenever the email is
        # unknown so response time does not reveal which emails exist.
        self._dummy_hash = self.hash("bizhub_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the given plaintext password.

        bcrypt only accepts 72 bytes of input. validate_password_strength()
        rejects longer passwords before they reach this point.
        """
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext password matches the bcrypt hash."""
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False

    def burn(self, plain: str) -> None:
        """Spend the same bcrypt work as a real check without a real hash."""
        self.verify(plain, self._dummy_hash)
