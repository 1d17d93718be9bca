"""
auth/lockout.py -- Account lockout policy.

Pure decision functions over (failed_attempts, locked_until, now). No I/O:
the store applies the transitions atomically, the service asks the policy
whether a login may proceed.

Only the timestamp gates rejection. A lock that has expired never blocks a
login, even while the counter is still at or above the threshold; the counter
is advisory until the next successful login resets it. A further failure
after expiry re-locks immediately because the counter is already past the
threshold.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True)
class LockoutState:
    failed_attempts: int
    locked_until: datetime | None


@dataclass(frozen=True)
class LockoutPolicy:
    max_attempts: int = 5
    lock_minutes: int = 30

    def is_locked(self, locked_until: datetime | None, now: datetime) -> bool:
        return locked_until is not None and now < locked_until

    def lock_expiry(self, failed_attempts: int, now: datetime) -> datetime | None:
        """Return the lock expiry for an already-incremented counter, or None."""
        if failed_attempts >= self.max_attempts:
            return now + timedelta(minutes=self.lock_minutes)
        return None

    def register_failure(self, failed_attempts: int, now: datetime) -> LockoutState:
        attempts = failed_attempts + 1
        return LockoutState(attempts, self.lock_expiry(attempts, now))

    def reset(self) -> LockoutState:
        return LockoutState(0, None)
