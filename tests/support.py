"""
tests/support.py -- Test doubles and builders shared by the auth tests.

Kept out of conftest.py so test modules can import them directly.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from auth.lockout import LockoutPolicy
from auth.models import Account, AccountStatus, Role
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import AccountStore, AuthDatabase, ResetTokenStore, SessionStore
from auth.tokens import TokenCodec

ACCESS_SECRET = "a" * 40
REFRESH_SECRET = "r" * 40
PASSWORD = "P@ssw0rd1"


class FrozenClock:
    """Callable clock that only moves when a test advances it."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingNotifier:
    """Captures password reset hand-offs instead of delivering them."""

    def __init__(self) -> None:
        self.sent: list[tuple[Account, str, datetime]] = []

    def send_password_reset(self, account: Account, token: str, expires_at: datetime) -> None:
        self.sent.append((account, token, expires_at))

    @property
    def last_token(self) -> str:
        return self.sent[-1][1]


def build_service(db: AuthDatabase, clock, notifier=None) -> AuthService:
    codec = TokenCodec(ACCESS_SECRET, REFRESH_SECRET, access_ttl_seconds=900, refresh_ttl_seconds=7 * 86400, clock=clock)
    return AuthService(
        AccountStore(db),
        SessionStore(db),
        ResetTokenStore(db),
        PasswordHasher(rounds=4),
        codec,
        LockoutPolicy(max_attempts=5, lock_minutes=30),
        reset_ttl_seconds=3600,
        clock=clock,
        notifier=notifier,
    )


def make_active_account(
    service: AuthService,
    email: str,
    password: str = PASSWORD,
    role: str = Role.business_owner.value,
) -> str:
    """Register an account and activate it; returns the account id."""
    result = service.register(email, password, role=role)
    service.update_account(result.account["id"], status=AccountStatus.active.value)
    return result.account["id"]
