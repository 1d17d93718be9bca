"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container). Stores and the auth service do
the work; the only logic here is the validity predicates each record
carries, because those are part of the record's contract.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class AccountStatus(str, Enum):
    active = "active"
    inactive = "inactive"
    suspended = "suspended"
    pending_verification = "pending_verification"


class Role(str, Enum):
    super_admin = "super_admin"
    broker = "broker"
    business_owner = "business_owner"
    branch_manager = "branch_manager"
    cashier = "cashier"
    kitchen_staff = "kitchen_staff"
    delivery_driver = "delivery_driver"
    inventory_manager = "inventory_manager"
    finance_manager = "finance_manager"


@dataclass
class Account:
    """A login identity.

    email is unique and compared case-sensitively; it is stored exactly as
    submitted at registration.

    failed_login_attempts is advisory once a lock has expired -- only
    locked_until gates rejection. Both are reset on the next successful login
    or password reset.
    """

    email: str
    password_hash: str
    role: str = Role.business_owner.value
    status: str = AccountStatus.pending_verification.value
    id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    avatar_url: str | None = None
    failed_login_attempts: int = 0
    locked_until: datetime | None = None
    last_login_at: datetime | None = None
    email_verified_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Session:
    """Server-side record of the refresh token currently valid for one login.

    Rotation replaces refresh_token in place and bumps version; the row is
    never duplicated and never physically deleted by the auth core.
    """

    account_id: str
    refresh_token: str
    expires_at: datetime
    id: str | None = None
    is_active: bool = True
    last_used_at: datetime | None = None
    created_at: datetime | None = None
    version: int = 0

    def is_valid(self, now: datetime) -> bool:
        return self.is_active and now < self.expires_at


@dataclass
class PasswordResetToken:
    """Single-use password reset credential."""

    account_id: str
    token: str
    expires_at: datetime
    id: str | None = None
    is_used: bool = False
    used_at: datetime | None = None
    created_at: datetime | None = None

    def is_valid(self, now: datetime) -> bool:
        return not self.is_used and now < self.expires_at


# Fields that may leave the service in an account view. Anything not listed
# here (password_hash, lockout counters) is never serialized.
PUBLIC_ACCOUNT_FIELDS: tuple[str, ...] = (
    "id",
    "email",
    "first_name",
    "last_name",
    "phone",
    "avatar_url",
    "role",
    "status",
    "email_verified_at",
    "last_login_at",
    "created_at",
    "updated_at",
)


def public_account_view(account: Account) -> dict:
    """Return the allow-listed public fields of an account as a plain dict."""
    return {name: getattr(account, name) for name in PUBLIC_ACCOUNT_FIELDS}
