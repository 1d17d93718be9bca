"""
auth/validation.py -- Explicit input checks for the auth service.

Request models in api/models.py only bound field sizes. Business rules on
emails, passwords and self-registration roles live here so the service
enforces them no matter who calls it (HTTP route, CLI, tests).
"""

from __future__ import annotations

import re

from auth.errors import BadRequestError
from auth.models import AccountStatus, Role

MIN_PASSWORD_LENGTH = 8
# bcrypt accepts at most 72 bytes of input.
MAX_PASSWORD_BYTES = 72

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_SPECIAL_RE = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")

# Roles nobody may grant themselves through public registration.
_PRIVILEGED_ROLES = frozenset({Role.super_admin.value})


def validate_email(email: str) -> str:
    """Return email unchanged if it looks like an address, else raise BadRequestError.

    No case folding: emails are unique and compared case-sensitively.
    """
    if not email or len(email) > 255 or not _EMAIL_RE.match(email):
        raise BadRequestError("Invalid email address")
    return email


def validate_password_strength(password: str) -> str:
    """Require 8+ chars with upper, lower, digit and special character."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise BadRequestError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise BadRequestError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    if (
        not re.search(r"[A-Z]", password)
        or not re.search(r"[a-z]", password)
        or not re.search(r"\d", password)
        or not _SPECIAL_RE.search(password)
    ):
        raise BadRequestError("Password is too weak")
    return password


def validate_role(role: str) -> str:
    if role not in {r.value for r in Role}:
        raise BadRequestError(f"Unknown role: {role!r}")
    return role


def validate_role_for_registration(role: str) -> str:
    validate_role(role)
    if role in _PRIVILEGED_ROLES:
        raise BadRequestError("Role cannot be self-assigned")
    return role


def validate_status(status: str) -> str:
    if status not in {s.value for s in AccountStatus}:
        raise BadRequestError(f"Unknown account status: {status!r}")
    return status
