"""
auth/tokens.py -- JWT codec for access and refresh tokens.

Security design decisions:
  JWT: python-jose with HS256. Two token kinds, each signed with its own
       secret and verified only against that secret:
         access  -- {sub, email, role, type="access"}, short-lived
         refresh -- {sub, tid, type="refresh"}, long-lived
       tid is 128 random bits so two refresh tokens minted in the same second
       for the same account never collide.

  Failures: signature mismatch, malformed structure, missing claims, wrong
       token kind and expiry all raise the same InvalidTokenError. Callers
       must not be able to tell which check failed.

  Clock: expiry is computed and checked against the injected clock rather
       than jose's wall-clock check, so lifetimes can be tested without
       sleeping.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.models import Account

_ALGORITHM = "HS256"

ACCESS = "access"
REFRESH = "refresh"
TOKEN_TYPE = "Bearer"


class InvalidTokenError(Exception):
    """Raised for any token that fails verification, whatever the reason."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = TOKEN_TYPE


class TokenCodec:
    """Signs and verifies the two token kinds.

    Usage:
        codec = TokenCodec(access_secret, refresh_secret)
        pair = codec.issue_pair(account)
        claims = codec.verify_refresh(pair.refresh_token)
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl_seconds: int = 900,
        refresh_ttl_seconds: int = 7 * 24 * 3600,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.access_ttl_seconds = access_ttl_seconds
        self.refresh_ttl_seconds = refresh_ttl_seconds
        self._clock = clock

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def sign(self, payload: dict, secret: str, ttl_seconds: int) -> str:
        now = self._clock()
        claims = dict(payload)
        claims["iat"] = int(now.timestamp())
        claims["exp"] = int((now + timedelta(seconds=ttl_seconds)).timestamp())
        return jwt.encode(claims, secret, algorithm=_ALGORITHM)

    def verify(self, token: str, secret: str) -> dict:
        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise InvalidTokenError("invalid token") from exc
        exp = claims.get("exp")
        if not isinstance(exp, (int, float)) or self._clock().timestamp() >= exp:
            raise InvalidTokenError("invalid token")
        return claims

    # ------------------------------------------------------------------
    # Token kinds
    # ------------------------------------------------------------------

    def create_access_token(self, account: Account) -> str:
        payload = {"sub": account.id, "email": account.email, "role": account.role, "type": ACCESS}
        return self.sign(payload, self._access_secret, self.access_ttl_seconds)

    def create_refresh_token(self, account_id: str) -> str:
        payload = {"sub": account_id, "tid": secrets.token_hex(16), "type": REFRESH}
        return self.sign(payload, self._refresh_secret, self.refresh_ttl_seconds)

    def issue_pair(self, account: Account) -> TokenPair:
        return TokenPair(
            access_token=self.create_access_token(account),
            refresh_token=self.create_refresh_token(account.id),
            expires_in=self.access_ttl_seconds,
        )

    def verify_access(self, token: str) -> dict:
        claims = self.verify(token, self._access_secret)
        if claims.get("type") != ACCESS or not claims.get("sub") or "role" not in claims:
            raise InvalidTokenError("invalid token")
        return claims

    def verify_refresh(self, token: str) -> dict:
        claims = self.verify(token, self._refresh_secret)
        if claims.get("type") != REFRESH or not claims.get("sub") or not claims.get("tid"):
            raise InvalidTokenError("invalid token")
        return claims


def generate_reset_token() -> str:
    """Return a single-use password reset token with 256 bits of entropy."""
    return secrets.token_hex(32)
