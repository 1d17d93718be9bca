"""
auth/service.py -- Authentication and session lifecycle orchestration.

AuthService composes the collaborators it is constructed with:
  AccountStore / SessionStore / ResetTokenStore  -- persistence (auth/store.py)
  PasswordHasher                                  -- bcrypt (auth/passwords.py)
  TokenCodec                                      -- JWTs (auth/tokens.py)
  LockoutPolicy                                   -- lockout rules (auth/lockout.py)
  clock                                           -- returns aware UTC datetimes
  notifier                                        -- password reset delivery

Nothing is looked up globally; AuthService.from_settings() is the one place
that wires production collaborators from Settings.

Enumeration resistance [C1]:
  login() fails with the same "Invalid credentials" message whether the email
  is unknown or the password is wrong, and runs bcrypt in both cases.
  forgot_password() returns normally for unknown emails.

Revocation:
  A refresh token is only accepted while its session row is active and holds
  exactly that token value. Rotation replaces the value in place, so the
  previous token stops working immediately even though it has not expired.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Protocol

from sqlalchemy.exc import IntegrityError

from auth.errors import BadRequestError, ConflictError, NotFoundError, UnauthorizedError
from auth.lockout import LockoutPolicy
from auth.models import Account, AccountStatus, Role, public_account_view
from auth.passwords import PasswordHasher
from auth.store import AccountStore, AuthDatabase, ResetTokenStore, SessionStore, StaleSessionError
from auth.tokens import InvalidTokenError, TokenCodec, TokenPair, generate_reset_token, utc_now
from auth.validation import (
    validate_email,
    validate_password_strength,
    validate_role,
    validate_role_for_registration,
    validate_status,
)

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("bizhub.auth")

INVALID_CREDENTIALS = "Invalid credentials"
ACCOUNT_NOT_ACTIVE = "Account is not active"
INVALID_REFRESH = "Invalid or expired refresh token"
INVALID_ACCESS = "Invalid or expired token"
INVALID_RESET = "Invalid or expired reset token"


class ResetNotifier(Protocol):
    def send_password_reset(self, account: Account, token: str, expires_at: datetime) -> None: ...


class LoggingResetNotifier:
    """Default notifier. Records that a reset was issued; never logs the token."""

    def send_password_reset(self, account: Account, token: str, expires_at: datetime) -> None:
        logger.info("Password reset issued for account %s (expires %s)", account.id, expires_at.isoformat())


@dataclass(frozen=True)
class AuthResult:
    """Token pair plus the public view of the account it was issued for."""

    tokens: TokenPair
    account: dict


class AuthService:
    def __init__(
        self,
        accounts: AccountStore,
        sessions: SessionStore,
        reset_tokens: ResetTokenStore,
        hasher: PasswordHasher,
        codec: TokenCodec,
        policy: LockoutPolicy,
        *,
        reset_ttl_seconds: int = 3600,
        clock: Callable[[], datetime] = utc_now,
        notifier: ResetNotifier | None = None,
    ) -> None:
        self.accounts = accounts
        self.sessions = sessions
        self.reset_tokens = reset_tokens
        self.hasher = hasher
        self.codec = codec
        self.policy = policy
        self.reset_ttl_seconds = reset_ttl_seconds
        self._clock = clock
        self.notifier: ResetNotifier = notifier or LoggingResetNotifier()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        db: AuthDatabase,
        *,
        clock: Callable[[], datetime] = utc_now,
        notifier: ResetNotifier | None = None,
    ) -> AuthService:
        """Wire the production collaborators from application settings."""
        codec = TokenCodec(
            access_secret=settings.access_token_secret,
            refresh_secret=settings.refresh_token_secret,
            access_ttl_seconds=settings.access_token_expire_seconds,
            refresh_ttl_seconds=settings.refresh_token_expire_days * 24 * 3600,
            clock=clock,
        )
        return cls(
            AccountStore(db),
            SessionStore(db),
            ResetTokenStore(db),
            PasswordHasher(rounds=settings.bcrypt_rounds),
            codec,
            LockoutPolicy(max_attempts=settings.max_login_attempts, lock_minutes=settings.lockout_minutes),
            reset_ttl_seconds=settings.reset_token_expire_seconds,
            clock=clock,
            notifier=notifier,
        )

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    def register(
        self,
        email: str,
        password: str,
        *,
        first_name: str | None = None,
        last_name: str | None = None,
        phone: str | None = None,
        role: str = Role.business_owner.value,
    ) -> AuthResult:
        """Create a pending-verification account and open its first session."""
        validate_email(email)
        validate_password_strength(password)
        validate_role_for_registration(role)

        if self.accounts.get_by_email(email) is not None:
            raise ConflictError("User with this email already exists")

        now = self._clock()
        account = Account(
            email=email,
            password_hash=self.hasher.hash(password),
            role=role,
            status=AccountStatus.pending_verification.value,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
        )
        try:
            account = self.accounts.create_account(account, now)
        except IntegrityError as exc:
            # A concurrent registration inserted the same email first.
            raise ConflictError("User with this email already exists") from exc

        logger.info("Registered account %s (role=%s)", account.id, account.role)
        return self._open_session(account, now)

    def login(self, email: str, password: str) -> AuthResult:
        account = self.accounts.get_by_email(email)
        if account is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            self.hasher.burn(password)
            raise UnauthorizedError(INVALID_CREDENTIALS)

        now = self._clock()
        if self.policy.is_locked(account.locked_until, now):
            raise UnauthorizedError(f"Account is locked until {account.locked_until.isoformat()}")

        if not self.hasher.verify(password, account.password_hash):
            state = self.accounts.record_failed_login(account.id, self.policy, now)
            if state.locked_until is not None:
                logger.warning(
                    "Account %s locked until %s after %d failed logins",
                    account.id,
                    state.locked_until.isoformat(),
                    state.failed_attempts,
                )
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if account.status != AccountStatus.active.value:
            raise UnauthorizedError(ACCOUNT_NOT_ACTIVE)

        self.accounts.record_successful_login(account.id, now)
        account.failed_login_attempts = 0
        account.locked_until = None
        account.last_login_at = now
        logger.info("Login succeeded for account %s", account.id)
        return self._open_session(account, now)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def refresh(self, refresh_token: str) -> AuthResult:
        """Exchange a refresh token for a new pair, rotating the session in place."""
        try:
            claims = self.codec.verify_refresh(refresh_token)
        except InvalidTokenError:
            raise UnauthorizedError(INVALID_REFRESH) from None

        now = self._clock()
        session = self.sessions.find_active_by_token(refresh_token)
        if session is None or not session.is_valid(now) or session.account_id != claims["sub"]:
            logger.info("Refresh rejected: no valid session for presented token")
            raise UnauthorizedError(INVALID_REFRESH)

        account = self.accounts.get_by_id(session.account_id)
        if account is None:
            raise UnauthorizedError(INVALID_REFRESH)

        tokens = self.codec.issue_pair(account)
        try:
            self.sessions.rotate(session, tokens.refresh_token, now)
        except StaleSessionError:
            logger.info("Refresh rejected: session %s rotated concurrently", session.id)
            raise UnauthorizedError(INVALID_REFRESH) from None
        return AuthResult(tokens=tokens, account=public_account_view(account))

    def logout(self, account_id: str, refresh_token: str) -> None:
        """Deactivate one session. Unknown or already inactive sessions are not an error."""
        self.sessions.deactivate(account_id, refresh_token)

    def logout_all(self, account_id: str) -> None:
        count = self.sessions.deactivate_all(account_id)
        logger.info("Deactivated %d session(s) for account %s", count, account_id)

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def forgot_password(self, email: str) -> None:
        """Issue a reset token if the email exists. Silent otherwise [C1]."""
        account = self.accounts.get_by_email(email)
        if account is None:
            return

        now = self._clock()
        expires_at = now + timedelta(seconds=self.reset_ttl_seconds)
        token = generate_reset_token()
        self.reset_tokens.create(account.id, token, expires_at, now)
        self.notifier.send_password_reset(account, token, expires_at)

    def reset_password(self, token: str, new_password: str) -> None:
        """Consume a reset token, set the new password, and end every session of the account."""
        now = self._clock()
        record = self.reset_tokens.find_unused_by_token(token)
        if record is None or not record.is_valid(now):
            raise BadRequestError(INVALID_RESET)

        validate_password_strength(new_password)

        # Consume first so two concurrent resets cannot both succeed.
        if not self.reset_tokens.mark_used(record.id, now):
            raise BadRequestError(INVALID_RESET)

        self.accounts.set_password(record.account_id, self.hasher.hash(new_password), now)
        self.sessions.deactivate_all(record.account_id)
        logger.info("Password reset completed for account %s; all sessions revoked", record.account_id)

    # ------------------------------------------------------------------
    # Account lookups and administration
    # ------------------------------------------------------------------

    def validate_account(self, account_id: str) -> Account:
        account = self.accounts.get_by_id(account_id)
        if account is None:
            raise NotFoundError("User not found")
        return account

    def authenticate_access_token(self, token: str) -> Account:
        """Resolve a Bearer access token to an active, unlocked account."""
        try:
            claims = self.codec.verify_access(token)
        except InvalidTokenError:
            raise UnauthorizedError(INVALID_ACCESS) from None

        account = self.accounts.get_by_id(claims["sub"])
        if account is None or account.status != AccountStatus.active.value:
            raise UnauthorizedError(INVALID_ACCESS)
        if self.policy.is_locked(account.locked_until, self._clock()):
            raise UnauthorizedError(INVALID_ACCESS)
        return account

    def update_account(self, account_id: str, *, status: str | None = None, role: str | None = None) -> Account:
        """Change an account's lifecycle status and/or role.

        Moving an account out of active also deactivates its sessions, since
        refresh does not re-check account status.
        """
        fields: dict = {}
        if status is not None:
            fields["status"] = validate_status(status)
        if role is not None:
            fields["role"] = validate_role(role)
        if not fields:
            raise BadRequestError("No fields to update")

        if not self.accounts.update_account(account_id, self._clock(), **fields):
            raise NotFoundError("User not found")
        logger.info("Updated account %s: %s", account_id, fields)
        if status is not None and status != AccountStatus.active.value:
            self.sessions.deactivate_all(account_id)
        return self.validate_account(account_id)

    def delete_account(self, account_id: str) -> None:
        if not self.accounts.delete_account(account_id):
            raise NotFoundError("User not found")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _open_session(self, account: Account, now: datetime) -> AuthResult:
        tokens = self.codec.issue_pair(account)
        expires_at = now + timedelta(seconds=self.codec.refresh_ttl_seconds)
        self.sessions.create(account.id, tokens.refresh_token, expires_at, now)
        return AuthResult(tokens=tokens, account=public_account_view(account))
