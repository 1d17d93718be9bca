"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
AccountStore, SessionStore and ResetTokenStore are the repositories;
_row_to_account / _row_to_session / _row_to_reset_token are the mappers.
Service code never touches SQL directly. All three repositories share one
AuthDatabase (engine + schema).

Security:
  All queries use bound parameters. No f-strings in SQL.

Concurrency:
  record_failed_login() increments the counter with a single
  UPDATE ... SET n = n + 1 and writes the lock expiry in the same transaction,
  so concurrent failures against one account are never lost.

  SessionStore.rotate() is an optimistic compare-and-swap on the version
  column. When two refreshes race on one session, exactly one UPDATE matches;
  the loser gets StaleSessionError.

  ResetTokenStore.mark_used() only matches unused rows, so a token can be
  consumed once even under concurrent resets.

Deletion:
  The auth core never deletes sessions or reset tokens. delete_account() is
  the only physical delete and cascades explicitly to both child tables in
  one transaction.

Timestamps are timezone-aware UTC datetimes in the domain models and ISO 8601
text in the database.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine

from auth.lockout import LockoutPolicy, LockoutState
from auth.models import Account, PasswordResetToken, Session

logger = logging.getLogger("bizhub.store")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'bizhub_auth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),  # case-sensitive
    Column("password_hash", Text, nullable=False),
    Column("role", String(30), nullable=False),
    Column("status", String(30), nullable=False),
    Column("first_name", String(100)),
    Column("last_name", String(100)),
    Column("phone", String(30)),
    Column("avatar_url", Text),
    Column("failed_login_attempts", Integer, nullable=False, server_default="0"),
    Column("locked_until", String(32)),
    Column("last_login_at", String(32)),
    Column("email_verified_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("account_id", String(36), ForeignKey("accounts.id"), nullable=False, index=True),
    Column("refresh_token", Text, nullable=False, index=True),
    Column("expires_at", String(32), nullable=False),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("last_used_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("version", Integer, nullable=False, server_default="0"),
)

_reset_tokens = Table(
    "password_reset_tokens",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("account_id", String(36), ForeignKey("accounts.id"), nullable=False, index=True),
    Column("token", String(64), nullable=False, unique=True),
    Column("expires_at", String(32), nullable=False),
    Column("is_used", Integer, nullable=False, server_default="0"),
    Column("used_at", String(32)),
    Column("created_at", String(32), nullable=False),
)


class StaleSessionError(Exception):
    """A concurrent rotation or logout changed the session first."""


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _new_id() -> str:
    return str(uuid.uuid4())


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class AuthDatabase:
    """Engine and schema shared by the auth repositories.

    Usage:
        db = AuthDatabase("sqlite:///:memory:")
        accounts = AccountStore(db)
        db.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account records."""

    # Columns update_account() may touch. Lockout columns are written only by
    # the dedicated methods below so their transitions stay atomic.
    _UPDATABLE = frozenset(
        {"role", "status", "first_name", "last_name", "phone", "avatar_url", "email_verified_at", "password_hash"}
    )

    def __init__(self, db: AuthDatabase) -> None:
        self.engine = db.engine

    def create_account(self, account: Account, now: datetime) -> Account:
        """Insert a new account and return it with id and timestamps filled in.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        The service treats that as a lost registration race and reports a
        conflict.
        """
        created = replace(account, id=account.id or _new_id(), created_at=now, updated_at=now)
        with self.engine.connect() as conn:
            conn.execute(
                _accounts.insert().values(
                    id=created.id,
                    email=created.email,
                    password_hash=created.password_hash,
                    role=created.role,
                    status=created.status,
                    first_name=created.first_name,
                    last_name=created.last_name,
                    phone=created.phone,
                    avatar_url=created.avatar_url,
                    failed_login_attempts=created.failed_login_attempts,
                    locked_until=_iso(created.locked_until),
                    last_login_at=_iso(created.last_login_at),
                    email_verified_at=_iso(created.email_verified_at),
                    created_at=_iso(now),
                    updated_at=_iso(now),
                )
            )
            conn.commit()
        return created

    def get_by_email(self, email: str) -> Account | None:
        """Look up an account by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.email == email)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_id(self, account_id: str) -> Account | None:
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def update_account(self, account_id: str, now: datetime, **fields) -> bool:
        """Update mutable fields on an existing account.

        Returns True if a row was updated, False if account_id was not found.
        Unknown field names raise ValueError -- column names come from the
        whitelist, never from callers.
        """
        unknown = set(fields) - self._UPDATABLE
        if unknown:
            raise ValueError(f"Unknown account fields: {sorted(unknown)!r}")
        values = {k: (_iso(v) if isinstance(v, datetime) else v) for k, v in fields.items()}
        values["updated_at"] = _iso(now)
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def record_failed_login(self, account_id: str, policy: LockoutPolicy, now: datetime) -> LockoutState:
        """Atomically count one failed login and apply the lock if the threshold is reached."""
        with self.engine.begin() as conn:
            conn.execute(
                _accounts.update()
                .where(_accounts.c.id == account_id)
                .values(failed_login_attempts=_accounts.c.failed_login_attempts + 1, updated_at=_iso(now))
            )
            attempts = conn.execute(
                select(_accounts.c.failed_login_attempts).where(_accounts.c.id == account_id)
            ).scalar() or 0
            locked_until = policy.lock_expiry(attempts, now)
            if locked_until is not None:
                conn.execute(
                    _accounts.update().where(_accounts.c.id == account_id).values(locked_until=_iso(locked_until))
                )
        return LockoutState(attempts, locked_until)

    def record_successful_login(self, account_id: str, now: datetime) -> None:
        """Clear lockout state and stamp last_login_at."""
        with self.engine.connect() as conn:
            conn.execute(
                _accounts.update()
                .where(_accounts.c.id == account_id)
                .values(failed_login_attempts=0, locked_until=None, last_login_at=_iso(now), updated_at=_iso(now))
            )
            conn.commit()

    def set_password(self, account_id: str, password_hash: str, now: datetime) -> bool:
        """Store a new password hash and clear lockout state."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _accounts.update()
                .where(_accounts.c.id == account_id)
                .values(password_hash=password_hash, failed_login_attempts=0, locked_until=None, updated_at=_iso(now))
            )
            conn.commit()
        return result.rowcount > 0

    def delete_account(self, account_id: str) -> bool:
        """Delete an account and, in the same transaction, its sessions and reset tokens.

        Returns True if the account existed.
        """
        with self.engine.begin() as conn:
            sessions = conn.execute(_sessions.delete().where(_sessions.c.account_id == account_id)).rowcount
            tokens = conn.execute(_reset_tokens.delete().where(_reset_tokens.c.account_id == account_id)).rowcount
            deleted = conn.execute(_accounts.delete().where(_accounts.c.id == account_id)).rowcount
        if deleted:
            logger.info(
                "Deleted account %s with %d session(s) and %d reset token(s)",
                account_id,
                sessions,
                tokens,
            )
        return deleted > 0


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class SessionStore:
    """Repository for refresh-token sessions. Never deletes rows."""

    def __init__(self, db: AuthDatabase) -> None:
        self.engine = db.engine

    def create(self, account_id: str, refresh_token: str, expires_at: datetime, now: datetime) -> Session:
        session = Session(
            id=_new_id(),
            account_id=account_id,
            refresh_token=refresh_token,
            expires_at=expires_at,
            is_active=True,
            created_at=now,
        )
        with self.engine.connect() as conn:
            conn.execute(
                _sessions.insert().values(
                    id=session.id,
                    account_id=account_id,
                    refresh_token=refresh_token,
                    expires_at=_iso(expires_at),
                    is_active=1,
                    created_at=_iso(now),
                    version=0,
                )
            )
            conn.commit()
        return session

    def find_active_by_token(self, refresh_token: str) -> Session | None:
        """Return the active session holding exactly this refresh token.

        Inactive sessions never match, even before their expiry. Expiry itself
        is checked by the caller against its clock.
        """
        with self.engine.connect() as conn:
            row = conn.execute(
                _sessions.select().where((_sessions.c.refresh_token == refresh_token) & (_sessions.c.is_active == 1))
            ).fetchone()
        return _row_to_session(row) if row is not None else None

    def get_by_id(self, session_id: str) -> Session | None:
        with self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.id == session_id)).fetchone()
        return _row_to_session(row) if row is not None else None

    def list_for_account(self, account_id: str) -> list[Session]:
        """Return every session of an account, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _sessions.select().where(_sessions.c.account_id == account_id).order_by(_sessions.c.created_at)
            ).fetchall()
        return [_row_to_session(r) for r in rows]

    def rotate(self, session: Session, new_token: str, now: datetime) -> Session:
        """Replace the session's refresh token in place.

        Compare-and-swap on (version, is_active). Raises StaleSessionError if
        the session was rotated or deactivated since it was read.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _sessions.update()
                .where(
                    (_sessions.c.id == session.id)
                    & (_sessions.c.version == session.version)
                    & (_sessions.c.is_active == 1)
                )
                .values(refresh_token=new_token, last_used_at=_iso(now), version=session.version + 1)
            )
            conn.commit()
        if result.rowcount == 0:
            raise StaleSessionError(session.id)
        return replace(session, refresh_token=new_token, last_used_at=now, version=session.version + 1)

    def deactivate(self, account_id: str, refresh_token: str) -> int:
        """Deactivate the account's session holding this token. Idempotent."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _sessions.update()
                .where((_sessions.c.account_id == account_id) & (_sessions.c.refresh_token == refresh_token))
                .values(is_active=0)
            )
            conn.commit()
        return result.rowcount

    def deactivate_all(self, account_id: str) -> int:
        """Deactivate every session of the account. Returns the number of rows touched."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _sessions.update()
                .where((_sessions.c.account_id == account_id) & (_sessions.c.is_active == 1))
                .values(is_active=0)
            )
            conn.commit()
        return result.rowcount


# ---------------------------------------------------------------------------
# Password reset tokens
# ---------------------------------------------------------------------------


class ResetTokenStore:
    """Repository for single-use password reset tokens."""

    def __init__(self, db: AuthDatabase) -> None:
        self.engine = db.engine

    def create(self, account_id: str, token: str, expires_at: datetime, now: datetime) -> PasswordResetToken:
        record = PasswordResetToken(
            id=_new_id(),
            account_id=account_id,
            token=token,
            expires_at=expires_at,
            created_at=now,
        )
        with self.engine.connect() as conn:
            conn.execute(
                _reset_tokens.insert().values(
                    id=record.id,
                    account_id=account_id,
                    token=token,
                    expires_at=_iso(expires_at),
                    is_used=0,
                    created_at=_iso(now),
                )
            )
            conn.commit()
        return record

    def find_unused_by_token(self, token: str) -> PasswordResetToken | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                _reset_tokens.select().where((_reset_tokens.c.token == token) & (_reset_tokens.c.is_used == 0))
            ).fetchone()
        return _row_to_reset_token(row) if row is not None else None

    def list_for_account(self, account_id: str) -> list[PasswordResetToken]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _reset_tokens.select()
                .where(_reset_tokens.c.account_id == account_id)
                .order_by(_reset_tokens.c.created_at)
            ).fetchall()
        return [_row_to_reset_token(r) for r in rows]

    def mark_used(self, token_id: str, now: datetime) -> bool:
        """Consume a token. Returns False if it was already used."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _reset_tokens.update()
                .where((_reset_tokens.c.id == token_id) & (_reset_tokens.c.is_used == 0))
                .values(is_used=1, used_at=_iso(now))
            )
            conn.commit()
        return result.rowcount > 0


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        role=row.role,
        status=row.status,
        first_name=row.first_name,
        last_name=row.last_name,
        phone=row.phone,
        avatar_url=row.avatar_url,
        failed_login_attempts=row.failed_login_attempts or 0,
        locked_until=_parse(row.locked_until),
        last_login_at=_parse(row.last_login_at),
        email_verified_at=_parse(row.email_verified_at),
        created_at=_parse(row.created_at),
        updated_at=_parse(row.updated_at),
    )


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        account_id=row.account_id,
        refresh_token=row.refresh_token,
        expires_at=_parse(row.expires_at),
        is_active=bool(row.is_active),
        last_used_at=_parse(row.last_used_at),
        created_at=_parse(row.created_at),
        version=row.version,
    )


def _row_to_reset_token(row) -> PasswordResetToken:
    return PasswordResetToken(
        id=row.id,
        account_id=row.account_id,
        token=row.token,
        expires_at=_parse(row.expires_at),
        is_used=bool(row.is_used),
        used_at=_parse(row.used_at),
        created_at=_parse(row.created_at),
    )
