#!/usr/bin/env python3
"""
BizHub auth -- account administration CLI.

Public registration creates accounts in pending_verification and can never
grant super_admin, so the first administrator and status changes outside the
API go through this tool.

Usage:
  python main.py create-admin --email admin@example.com --password 'S3cure!pass'
  python main.py set-status alice@example.com active
  python main.py set-status alice@example.com suspended

Environment variables:
  DATABASE_URL          SQLAlchemy URL of the auth database.
  ACCESS_TOKEN_SECRET / REFRESH_TOKEN_SECRET
                        Required unless DEBUG=true (see core/config.py).
"""

import argparse
import logging
import sys
from typing import Optional

from auth.errors import AuthError, ConflictError, NotFoundError
from auth.models import Account, AccountStatus, Role
from auth.service import AuthService
from auth.store import AuthDatabase
from auth.tokens import utc_now
from auth.validation import validate_email, validate_password_strength
from core.config import get_settings

logger = logging.getLogger("bizhub.cli")


def create_admin(service: AuthService, email: str, password: str) -> Account:
    """Create a new active super_admin.

    Refuses an email that is already registered: promoting it would hand
    super_admin to whoever registered that address, along with any access
    token they still hold.
    """
    validate_email(email)
    validate_password_strength(password)

    if service.accounts.get_by_email(email) is not None:
        raise ConflictError(f"An account with email {email!r} already exists; not promoting it")

    now = utc_now()
    account = service.accounts.create_account(
        Account(
            email=email,
            password_hash=service.hasher.hash(password),
            role=Role.super_admin.value,
            status=AccountStatus.active.value,
            email_verified_at=now,
        ),
        now,
    )
    print(f"  [+] Created super_admin {email} (id {account.id})")
    logger.info("Created super_admin account %s", account.id)
    return account


def set_status(service: AuthService, email: str, status: str) -> Account:
    account = service.accounts.get_by_email(email)
    if account is None:
        raise NotFoundError(f"No account with email {email!r}")
    updated = service.update_account(account.id, status=status)
    print(f"  [+] {email} is now {updated.status}")
    logger.info("Set status of account %s to %s", updated.id, updated.status)
    return updated


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bizhub-auth", description="BizHub auth account administration")
    sub = parser.add_subparsers(dest="command", required=True)

    admin = sub.add_parser("create-admin", help="create a new super_admin account")
    admin.add_argument("--email", required=True)
    admin.add_argument("--password", required=True)

    status = sub.add_parser("set-status", help="change an account's lifecycle status")
    status.add_argument("email")
    status.add_argument("status", choices=[s.value for s in AccountStatus])
    return parser


def main(argv: Optional[list[str]] = None, service: Optional[AuthService] = None) -> int:
    args = build_parser().parse_args(argv)

    db = None
    if service is None:
        settings = get_settings()
        db = AuthDatabase(settings.database_url)
        service = AuthService.from_settings(settings, db)

    try:
        if args.command == "create-admin":
            create_admin(service, args.email, args.password)
        elif args.command == "set-status":
            set_status(service, args.email, args.status)
    except AuthError as exc:
        print(f"  [!] {exc.message}")
        return 1
    finally:
        if db is not None:
            db.close()
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)-5s %(name)s %(message)s")
    sys.exit(main())
