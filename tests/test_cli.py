"""Tests for the account administration CLI in main.py."""

from __future__ import annotations

import pytest

from auth.service import AuthService
from main import main
from tests.support import PASSWORD


def test_create_admin_creates_active_super_admin(service: AuthService, capsys) -> None:
    assert main(["create-admin", "--email", "admin@example.com", "--password", PASSWORD], service=service) == 0

    account = service.accounts.get_by_email("admin@example.com")
    assert account.role == "super_admin"
    assert account.status == "active"
    assert service.login("admin@example.com", PASSWORD).account["role"] == "super_admin"
    assert "[+] Created super_admin admin@example.com" in capsys.readouterr().out


def test_create_admin_refuses_existing_account(service: AuthService, capsys) -> None:
    """A self-registered account with the admin email must not be promoted."""
    result = service.register("owner@example.com", PASSWORD)
    code = main(["create-admin", "--email", "owner@example.com", "--password", "Adm1n!Passw0rd"], service=service)
    assert code == 1
    assert "already exists" in capsys.readouterr().out

    account = service.validate_account(result.account["id"])
    assert account.role == "business_owner"
    assert account.status == "pending_verification"
    assert service.hasher.verify(PASSWORD, account.password_hash)


def test_create_admin_weak_password_fails(service: AuthService, capsys) -> None:
    assert main(["create-admin", "--email", "admin@example.com", "--password", "weak"], service=service) == 1
    assert service.accounts.get_by_email("admin@example.com") is None
    assert "[!]" in capsys.readouterr().out


def test_set_status(service: AuthService) -> None:
    service.register("alice@example.com", PASSWORD)
    assert main(["set-status", "alice@example.com", "active"], service=service) == 0
    assert service.login("alice@example.com", PASSWORD).account["status"] == "active"


def test_set_status_unknown_email(service: AuthService, capsys) -> None:
    assert main(["set-status", "ghost@example.com", "active"], service=service) == 1
    assert "No account with email 'ghost@example.com'" in capsys.readouterr().out


def test_set_status_rejects_unknown_status(service: AuthService) -> None:
    with pytest.raises(SystemExit):
        main(["set-status", "alice@example.com", "deleted"], service=service)
