"""Unit tests for core/config.py -- signing-secret and cost-factor policy."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings

GOOD_ACCESS = "k" * 32
GOOD_REFRESH = "m" * 32


def test_debug_mode_generates_distinct_secrets():
    settings = Settings(debug=True, access_token_secret="", refresh_token_secret="")
    assert len(settings.access_token_secret) >= 32
    assert len(settings.refresh_token_secret) >= 32
    assert settings.access_token_secret != settings.refresh_token_secret


def test_production_requires_secrets():
    with pytest.raises(ValidationError, match="ACCESS_TOKEN_SECRET is required"):
        Settings(debug=False, access_token_secret="", refresh_token_secret=GOOD_REFRESH)


def test_short_secret_rejected():
    with pytest.raises(ValidationError, match="at least 32"):
        Settings(debug=False, access_token_secret="short", refresh_token_secret=GOOD_REFRESH)


def test_equal_secrets_rejected():
    with pytest.raises(ValidationError, match="must differ"):
        Settings(debug=False, access_token_secret=GOOD_ACCESS, refresh_token_secret=GOOD_ACCESS)


def test_bcrypt_rounds_bounds():
    with pytest.raises(ValidationError, match="BCRYPT_ROUNDS"):
        Settings(debug=True, bcrypt_rounds=3)


def test_defaults():
    settings = Settings(debug=False, access_token_secret=GOOD_ACCESS, refresh_token_secret=GOOD_REFRESH)
    assert settings.access_token_expire_seconds == 900
    assert settings.refresh_token_expire_days == 7
    assert settings.max_login_attempts == 5
    assert settings.lockout_minutes == 30
    assert settings.reset_token_expire_seconds == 3600
