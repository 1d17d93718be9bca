"""
tests/conftest.py -- Shared test fixtures for the BizHub auth tests.

This module provides:
  - clock / notifier: a FrozenClock and a RecordingNotifier (tests/support.py)
  - service: AuthService over a private in-memory DB with a frozen clock
  - api_client: TestClient over the real app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
for api_client because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. Unit-level fixtures run in one thread and use :memory:.

Environment variables must be set before any api/auth/core import so
get_settings() generates dev secrets, accepts the TestClient host, and does
not rate-limit the repeated logins these tests perform.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.service import AuthService
from auth.store import AuthDatabase
from auth.tokens import utc_now
from tests.support import FrozenClock, RecordingNotifier, build_service

# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def db() -> Generator[AuthDatabase, None, None]:
    database = AuthDatabase("sqlite:///:memory:")
    yield database
    database.close()


@pytest.fixture
def service(db: AuthDatabase, clock: FrozenClock, notifier: RecordingNotifier) -> AuthService:
    return build_service(db, clock, notifier)


# ---------------------------------------------------------------------------
# Integration fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


def _patch_lifespan(db: AuthDatabase, auth_service: AuthService):
    """Return a lifespan that wires the test DB and service into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.auth_db = db
        app.state.auth_service = auth_service
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, AuthService, RecordingNotifier], None, None]:
    """Yield (client, service, notifier) for API integration tests.

    The service uses the wall clock: HTTP tests exercise routing, envelopes
    and status codes; time-dependent behaviour is covered at the service level.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    db = AuthDatabase(f"sqlite:///file:test_auth_{suffix}?mode=memory&cache=shared&uri=true")
    notifier = RecordingNotifier()
    auth_service = build_service(db, utc_now, notifier)

    app.router.lifespan_context = _patch_lifespan(db, auth_service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, auth_service, notifier

    db.close()
