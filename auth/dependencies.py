"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Access tokens arrive in the Authorization: Bearer <token> header. All checks
(signature, expiry, account existence, status, lock) happen in
AuthService.authenticate_access_token(); this module only extracts the header
and translates failures into HTTP errors.

get_current_account() raises HTTP 401 if unauthenticated.
require_roles(*roles) wraps it and raises HTTP 403 when the account's role is
not in the list. Role comparison is exact: super_admin is not implicitly
granted access to endpoints that name other roles.

Layer rule: may import from fastapi because this module is part of the
FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, HTTPException, Request

from auth.errors import ForbiddenError, UnauthorizedError
from auth.models import Account
from auth.service import AuthService


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def get_current_account(request: Request) -> Account:
    """Require a valid access token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(account: Account = Depends(get_current_account)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return get_auth_service(request).authenticate_access_token(token)
    except UnauthorizedError as exc:
        raise HTTPException(
            status_code=401,
            detail={"code": exc.code, "message": exc.message},
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


def require_roles(*roles: str) -> Callable[..., Account]:
    """Return a dependency that admits only accounts holding one of roles.

    An empty role list admits every authenticated account.
    """
    allowed = frozenset(roles)

    def _dependency(account: Account = Depends(get_current_account)) -> Account:
        if allowed and account.role not in allowed:
            exc = ForbiddenError("Insufficient role for this operation.")
            raise HTTPException(status_code=exc.status_code, detail={"code": exc.code, "message": exc.message})
        return account

    return _dependency
