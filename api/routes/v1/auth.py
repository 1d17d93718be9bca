"""
api/routes/v1/auth.py -- Authentication and account management REST endpoints.

Routes:
  POST   /api/v1/auth/register          -- create account; returns token pair (201)
  POST   /api/v1/auth/login             -- password login; returns token pair
  POST   /api/v1/auth/refresh           -- rotate refresh token; returns new pair
  POST   /api/v1/auth/logout            -- deactivate one session (requires auth)
  POST   /api/v1/auth/logout-all        -- deactivate every session (requires auth)
  POST   /api/v1/auth/forgot-password   -- issue reset token if email exists (204 always)
  POST   /api/v1/auth/reset-password    -- consume reset token, set password (204)
  GET    /api/v1/auth/me                -- current account (requires auth)
  PATCH  /api/v1/auth/accounts/{id}     -- change status/role (super_admin only)
  DELETE /api/v1/auth/accounts/{id}     -- delete account and its sessions (super_admin only)

Security:
  [H2] login and forgot-password are rate-limited per IP.
  [C1] Unknown emails are indistinguishable from wrong passwords (login) and
       from known emails (forgot-password).
  [M4] Admins cannot change or delete their own account through these routes.
  [M5] Cache-Control: no-store on every response carrying tokens.

AuthError raised by the service is rendered by the handler in api/main.py;
routes do not catch it.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import (
    AccountPatch,
    AccountResponse,
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
)
from auth.dependencies import get_auth_service, get_current_account, require_roles
from auth.models import Account, Role, public_account_view
from auth.service import AuthResult, AuthService

# Auth policy:
# - register, login, refresh, forgot-password, reset-password: public
# - logout, logout-all, me: requires a valid access token
# - accounts/{id}: requires super_admin
router = APIRouter()

_require_super_admin = require_roles(Role.super_admin.value)


def _token_response(result: AuthResult, status_code: int = 200) -> JSONResponse:
    body = AuthResponse(
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        token_type=result.tokens.token_type,
        expires_in=result.tokens.expires_in,
        account=AccountResponse.from_view(result.account),
    )
    resp = JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(body: RegisterRequest, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """Create a pending-verification account and return its first token pair."""
    result = service.register(
        body.email,
        body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        phone=body.phone,
        role=body.role.value,
    )
    return _token_response(result, status_code=201)


@limiter.limit(login_rate_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Wrong password and unknown email return the same 401 body. A locked
    account returns 401 naming the lock expiry.
    """
    result = get_auth_service(request).login(body.email, body.password)
    return _token_response(result)


@router.post("/auth/refresh", response_model=AuthResponse)
def refresh(body: RefreshRequest, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """Exchange a refresh token for a new pair. The presented token is spent."""
    return _token_response(service.refresh(body.refresh_token))


@limiter.limit(login_rate_limit)  # [H2]
@router.post("/auth/forgot-password", status_code=204)
def forgot_password(request: Request, body: ForgotPasswordRequest) -> Response:
    """Always 204 -- the response never reveals whether the email is registered [C1]."""
    get_auth_service(request).forgot_password(body.email)
    return Response(status_code=204)


@router.post("/auth/reset-password", status_code=204)
def reset_password(body: ResetPasswordRequest, service: AuthService = Depends(get_auth_service)) -> Response:
    """Set a new password with a reset token and log the account out everywhere."""
    service.reset_password(body.token, body.password)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", status_code=204)
def logout(
    body: RefreshRequest,
    current: Account = Depends(get_current_account),
    service: AuthService = Depends(get_auth_service),
) -> Response:
    """Deactivate the session holding the given refresh token. Idempotent."""
    service.logout(current.id, body.refresh_token)
    return Response(status_code=204)


@router.post("/auth/logout-all", status_code=204)
def logout_all(
    current: Account = Depends(get_current_account),
    service: AuthService = Depends(get_auth_service),
) -> Response:
    """Deactivate every session of the current account."""
    service.logout_all(current.id)
    return Response(status_code=204)


@router.get("/auth/me", response_model=AccountResponse)
def me(current: Account = Depends(get_current_account)) -> AccountResponse:
    """Return the public view of the authenticated account."""
    return AccountResponse.from_view(public_account_view(current))


# ---------------------------------------------------------------------------
# Account administration (super_admin only)
# ---------------------------------------------------------------------------


@router.patch("/auth/accounts/{account_id}", response_model=AccountResponse)
def update_account(
    account_id: str,
    body: AccountPatch,
    current: Account = Depends(_require_super_admin),
    service: AuthService = Depends(get_auth_service),
) -> AccountResponse:
    """Change an account's status or role. Activation lets a pending account log in."""
    _block_self_change(current, account_id)
    updated = service.update_account(
        account_id,
        status=body.status.value if body.status is not None else None,
        role=body.role.value if body.role is not None else None,
    )
    return AccountResponse.from_view(public_account_view(updated))


@router.delete("/auth/accounts/{account_id}", status_code=204)
def delete_account(
    account_id: str,
    current: Account = Depends(_require_super_admin),
    service: AuthService = Depends(get_auth_service),
) -> Response:
    """Delete an account together with its sessions and reset tokens."""
    _block_self_change(current, account_id)
    service.delete_account(account_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _block_self_change(current: Account, account_id: str) -> None:
    # [M4] no recovery path if the only super_admin demotes or deletes itself
    if current.id == account_id:
        raise HTTPException(
            status_code=400,
            detail={"code": "self_modification", "message": "You cannot change your own account here."},
        )
