"""
API request and response models for BizHub REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request models only bound field sizes. Business rules (email shape, password
strength, which roles may self-register) are enforced by auth/validation.py
inside the service so every caller gets the same checks.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import PUBLIC_ACCOUNT_FIELDS, AccountStatus, Role

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    No whitespace stripping: the password must reach the hasher exactly as
    login will later receive it.
    """

    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=128)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=30)
    role: Role = Role.business_owner


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class RefreshRequest(BaseModel):
    """Request body for POST /refresh and POST /logout."""

    refresh_token: str = Field(min_length=1, max_length=2048)


class ForgotPasswordRequest(BaseModel):
    email: str = Field(min_length=1, max_length=255)


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1, max_length=128)
    password: str = Field(min_length=1, max_length=128)


class AccountPatch(BaseModel):
    """Request body for PATCH /api/v1/auth/accounts/{id}. Admin only."""

    status: Optional[AccountStatus] = None
    role: Optional[Role] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AccountResponse(BaseModel):
    """Public account view. Field set mirrors auth.models.PUBLIC_ACCOUNT_FIELDS."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    role: str
    status: str
    email_verified_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_view(cls, view: dict) -> "AccountResponse":
        return cls(**{name: view[name] for name in PUBLIC_ACCOUNT_FIELDS})


class AuthResponse(BaseModel):
    """Token pair returned by register, login and refresh."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    account: AccountResponse


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
