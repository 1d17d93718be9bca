"""
auth/errors.py -- Error taxonomy raised by the auth service.

Each class carries the HTTP status and the stable machine-readable code the
API layer renders in its error envelope. The service never builds HTTP
responses itself; api/main.py maps AuthError to JSON.

Unauthorized failures are deliberately coarse: bad credentials, inactive
accounts, and invalid or expired tokens all surface as UnauthorizedError so
callers cannot tell which check failed.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for auth-layer failures mapped to HTTP responses."""

    status_code: int = 400
    code: str = "bad_request"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequestError(AuthError):
    status_code = 400
    code = "bad_request"


class UnauthorizedError(AuthError):
    status_code = 401
    code = "unauthorized"


class ForbiddenError(AuthError):
    status_code = 403
    code = "forbidden"


class NotFoundError(AuthError):
    status_code = 404
    code = "not_found"


class ConflictError(AuthError):
    status_code = 409
    code = "conflict"
