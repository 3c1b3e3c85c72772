"""
Domain error taxonomy.

Every failure that crosses the service boundary is one of these. Each
carries a stable ``kind`` the client can branch on, the HTTP status it is
rendered with and a human-readable message.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StorefrontError(Exception):
    kind: str = "StorefrontError"
    status_code: int = 400
    message: str = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message

    def extra(self) -> dict[str, Any]:
        """Additional fields merged into the error body."""
        return {}


class ValidationFailed(StorefrontError):
    kind = "ValidationFailed"
    status_code = 422
    message = "Request validation failed"


# ── Accounts ────────────────────────────────────────────────────────
class DuplicateAccount(StorefrontError):
    kind = "DuplicateAccount"
    status_code = 409
    message = "An account with this email already exists"


class InvalidCredentials(StorefrontError):
    kind = "InvalidCredentials"
    status_code = 401
    message = "Incorrect email or password"


class VerificationRequired(StorefrontError):
    """Expected branch of login for unverified accounts, not a fault."""

    kind = "VerificationRequired"
    status_code = 403
    message = "Please verify your email. A new code has been sent."

    def __init__(self, email: str, message: str | None = None) -> None:
        super().__init__(message)
        self.email = email

    def extra(self) -> dict[str, Any]:
        return {"requires_verification": True, "email": self.email}


class VerificationDeliveryFailed(StorefrontError):
    kind = "VerificationDeliveryFailed"
    status_code = 502
    message = "We could not send the verification email. Please try again."


class UserNotFound(StorefrontError):
    kind = "UserNotFound"
    status_code = 404
    message = "User not found"


class InvalidOrExpiredCode(StorefrontError):
    kind = "InvalidOrExpiredCode"
    status_code = 400
    message = "Invalid or expired code"


class InvalidGoogleToken(StorefrontError):
    kind = "InvalidGoogleToken"
    status_code = 401
    message = "Google sign-in could not be verified"


class GoogleSignInUnavailable(StorefrontError):
    kind = "GoogleSignInUnavailable"
    status_code = 503
    message = "Google sign-in is not enabled"


# ── Orders ──────────────────────────────────────────────────────────
class OrderPersistenceFailed(StorefrontError):
    kind = "OrderPersistenceFailed"
    status_code = 500
    message = "The order could not be recorded. Please contact support with your payment reference."


class OrderNotFound(StorefrontError):
    kind = "OrderNotFound"
    status_code = 404
    message = "Order not found"


# ── Request context ─────────────────────────────────────────────────
class AuthorizationMissing(StorefrontError):
    kind = "AuthorizationMissing"
    status_code = 401
    message = "Authentication required"


class AuthorizationInvalid(StorefrontError):
    kind = "AuthorizationInvalid"
    status_code = 403
    message = "Invalid or expired token"


class PermissionDenied(StorefrontError):
    kind = "PermissionDenied"
    status_code = 403
    message = "You do not have permission to perform this action"


# ── Infrastructure ──────────────────────────────────────────────────
class StoreUnavailable(StorefrontError):
    kind = "StoreUnavailable"
    status_code = 503
    message = "The service is temporarily unavailable. Please try again."


class StoreConflict(StorefrontError):
    kind = "StoreConflict"
    status_code = 409
    message = "Database constraint violation"


class InternalError(StorefrontError):
    kind = "InternalError"
    status_code = 500
    message = "Internal server error"


def store_boundary(
    func: Callable[..., Awaitable[T]],
) -> Callable[..., Awaitable[T]]:
    """Translate store failures escaping a service operation into ``StoreUnavailable``."""

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return await func(*args, **kwargs)
        except SQLAlchemyError as exc:
            logger.error("Store failure during %s: %s", func.__qualname__, exc, exc_info=True)
            raise StoreUnavailable() from exc

    return wrapper
