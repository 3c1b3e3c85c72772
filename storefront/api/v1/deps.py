"""
FastAPI dependencies — request identity, role guards, database session
and service wiring.

Identity comes from the bearer token alone; no store lookup happens here.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.errors import AuthorizationInvalid, AuthorizationMissing, PermissionDenied
from storefront.core.security import decode_access_token
from storefront.db.session import async_session_factory
from storefront.models.user import ROLE_ADMIN
from storefront.schemas.token import TokenPayload
from storefront.services.auth import AuthService
from storefront.services.notifications import ConsoleNotificationSender, NotificationSender
from storefront.services.order_store import OrderStore
from storefront.services.orders import OrderService
from storefront.services.user_store import UserStore

# auto_error=False so a missing header maps to our own error kind
bearer_scheme = HTTPBearer(auto_error=False)


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Notification sender (created once in the app lifespan) ──────────
def get_notifier(request: Request) -> NotificationSender:
    sender = getattr(request.app.state, "notifier", None)
    if sender is None:
        sender = ConsoleNotificationSender()
        request.app.state.notifier = sender
    return sender


# ── Services ────────────────────────────────────────────────────────
def get_auth_service(
    db: AsyncSession = Depends(get_db),
    notifier: NotificationSender = Depends(get_notifier),
) -> AuthService:
    return AuthService(UserStore(db), notifier)


def get_order_service(
    db: AsyncSession = Depends(get_db),
    notifier: NotificationSender = Depends(get_notifier),
) -> OrderService:
    return OrderService(OrderStore(db), UserStore(db), notifier)


# ── Identity ────────────────────────────────────────────────────────
def _decode(token: str) -> TokenPayload:
    payload = decode_access_token(token)
    if payload is None:
        raise AuthorizationInvalid()
    try:
        identity = TokenPayload(
            sub=payload["sub"], role=payload["role"], email=payload["email"]
        )
    except (KeyError, ValueError) as exc:
        raise AuthorizationInvalid() from exc
    # Subjects are numeric user ids
    if not identity.sub.isdigit():
        raise AuthorizationInvalid()
    return identity


async def get_token_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> TokenPayload:
    """Decode ``Authorization: Bearer <token>`` into the caller's identity."""
    if credentials is None or not credentials.credentials:
        raise AuthorizationMissing()
    return _decode(credentials.credentials)


async def get_optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> TokenPayload | None:
    """Identity when a token is sent, ``None`` for anonymous callers."""
    if credentials is None or not credentials.credentials:
        return None
    return await get_token_identity(credentials)


def require_role(*roles: str) -> Callable[..., Awaitable[TokenPayload]]:
    """Build a guard that admits callers whose token carries one of *roles*."""
    allowed = set(roles)

    async def _guard(identity: TokenPayload = Depends(get_token_identity)) -> TokenPayload:
        if identity.role not in allowed:
            raise PermissionDenied()
        return identity

    return _guard


require_admin = require_role(ROLE_ADMIN)
