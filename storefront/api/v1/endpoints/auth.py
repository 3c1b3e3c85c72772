"""
Auth endpoints — signup, email verification, login, Google sign-in,
password reset and profile.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from storefront.api.v1.deps import get_auth_service, get_token_identity, require_admin
from storefront.core.config import settings
from storefront.core.rate_limit import limiter
from storefront.models.user import User
from storefront.schemas.token import AuthResponse, TokenPayload
from storefront.schemas.user import (
    ForgotPasswordRequest,
    GoogleSignInRequest,
    LoginRequest,
    MessageResponse,
    ProfileUpdate,
    ResetPasswordRequest,
    SignupRequest,
    SignupResponse,
    UserCreate,
    UserRead,
    VerifyEmailRequest,
)
from storefront.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", response_model=SignupResponse, status_code=201)
async def signup(
    body: SignupRequest,
    service: AuthService = Depends(get_auth_service),
) -> SignupResponse:
    """Create an unverified account and email it a verification code."""
    return await service.signup(body)


@router.post("/login", response_model=AuthResponse)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Exchange email + password for a session token.

    Unverified accounts get a fresh code by email and a 403 with
    ``requires_verification`` instead of a token.
    """
    return await service.login(body)


@router.post("/verify-email", response_model=AuthResponse)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def verify_email(
    request: Request,
    body: VerifyEmailRequest,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    return await service.verify_email(body)


@router.post("/google", response_model=AuthResponse)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def google_sign_in(
    request: Request,
    body: GoogleSignInRequest,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Exchange a Google ID token for a session token."""
    return await service.google_sign_in(body)


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Always answers with the same acknowledgment."""
    return await service.forgot_password(body, background_tasks)


@router.post("/reset-password", response_model=MessageResponse)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    return await service.reset_password(body)


@router.get("/me", response_model=UserRead)
async def read_current_user(
    identity: TokenPayload = Depends(get_token_identity),
    service: AuthService = Depends(get_auth_service),
) -> User:
    """Return profile of the currently authenticated user."""
    return await service.get_profile(identity)


@router.put("/profile", response_model=UserRead)
async def update_profile(
    body: ProfileUpdate,
    identity: TokenPayload = Depends(get_token_identity),
    service: AuthService = Depends(get_auth_service),
) -> User:
    return await service.update_profile(identity, body)


# ── User management (admin-only) ───────────────────────────────────
@router.post("/users", response_model=UserRead, status_code=201)
async def create_user(
    body: UserCreate,
    _admin: TokenPayload = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
) -> User:
    """Create a verified account with any role (admin only)."""
    return await service.provision_user(body)
