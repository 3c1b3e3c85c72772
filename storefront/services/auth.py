"""
Account authentication and email verification.

Per-account states: no record -> UNVERIFIED (is_verified=False, code
pending) -> VERIFIED (is_verified=True, no code). Signup is the only
multi-step write: the user row is committed first, the verification email
is sent second, and the row is deleted again if the email cannot be
delivered so the caller can retry from scratch. Google sign-in skips the
UNVERIFIED state entirely.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from google.auth.exceptions import GoogleAuthError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.background import BackgroundTasks

from storefront.core.config import Settings, settings as default_settings
from storefront.core.errors import (
    DuplicateAccount,
    GoogleSignInUnavailable,
    InvalidCredentials,
    InvalidGoogleToken,
    InvalidOrExpiredCode,
    UserNotFound,
    VerificationDeliveryFailed,
    VerificationRequired,
    store_boundary,
)
from storefront.core.otp import generate_otp, otp_matches, utcnow
from storefront.core.security import create_access_token, get_password_hash, verify_password
from storefront.models.user import ROLE_CUSTOMER, User
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
from storefront.services.google_identity import verify_google_id_token
from storefront.services.notifications import (
    DeliveryError,
    NotificationSender,
    deliver,
    deliver_in_background,
    password_reset_message,
    verification_message,
)
from storefront.services.user_store import UserStore

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_ACK = "If an account exists for that email, a reset code has been sent."


class AuthService:
    def __init__(
        self,
        users: UserStore,
        notifier: NotificationSender,
        settings: Settings = default_settings,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.users = users
        self.notifier = notifier
        self.settings = settings
        self.clock = clock

    # ── helpers ─────────────────────────────────────────────────────
    def _issue_session(self, user: User) -> AuthResponse:
        token = create_access_token(user.id, user.role, user.email)
        return AuthResponse(token=token, user=UserRead.model_validate(user))

    async def _send_code(self, user: User, code: str) -> None:
        subject, body = verification_message(
            self.settings.STORE_NAME, code, self.settings.OTP_EXPIRE_MINUTES
        )
        await deliver(
            self.notifier, user.email, subject, body, self.settings.EMAIL_TIMEOUT_SECONDS
        )

    async def _compensate_signup(self, user_id: int) -> None:
        # Best effort, not retried
        try:
            await self.users.delete(user_id)
        except SQLAlchemyError:
            logger.exception("Rollback of unverified user %s failed", user_id)
        else:
            logger.info("Rolled back signup of user %s", user_id)

    # ── operations ──────────────────────────────────────────────────
    @store_boundary
    async def signup(self, data: SignupRequest) -> SignupResponse:
        if await self.users.find_by_email(data.email) is not None:
            raise DuplicateAccount()

        hashed = get_password_hash(data.password)
        code, expires = generate_otp(self.clock())
        try:
            user = await self.users.create(
                name=data.name,
                email=data.email,
                hashed_password=hashed,
                role=ROLE_CUSTOMER,
                is_verified=False,
                otp=code,
                otp_expires=expires,
            )
        except IntegrityError as exc:
            # Lost a concurrent signup race; the unique index decided
            raise DuplicateAccount() from exc
        logger.info("User %s signed up, pending verification", user.id)

        try:
            await self._send_code(user, code)
        except DeliveryError as exc:
            logger.warning("Verification email for user %s failed: %s", user.id, exc.reason)
            await self._compensate_signup(user.id)
            raise VerificationDeliveryFailed() from exc

        return SignupResponse(
            email=user.email,
            message="Account created. Check your email for the verification code.",
        )

    @store_boundary
    async def login(self, data: LoginRequest) -> AuthResponse:
        user = await self.users.find_by_email(data.email)
        hashed = user.hashed_password if user is not None else None
        if not verify_password(data.password, hashed) or user is None:
            raise InvalidCredentials()

        if not user.is_verified:
            code, expires = generate_otp(self.clock())
            await self.users.update(user, otp=code, otp_expires=expires)
            try:
                await self._send_code(user, code)
            except DeliveryError as exc:
                logger.warning("Verification email for user %s failed: %s", user.id, exc.reason)
                raise VerificationDeliveryFailed() from exc
            logger.info("Login for user %s held until email is verified", user.id)
            raise VerificationRequired(user.email)

        return self._issue_session(user)

    @store_boundary
    async def verify_email(self, data: VerifyEmailRequest) -> AuthResponse:
        user = await self.users.find_by_email(data.email)
        if user is None:
            raise UserNotFound()
        if not otp_matches(user.otp, user.otp_expires, data.otp, self.clock()):
            raise InvalidOrExpiredCode()

        user = await self.users.update(user, is_verified=True, otp=None, otp_expires=None)
        logger.info("User %s verified their email", user.id)
        return self._issue_session(user)

    async def forgot_password(
        self, data: ForgotPasswordRequest, background: BackgroundTasks
    ) -> MessageResponse:
        """Issue a reset code without revealing whether the account exists.

        The code is stored before returning; the email goes out in a
        background task whose failure is only logged.
        """
        ack = MessageResponse(message=FORGOT_PASSWORD_ACK)
        try:
            user = await self.users.find_by_email(data.email)
            if user is None:
                return ack
            code, expires = generate_otp(self.clock())
            await self.users.update(user, otp=code, otp_expires=expires)
        except SQLAlchemyError:
            logger.exception("Could not record password reset request")
            return ack

        subject, body = password_reset_message(
            self.settings.STORE_NAME, code, self.settings.OTP_EXPIRE_MINUTES
        )
        background.add_task(
            deliver_in_background,
            self.notifier,
            user.email,
            subject,
            body,
            self.settings.EMAIL_TIMEOUT_SECONDS,
            "password reset",
        )
        return ack

    @store_boundary
    async def reset_password(self, data: ResetPasswordRequest) -> MessageResponse:
        user = await self.users.find_by_email(data.email)
        if user is None or not otp_matches(
            user.otp, user.otp_expires, data.otp, self.clock()
        ):
            raise InvalidOrExpiredCode()

        # Knowing the code proves mailbox ownership, so this also verifies
        await self.users.update(
            user,
            hashed_password=get_password_hash(data.new_password),
            otp=None,
            otp_expires=None,
            is_verified=True,
        )
        logger.info("User %s reset their password", user.id)
        return MessageResponse(message="Password updated. You can now log in.")

    @store_boundary
    async def google_sign_in(self, data: GoogleSignInRequest) -> AuthResponse:
        """Sign in with a Google ID token, creating the account on first use.

        Google has already verified the mailbox, so new accounts start out
        VERIFIED and without a password, and a pending code on an existing
        unverified account is cleared.
        """
        if not self.settings.GOOGLE_CLIENT_ID:
            raise GoogleSignInUnavailable()
        try:
            identity = await verify_google_id_token(
                data.token, self.settings.GOOGLE_CLIENT_ID, self.settings.GOOGLE_TIMEOUT_SECONDS
            )
        except ValueError as exc:
            logger.info("Rejected Google ID token: %s", exc)
            raise InvalidGoogleToken() from exc
        except (GoogleAuthError, asyncio.TimeoutError) as exc:
            logger.warning("Google token verification unavailable: %s", exc)
            raise GoogleSignInUnavailable("Google sign-in is temporarily unavailable") from exc

        user = await self.users.find_by_email(identity.email)
        if user is None:
            try:
                user = await self.users.create(
                    name=identity.name or identity.email.split("@")[0],
                    email=identity.email,
                    hashed_password=None,
                    role=ROLE_CUSTOMER,
                    is_verified=True,
                )
            except IntegrityError:
                # A concurrent first sign-in created it
                user = await self.users.find_by_email(identity.email)
                if user is None:
                    raise
            else:
                logger.info("Created account %s from Google sign-in", user.id)
        elif not user.is_verified:
            user = await self.users.update(user, is_verified=True, otp=None, otp_expires=None)
            logger.info("User %s verified through Google sign-in", user.id)

        return self._issue_session(user)

    @store_boundary
    async def get_profile(self, identity: TokenPayload) -> User:
        user = await self.users.find_by_id(identity.user_id)
        if user is None:
            raise UserNotFound()
        return user

    @store_boundary
    async def update_profile(self, identity: TokenPayload, data: ProfileUpdate) -> User:
        user = await self.get_profile(identity)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if changes:
            user = await self.users.update(user, **changes)
        return user

    @store_boundary
    async def provision_user(self, data: UserCreate) -> User:
        """Create an account that is already verified (admin tooling)."""
        if await self.users.find_by_email(data.email) is not None:
            raise DuplicateAccount()
        try:
            user = await self.users.create(
                name=data.name,
                email=data.email,
                hashed_password=get_password_hash(data.password),
                role=data.role,
                is_verified=True,
            )
        except IntegrityError as exc:
            raise DuplicateAccount() from exc
        logger.info("Provisioned %s account %s", user.role, user.id)
        return user
