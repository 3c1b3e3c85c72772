"""Pydantic schemas for account operations."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, field_validator

from storefront.models.user import ROLE_CUSTOMER, ROLES

_MIN_PASSWORD_LENGTH = 6


def _clean_email(v: str) -> str:
    # Emails are case-sensitive keys; only surrounding whitespace is dropped
    v = v.strip()
    if "@" not in v or v.startswith("@") or v.endswith("@"):
        raise ValueError("Invalid email address")
    if len(v) > 320:
        raise ValueError("Email must not exceed 320 characters")
    return v


def _check_password(v: str) -> str:
    if len(v) < _MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {_MIN_PASSWORD_LENGTH} characters long")
    if len(v.encode("utf-8")) > 72:
        raise ValueError("Password must not exceed 72 bytes")
    return v


def _clean_code(v: str | int) -> str:
    v = str(v).strip()
    if not v:
        raise ValueError("Code must not be empty")
    return v


class _EmailMixin(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _clean_email(v)


# ── Requests ────────────────────────────────────────────────────────
class SignupRequest(_EmailMixin):
    name: str
    password: str

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be empty")
        if len(v) > 200:
            raise ValueError("Name must not exceed 200 characters")
        return v

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        return _check_password(v)


class LoginRequest(_EmailMixin):
    password: str


class VerifyEmailRequest(_EmailMixin):
    # Codes may arrive as JSON numbers or strings
    otp: str | int

    @field_validator("otp")
    @classmethod
    def _otp(cls, v: str | int) -> str:
        return _clean_code(v)


class ForgotPasswordRequest(_EmailMixin):
    pass


class ResetPasswordRequest(_EmailMixin):
    otp: str | int
    new_password: str

    @field_validator("otp")
    @classmethod
    def _otp(cls, v: str | int) -> str:
        return _clean_code(v)

    @field_validator("new_password")
    @classmethod
    def _password(cls, v: str) -> str:
        return _check_password(v)


class GoogleSignInRequest(BaseModel):
    """ID token (``credential``) returned by Google Identity Services."""

    token: str

    @field_validator("token")
    @classmethod
    def _token(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Token must not be empty")
        return v


class ProfileUpdate(BaseModel):
    name: str | None = None
    phone: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Name must not be empty")
        return v

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: str | None) -> str | None:
        if v is not None and len(v.strip()) > 30:
            raise ValueError("Phone must not exceed 30 characters")
        return v.strip() if v is not None else v


class UserCreate(_EmailMixin):
    """Admin-provisioned account."""

    password: str
    name: str | None = None
    role: str = ROLE_CUSTOMER

    @field_validator("role")
    @classmethod
    def _validate_role(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in ROLES:
            raise ValueError(f"Role must be one of: {sorted(ROLES)}")
        return v

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        return _check_password(v)


# ── Responses ───────────────────────────────────────────────────────
class UserRead(BaseModel):
    """Public view of a user — never includes the hash or the code."""

    id: int
    name: str | None
    email: str
    role: str
    is_verified: bool
    phone: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class SignupResponse(BaseModel):
    requires_verification: bool = True
    email: str
    message: str


class MessageResponse(BaseModel):
    success: bool = True
    message: str
