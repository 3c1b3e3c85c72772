"""Pydantic schemas for session tokens."""

from __future__ import annotations

from pydantic import BaseModel

from storefront.schemas.user import UserRead


class TokenPayload(BaseModel):
    """Identity decoded from a bearer token, attached to the request."""

    sub: str
    role: str
    email: str

    @property
    def user_id(self) -> int:
        return int(self.sub)


class AuthResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserRead
