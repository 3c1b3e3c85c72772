"""
User model — credentials, email verification state and role.

A verified user never carries a pending code: ``is_verified`` implies
``otp`` and ``otp_expires`` are both NULL.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from storefront.db.base import Base

ROLE_CUSTOMER = "CUSTOMER"
ROLE_ADMIN = "ADMIN"
ROLES = {ROLE_CUSTOMER, ROLE_ADMIN}


class User(Base):
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    # NULL for accounts that never set a password (cannot use password login)
    hashed_password: str | None = Column(String(128), nullable=True)  # type: ignore[assignment]
    role: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default=ROLE_CUSTOMER,
        server_default=ROLE_CUSTOMER,
    )  # CUSTOMER | ADMIN
    is_verified: bool = Column(Boolean, nullable=False, default=False, server_default="false")  # type: ignore[assignment]
    otp: str | None = Column(String(12), nullable=True)  # type: ignore[assignment]
    otp_expires: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    phone: str | None = Column(String(30), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} verified={self.is_verified}>"
