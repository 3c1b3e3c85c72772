"""
Shared test fixtures for the storefront test suite.

Every test gets a fresh in-memory database (aiosqlite) and a recording
email sender that can be told to fail or hang.
"""

import asyncio
import os
import re
import sys
from dataclasses import dataclass
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["EMAIL_BACKEND"] = "console"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from storefront.api.v1.deps import get_db, get_notifier
from storefront.core.security import create_access_token, get_password_hash
from storefront.db.base import Base
from storefront.main import app
from storefront.models.user import ROLE_CUSTOMER, User
from storefront.services.notifications import DeliveryError

_CODE_RE = re.compile(r"\b(\d{6})\b")


@dataclass
class SentMessage:
    to: str
    subject: str
    body: str

    @property
    def code(self) -> str | None:
        match = _CODE_RE.search(self.body)
        return match.group(1) if match else None


class FakeNotifier:
    """In-memory stand-in for the email provider."""

    def __init__(self) -> None:
        self.sent: list[SentMessage] = []
        self.attempts = 0
        self.fail = False
        self.hang = False

    async def send(self, to: str, subject: str, body: str) -> None:
        self.attempts += 1
        if self.hang:
            await asyncio.sleep(3600)
        if self.fail:
            raise DeliveryError("provider rejected the message")
        self.sent.append(SentMessage(to, subject, body))

    async def check_connection(self) -> bool:
        return not self.fail

    def last_to(self, email: str) -> SentMessage:
        return [m for m in self.sent if m.to == email][-1]


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Create all tables on a private in-memory engine, drop it afterwards."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
async def async_client(session_factory, notifier) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


# ── Helpers ─────────────────────────────────────────────────────────
async def create_user(
    session_factory,
    email: str = "user@example.com",
    password: str | None = "password123",
    *,
    name: str = "Test User",
    role: str = ROLE_CUSTOMER,
    is_verified: bool = True,
    **fields,
) -> User:
    async with session_factory() as session:
        user = User(
            email=email,
            name=name,
            hashed_password=get_password_hash(password) if password else None,
            role=role,
            is_verified=is_verified,
            **fields,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


async def fetch_user(session_factory, email: str) -> User | None:
    """Read a user through a fresh session so no stale state is returned."""
    async with session_factory() as session:
        result = await session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(user.id, user.role, user.email)
    return {"Authorization": f"Bearer {token}"}
