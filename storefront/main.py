"""
Storefront API — application entry point.

This is the **only** file that assembles the app. All business logic
lives in the `services/`, `api/`, `models/` and `core/` packages.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from storefront.api.v1.api import api_router
from storefront.core.config import settings
from storefront.core.exceptions import register_exception_handlers
from storefront.core.rate_limit import limiter
from storefront.core.security import get_password_hash
from storefront.db.base import Base
from storefront.db.session import async_session_factory, engine

# Ensure all models are imported so metadata.create_all can see them
from storefront.models.order import Order, OrderItem  # noqa: F401
from storefront.models.user import ROLE_ADMIN
from storefront.services.notifications import build_notification_sender
from storefront.services.user_store import UserStore

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


async def seed_admin() -> None:
    """Create the default admin account on first run."""
    async with async_session_factory() as session:
        users = UserStore(session)
        if await users.find_by_email(settings.FIRST_ADMIN_EMAIL) is not None:
            return
        await users.create(
            email=settings.FIRST_ADMIN_EMAIL,
            hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
            name="Store Administrator",
            role=ROLE_ADMIN,
            is_verified=True,
        )
        logger.info(
            "Default admin created: %s (password: <redacted>)",
            settings.FIRST_ADMIN_EMAIL,
        )


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    await seed_admin()

    app.state.notifier = build_notification_sender(settings)
    logger.info("Email backend: %s", settings.EMAIL_BACKEND)
    if not settings.RATE_LIMIT_ENABLED:
        logger.warning("Rate limiting is disabled for login and code endpoints")

    logger.info("%s v%s started", settings.PROJECT_NAME, settings.VERSION)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Storefront accounts and checkout API",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting
    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    # Mount API v1
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return application


app = create_app()
