"""Public health check — database and email provider connectivity."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.v1.deps import get_db, get_notifier
from storefront.core.config import settings
from storefront.services.notifications import NotificationSender

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    db: bool
    email: bool
    version: str


@router.get("/health", response_model=HealthResponse)
async def health(
    db: AsyncSession = Depends(get_db),
    notifier: NotificationSender = Depends(get_notifier),
) -> HealthResponse:
    result = HealthResponse(db=False, email=False, version=settings.VERSION)

    try:
        await db.execute(select(1))
        result.db = True
    except SQLAlchemyError as e:
        logger.error("Health check DB failure: %s", e)

    result.email = await notifier.check_connection()
    return result
