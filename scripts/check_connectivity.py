"""
Operator diagnostic: checks database and email provider connectivity
with the current settings. Exits non-zero if either check fails.

    python -m scripts.check_connectivity
"""

from __future__ import annotations

import asyncio
import logging
import sys

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from storefront.core.config import settings
from storefront.db.session import engine
from storefront.services.notifications import build_notification_sender

logging.basicConfig(level=logging.INFO, format="%(levelname)-8s | %(message)s")
logger = logging.getLogger("check_connectivity")


async def check_database() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Database unreachable: %s", exc)
        return False
    finally:
        await engine.dispose()
    logger.info("Database reachable")
    return True


async def check_email() -> bool:
    sender = build_notification_sender(settings)
    ok = await sender.check_connection()
    if ok:
        logger.info("Email backend '%s' reachable", settings.EMAIL_BACKEND)
    else:
        logger.error("Email backend '%s' failed its self-check", settings.EMAIL_BACKEND)
    return ok


async def main() -> int:
    results = [await check_database(), await check_email()]
    return 0 if all(results) else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
