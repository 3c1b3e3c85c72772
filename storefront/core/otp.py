"""
One-time verification codes.

Pure helpers: nothing here touches the store or the clock unless asked.
"""

from __future__ import annotations

import hmac
import secrets
from datetime import datetime, timedelta, timezone

from storefront.core.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(ts: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def generate_otp(now: datetime | None = None) -> tuple[str, datetime]:
    """Return a fresh 6-digit code and the moment it stops being valid.

    The first digit is never zero so the code survives a round trip
    through a JSON number.
    """
    code = str(100_000 + secrets.randbelow(900_000))
    expires = (now or utcnow()) + timedelta(minutes=settings.OTP_EXPIRE_MINUTES)
    return code, expires


def otp_matches(
    stored: str | int | None,
    expires: datetime | None,
    supplied: str | int | None,
    now: datetime | None = None,
) -> bool:
    """Check a submitted code against the stored one.

    Both sides are compared as trimmed strings, so ``123456`` and
    ``"123456 "`` are equal. A missing stored code or expiry never matches.
    """
    if stored is None or expires is None or supplied is None:
        return False
    if _as_utc(expires) <= (now or utcnow()):
        return False
    expected = str(stored).strip()
    given = str(supplied).strip()
    if not expected or not given:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), given.encode("utf-8"))
