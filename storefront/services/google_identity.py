"""
Google ID token verification for "Continue with Google".

The browser obtains an ID token from Google Identity Services and posts
it to ``/auth/google``. The token's signature, audience and expiry are
checked against Google's published certificates.
"""

from __future__ import annotations

import asyncio

from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from pydantic import BaseModel


class GoogleIdentity(BaseModel):
    email: str
    name: str | None = None


async def verify_google_id_token(token: str, client_id: str, timeout: float) -> GoogleIdentity:
    """Return the verified identity behind *token*.

    Raises ``ValueError`` if Google rejects the token or the account email
    is not verified, ``google.auth.exceptions.GoogleAuthError`` if the
    certificates cannot be fetched and ``asyncio.TimeoutError`` past
    *timeout*.
    """
    # Certificate fetch is blocking I/O
    claims = await asyncio.wait_for(
        asyncio.to_thread(
            id_token.verify_oauth2_token, token, google_requests.Request(), client_id
        ),
        timeout,
    )
    email = claims.get("email")
    if not email or not claims.get("email_verified"):
        raise ValueError("Google account has no verified email")
    return GoogleIdentity(email=email, name=claims.get("name"))
