"""Tests for signup, email verification and login."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from conftest import auth_headers, create_user, fetch_user
from httpx import AsyncClient

from storefront.core.config import settings
from storefront.core.security import decode_access_token

SIGNUP = {"name": "Ann", "email": "ann@x.com", "password": "pw1234"}
_SECRET_FIELDS = {"hashed_password", "password", "otp", "otp_expires"}


def _fixed_code(code: str):
    """Patch the code generator so the emailed code is known in advance."""
    return patch(
        "storefront.services.auth.generate_otp",
        return_value=(code, datetime.now(timezone.utc) + timedelta(minutes=15)),
    )


# ── Signup ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_signup_creates_unverified_user_and_emails_code(
    async_client: AsyncClient, session_factory, notifier
):
    resp = await async_client.post("/api/v1/auth/signup", json=SIGNUP)
    assert resp.status_code == 201
    data = resp.json()
    assert data["requires_verification"] is True
    assert data["email"] == "ann@x.com"
    assert "token" not in data

    user = await fetch_user(session_factory, "ann@x.com")
    assert user is not None
    assert user.is_verified is False
    assert user.role == "CUSTOMER"
    assert user.hashed_password != "pw1234"
    assert len(user.otp) == 6 and user.otp.isdigit()

    message = notifier.last_to("ann@x.com")
    assert message.code == user.otp


@pytest.mark.asyncio
async def test_signup_duplicate_email_rejected(async_client: AsyncClient, notifier):
    await async_client.post("/api/v1/auth/signup", json=SIGNUP)
    resp = await async_client.post("/api/v1/auth/signup", json=SIGNUP)
    assert resp.status_code == 409
    assert resp.json()["kind"] == "DuplicateAccount"
    assert notifier.attempts == 1


@pytest.mark.asyncio
async def test_signup_email_is_case_sensitive_key(async_client: AsyncClient):
    await async_client.post("/api/v1/auth/signup", json=SIGNUP)
    resp = await async_client.post(
        "/api/v1/auth/signup", json={**SIGNUP, "email": "Ann@x.com"}
    )
    assert resp.status_code == 201


@pytest.mark.asyncio
async def test_signup_delivery_failure_rolls_back_account(
    async_client: AsyncClient, session_factory, notifier
):
    """No account survives a failed verification email, and signup can be retried."""
    notifier.fail = True
    resp = await async_client.post("/api/v1/auth/signup", json=SIGNUP)
    assert resp.status_code == 502
    assert resp.json()["kind"] == "VerificationDeliveryFailed"
    assert await fetch_user(session_factory, "ann@x.com") is None

    notifier.fail = False
    retry = await async_client.post("/api/v1/auth/signup", json=SIGNUP)
    assert retry.status_code == 201
    assert await fetch_user(session_factory, "ann@x.com") is not None


@pytest.mark.asyncio
async def test_signup_delivery_timeout_rolls_back_account(
    async_client: AsyncClient, session_factory, notifier
):
    notifier.hang = True
    with patch.object(settings, "EMAIL_TIMEOUT_SECONDS", 0.05):
        resp = await async_client.post("/api/v1/auth/signup", json=SIGNUP)
    assert resp.status_code == 502
    assert resp.json()["kind"] == "VerificationDeliveryFailed"
    assert await fetch_user(session_factory, "ann@x.com") is None


@pytest.mark.asyncio
async def test_signup_validation_errors(async_client: AsyncClient):
    resp = await async_client.post(
        "/api/v1/auth/signup", json={"name": "", "email": "nope", "password": "1"}
    )
    assert resp.status_code == 422
    body = resp.json()
    assert body["kind"] == "ValidationFailed"
    fields = {e["field"] for e in body["errors"]}
    assert {"name", "email", "password"} <= fields

    resp = await async_client.post("/api/v1/auth/signup", json={"email": "a@b.com"})
    assert resp.status_code == 422


# ── Verify email ────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_signup_then_verify_scenario(async_client: AsyncClient, session_factory):
    with _fixed_code("482913"):
        resp = await async_client.post("/api/v1/auth/signup", json=SIGNUP)
    assert resp.status_code == 201

    wrong = await async_client.post(
        "/api/v1/auth/verify-email", json={"email": "ann@x.com", "otp": "000000"}
    )
    assert wrong.status_code == 400
    assert wrong.json()["kind"] == "InvalidOrExpiredCode"

    ok = await async_client.post(
        "/api/v1/auth/verify-email", json={"email": "ann@x.com", "otp": "482913"}
    )
    assert ok.status_code == 200
    data = ok.json()
    assert data["token"]
    assert data["user"]["is_verified"] is True
    assert not _SECRET_FIELDS & set(data["user"])

    user = await fetch_user(session_factory, "ann@x.com")
    assert user.is_verified is True
    assert user.otp is None
    assert user.otp_expires is None

    # The code was consumed
    again = await async_client.post(
        "/api/v1/auth/verify-email", json={"email": "ann@x.com", "otp": "482913"}
    )
    assert again.status_code == 400
    assert again.json()["kind"] == "InvalidOrExpiredCode"


@pytest.mark.asyncio
async def test_verify_accepts_numeric_and_padded_codes(
    async_client: AsyncClient, session_factory
):
    expires = datetime.now(timezone.utc) + timedelta(minutes=10)
    await create_user(
        session_factory, "num@x.com", is_verified=False, otp="123456", otp_expires=expires
    )
    await create_user(
        session_factory, "pad@x.com", is_verified=False, otp="123456", otp_expires=expires
    )

    as_number = await async_client.post(
        "/api/v1/auth/verify-email", json={"email": "num@x.com", "otp": 123456}
    )
    assert as_number.status_code == 200

    padded = await async_client.post(
        "/api/v1/auth/verify-email", json={"email": "pad@x.com", "otp": "123456 "}
    )
    assert padded.status_code == 200


@pytest.mark.asyncio
async def test_verify_expired_code_rejected(async_client: AsyncClient, session_factory):
    await create_user(
        session_factory,
        "late@x.com",
        is_verified=False,
        otp="654321",
        otp_expires=datetime.now(timezone.utc) - timedelta(seconds=1),
    )
    resp = await async_client.post(
        "/api/v1/auth/verify-email", json={"email": "late@x.com", "otp": "654321"}
    )
    assert resp.status_code == 400
    assert resp.json()["kind"] == "InvalidOrExpiredCode"
    user = await fetch_user(session_factory, "late@x.com")
    assert user.is_verified is False


@pytest.mark.asyncio
async def test_verify_unknown_user(async_client: AsyncClient):
    resp = await async_client.post(
        "/api/v1/auth/verify-email", json={"email": "ghost@x.com", "otp": "123456"}
    )
    assert resp.status_code == 404
    assert resp.json()["kind"] == "UserNotFound"


@pytest.mark.asyncio
async def test_verify_rejects_when_no_code_was_issued(
    async_client: AsyncClient, session_factory
):
    await create_user(session_factory, "nocode@x.com", is_verified=False)
    resp = await async_client.post(
        "/api/v1/auth/verify-email", json={"email": "nocode@x.com", "otp": "123456"}
    )
    assert resp.status_code == 400


# ── Login ───────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_login_verified_user_gets_token(async_client: AsyncClient, session_factory):
    user = await create_user(session_factory, "ok@x.com", "secret99")
    resp = await async_client.post(
        "/api/v1/auth/login", json={"email": "ok@x.com", "password": "secret99"}
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["token_type"] == "bearer"
    assert not _SECRET_FIELDS & set(data["user"])
    assert data["user"]["email"] == "ok@x.com"

    payload = decode_access_token(data["token"])
    assert payload["sub"] == str(user.id)
    assert payload["role"] == "CUSTOMER"
    assert payload["email"] == "ok@x.com"
    expires = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
    assert timedelta(days=6, hours=23) < expires - datetime.now(timezone.utc) <= timedelta(days=7)


@pytest.mark.asyncio
async def test_login_unverified_reissues_code_without_token(
    async_client: AsyncClient, session_factory, notifier
):
    await create_user(
        session_factory,
        "pending@x.com",
        "secret99",
        is_verified=False,
        otp="111111",
        otp_expires=datetime.now(timezone.utc) + timedelta(minutes=10),
    )
    with _fixed_code("222222"):
        resp = await async_client.post(
            "/api/v1/auth/login", json={"email": "pending@x.com", "password": "secret99"}
        )
    assert resp.status_code == 403
    data = resp.json()
    assert data["kind"] == "VerificationRequired"
    assert data["requires_verification"] is True
    assert data["email"] == "pending@x.com"
    assert "token" not in data

    user = await fetch_user(session_factory, "pending@x.com")
    assert user.otp == "222222"
    assert notifier.last_to("pending@x.com").code == "222222"

    # The overwritten code no longer works
    old = await async_client.post(
        "/api/v1/auth/verify-email", json={"email": "pending@x.com", "otp": "111111"}
    )
    assert old.status_code == 400


@pytest.mark.asyncio
async def test_login_unverified_delivery_failure(
    async_client: AsyncClient, session_factory, notifier
):
    await create_user(session_factory, "pending@x.com", "secret99", is_verified=False)
    notifier.fail = True
    resp = await async_client.post(
        "/api/v1/auth/login", json={"email": "pending@x.com", "password": "secret99"}
    )
    assert resp.status_code == 502
    assert resp.json()["kind"] == "VerificationDeliveryFailed"
    assert "token" not in resp.json()


@pytest.mark.asyncio
async def test_login_invalid_credentials(async_client: AsyncClient, session_factory):
    await create_user(session_factory, "ok@x.com", "secret99")
    await create_user(session_factory, "nopass@x.com", None)

    cases = [
        {"email": "ok@x.com", "password": "wrong-password"},
        {"email": "ghost@x.com", "password": "secret99"},
        {"email": "nopass@x.com", "password": "anything"},
    ]
    for body in cases:
        resp = await async_client.post("/api/v1/auth/login", json=body)
        assert resp.status_code == 401, body
        assert resp.json()["kind"] == "InvalidCredentials"
        assert resp.headers.get("www-authenticate") == "Bearer"


# ── Profile ─────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_me_returns_sanitized_profile(async_client: AsyncClient, session_factory):
    user = await create_user(session_factory, "me@x.com", name="Me")
    resp = await async_client.get("/api/v1/auth/me", headers=auth_headers(user))
    assert resp.status_code == 200
    data = resp.json()
    assert data["email"] == "me@x.com"
    assert data["name"] == "Me"
    assert not _SECRET_FIELDS & set(data)


@pytest.mark.asyncio
async def test_me_for_deleted_user(async_client: AsyncClient, session_factory):
    user = await create_user(session_factory, "gone@x.com")
    async with session_factory() as session:
        await session.delete(await session.get(type(user), user.id))
        await session.commit()
    resp = await async_client.get("/api/v1/auth/me", headers=auth_headers(user))
    assert resp.status_code == 404
    assert resp.json()["kind"] == "UserNotFound"


@pytest.mark.asyncio
async def test_update_profile_only_touches_profile_fields(
    async_client: AsyncClient, session_factory
):
    user = await create_user(session_factory, "me@x.com", name="Old")
    resp = await async_client.put(
        "/api/v1/auth/profile",
        json={"name": "New", "phone": "+61 400 000 000", "role": "ADMIN"},
        headers=auth_headers(user),
    )
    assert resp.status_code == 200
    assert resp.json()["name"] == "New"
    assert resp.json()["phone"] == "+61 400 000 000"
    assert resp.json()["role"] == "CUSTOMER"
