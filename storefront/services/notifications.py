"""
Email delivery adapters.

Senders expose one coroutine, ``send(to, subject, body)``, which either
returns (accepted by the provider) or raises :class:`DeliveryError`.
Callers bound the wait themselves; see ``AuthService``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import resend

from storefront.core.config import Settings

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """The message could not be handed to the provider."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class NotificationSender(Protocol):
    async def send(self, to: str, subject: str, body: str) -> None: ...

    async def check_connection(self) -> bool: ...


class ResendNotificationSender:
    """Transactional email through the Resend API."""

    def __init__(self, api_key: str, sender: str) -> None:
        self.api_key = api_key.strip()
        self.sender = sender
        if self.api_key:
            resend.api_key = self.api_key

    def _send_sync(self, to: str, subject: str, body: str) -> str:
        response = resend.Emails.send(
            {
                "from": self.sender,
                "to": [to],
                "subject": subject,
                "text": body,
            }
        )
        message_id = response.get("id") if isinstance(response, dict) else None
        if not message_id:
            raise DeliveryError(f"Unexpected provider response: {response!r}")
        return message_id

    async def send(self, to: str, subject: str, body: str) -> None:
        if not self.api_key:
            raise DeliveryError("Resend API key is not configured")
        try:
            # The client is blocking; keep it off the event loop
            message_id = await asyncio.to_thread(self._send_sync, to, subject, body)
        except DeliveryError:
            raise
        except Exception as exc:
            raise DeliveryError(str(exc)) from exc
        logger.info("Email '%s' accepted by provider (id=%s)", subject, message_id)

    async def check_connection(self) -> bool:
        if not self.api_key:
            return False
        try:
            await asyncio.to_thread(resend.Domains.list)
        except Exception as exc:
            logger.error("Email provider check failed: %s", exc)
            return False
        return True


class ConsoleNotificationSender:
    """Development backend: logs messages instead of sending them."""

    async def send(self, to: str, subject: str, body: str) -> None:
        logger.info("Email to %s | %s\n%s", to, subject, body)

    async def check_connection(self) -> bool:
        return True


def build_notification_sender(settings: Settings) -> NotificationSender:
    if settings.EMAIL_BACKEND == "resend":
        return ResendNotificationSender(settings.RESEND_API_KEY, settings.EMAIL_FROM)
    return ConsoleNotificationSender()


async def deliver(
    sender: NotificationSender, to: str, subject: str, body: str, timeout: float
) -> None:
    """Send with a hard deadline. A timeout is reported as ``DeliveryError``."""
    try:
        await asyncio.wait_for(sender.send(to, subject, body), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise DeliveryError(f"Timed out after {timeout:g}s") from exc


async def deliver_in_background(
    sender: NotificationSender,
    to: str,
    subject: str,
    body: str,
    timeout: float,
    purpose: str,
) -> None:
    """Best-effort delivery for background tasks: failures are only logged."""
    try:
        await deliver(sender, to, subject, body, timeout)
    except DeliveryError as exc:
        logger.error("Background %s email could not be delivered: %s", purpose, exc.reason)
    except Exception:
        logger.exception("Background %s email crashed", purpose)


# ── Message builders ────────────────────────────────────────────────
def verification_message(store_name: str, code: str, minutes: int) -> tuple[str, str]:
    subject = f"Verify your {store_name} account"
    body = (
        f"Welcome to {store_name}!\n\n"
        f"Your verification code is {code}.\n"
        f"It expires in {minutes} minutes.\n\n"
        "If you did not create an account, you can ignore this email."
    )
    return subject, body


def password_reset_message(store_name: str, code: str, minutes: int) -> tuple[str, str]:
    subject = f"Reset your {store_name} password"
    body = (
        f"We received a request to reset your {store_name} password.\n\n"
        f"Your reset code is {code}.\n"
        f"It expires in {minutes} minutes.\n\n"
        "If you did not ask for this, no action is needed."
    )
    return subject, body


def order_confirmation_message(
    store_name: str,
    customer_name: str,
    order_number: str,
    lines: list[tuple[str, int]],
    total: str,
) -> tuple[str, str]:
    subject = f"{store_name} order {order_number} confirmed"
    items = "\n".join(f"  - {title} x {qty}" for title, qty in lines)
    body = (
        f"Hi {customer_name},\n\n"
        f"Thank you for your order. Your payment has been received.\n\n"
        f"Order number: {order_number}\n"
        f"{items}\n"
        f"Total: {total}\n\n"
        "We will let you know when it ships."
    )
    return subject, body
