"""
Order finalization and order history.

An order is only ever created from a confirmed payment: the caller hands
over the provider's payment reference and this service records the order
and its line items in one transaction. A payment reference maps to at most
one order, so replays return the order already recorded.
"""

from __future__ import annotations

import logging
import secrets
import time

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.background import BackgroundTasks

from storefront.core.config import Settings, settings as default_settings
from storefront.core.errors import (
    OrderNotFound,
    OrderPersistenceFailed,
    PermissionDenied,
    store_boundary,
)
from storefront.models.order import STATUS_PAID, Order, OrderItem
from storefront.models.user import ROLE_ADMIN
from storefront.schemas.order import (
    OrderCreate,
    OrderCreated,
    OrderDetail,
    OrderItemRead,
    OrderSummary,
)
from storefront.schemas.token import TokenPayload
from storefront.services.notifications import (
    NotificationSender,
    deliver_in_background,
    order_confirmation_message,
)
from storefront.services.order_store import OrderStore
from storefront.services.user_store import UserStore

logger = logging.getLogger(__name__)


def new_order_number(prefix: str) -> str:
    """``<prefix>-<epoch ms>-<6 hex>``; the random tail separates same-millisecond checkouts."""
    millis = time.time_ns() // 1_000_000
    return f"{prefix}-{millis}-{secrets.token_hex(3).upper()}"


def _summary(order: Order) -> OrderSummary:
    return OrderSummary(
        order_number=order.order_number,
        created_at=order.created_at,
        total=float(order.total),
        status=order.status,
        item_count=len(order.items),
        items=[OrderItemRead.model_validate(item) for item in order.items],
    )


class OrderService:
    def __init__(
        self,
        orders: OrderStore,
        users: UserStore,
        notifier: NotificationSender | None = None,
        settings: Settings = default_settings,
    ) -> None:
        self.orders = orders
        self.users = users
        self.notifier = notifier
        self.settings = settings

    async def create_order(
        self,
        data: OrderCreate,
        identity: TokenPayload | None = None,
        background: BackgroundTasks | None = None,
    ) -> OrderCreated:
        try:
            existing = await self.orders.find_by_payment_reference(data.payment_reference)
            user = await self.users.find_by_id(identity.user_id) if identity is not None else None
        except SQLAlchemyError as exc:
            logger.error("Order for payment %s could not be checked: %s", data.payment_reference, exc)
            raise OrderPersistenceFailed() from exc

        if existing is not None:
            logger.info(
                "Payment %s already recorded as order %s",
                data.payment_reference,
                existing.order_number,
            )
            return OrderCreated(order_number=existing.order_number)

        user_id = user.id if user is not None else None

        order = Order(
            order_number=new_order_number(self.settings.ORDER_NUMBER_PREFIX),
            user_id=user_id,
            customer_name=data.customer.name,
            customer_email=data.customer.email,
            customer_phone=data.customer.phone,
            shipping_address=data.shipping_address.model_dump(),
            total=data.total,
            status=STATUS_PAID,
            payment_reference=data.payment_reference,
        )
        items = [OrderItem(**item.model_dump()) for item in data.items]

        try:
            await self.orders.create_order_with_items(order, items)
        except IntegrityError as exc:
            # A concurrent request may have recorded the same payment first
            winner = await self.orders.find_by_payment_reference(data.payment_reference)
            if winner is not None:
                return OrderCreated(order_number=winner.order_number)
            logger.error("Order for payment %s rejected by store: %s", data.payment_reference, exc)
            raise OrderPersistenceFailed() from exc
        except SQLAlchemyError as exc:
            logger.error("Order for payment %s could not be saved: %s", data.payment_reference, exc)
            raise OrderPersistenceFailed() from exc

        logger.info(
            "Order %s finalized: %d line items, total %s",
            order.order_number,
            len(items),
            order.total,
        )
        if background is not None and self.notifier is not None:
            self._schedule_confirmation(order, background)
        return OrderCreated(order_number=order.order_number)

    def _schedule_confirmation(self, order: Order, background: BackgroundTasks) -> None:
        subject, body = order_confirmation_message(
            self.settings.STORE_NAME,
            order.customer_name,
            order.order_number,
            [(item.product_title, item.quantity) for item in order.items],
            f"{order.total:.2f}",
        )
        background.add_task(
            deliver_in_background,
            self.notifier,
            order.customer_email,
            subject,
            body,
            self.settings.EMAIL_TIMEOUT_SECONDS,
            "order confirmation",
        )

    async def _account_email(self, identity: TokenPayload) -> str:
        """Email on the account, falling back to the token's for deleted users."""
        user = await self.users.find_by_id(identity.user_id)
        return user.email if user is not None else identity.email

    @store_boundary
    async def list_my_orders(self, identity: TokenPayload) -> list[OrderSummary]:
        """Orders linked to the account plus guest orders under its email."""
        email = await self._account_email(identity)
        orders = await self.orders.list_orders(identity.user_id, email)
        return [_summary(order) for order in orders]

    @store_boundary
    async def get_order(self, identity: TokenPayload, order_number: str) -> OrderDetail:
        order = await self.orders.find_by_number(order_number)
        if order is None:
            raise OrderNotFound()

        is_owner = (
            order.user_id == identity.user_id
            or order.customer_email == await self._account_email(identity)
        )
        if not is_owner and identity.role != ROLE_ADMIN:
            raise PermissionDenied()

        return OrderDetail(
            **_summary(order).model_dump(),
            customer_name=order.customer_name,
            customer_email=order.customer_email,
            customer_phone=order.customer_phone,
            shipping_address=order.shipping_address,
            payment_reference=order.payment_reference,
        )
