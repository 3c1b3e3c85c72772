"""
Order store — orders are written together with their line items in a
single transaction and read back with items eagerly loaded.
"""

from __future__ import annotations

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.models.order import Order, OrderItem


class OrderStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_order_with_items(self, order: Order, items: list[OrderItem]) -> Order:
        """Persist *order* and *items* atomically: all rows or none."""
        order.items = items
        self.session.add(order)
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        return order

    async def _one(self, *criteria) -> Order | None:
        result = await self.session.execute(
            select(Order).options(selectinload(Order.items)).where(*criteria)
        )
        return result.scalar_one_or_none()

    async def find_by_payment_reference(self, payment_reference: str) -> Order | None:
        return await self._one(Order.payment_reference == payment_reference)

    async def find_by_number(self, order_number: str) -> Order | None:
        return await self._one(Order.order_number == order_number)

    async def list_orders(self, user_id: int | None, email: str | None) -> list[Order]:
        """Orders placed by *user_id* or under *email*, newest first."""
        clauses = []
        if user_id is not None:
            clauses.append(Order.user_id == user_id)
        if email:
            clauses.append(Order.customer_email == email)
        if not clauses:
            return []
        result = await self.session.execute(
            select(Order)
            .options(selectinload(Order.items))
            .where(or_(*clauses))
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        return list(result.scalars().all())
