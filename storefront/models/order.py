"""
Order & OrderItem models — finalized, paid orders.

Rows are written once, together, after payment confirmation and never
updated. Customer, address and item fields are snapshots taken at
checkout, not live references.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from storefront.db.base import Base

STATUS_PAID = "PAID"


class Order(Base):
    __tablename__ = "orders"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    order_number: str = Column(String(40), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    user_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    customer_name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    customer_email: str = Column(String(320), nullable=False, index=True)  # type: ignore[assignment]
    customer_phone: str | None = Column(String(30), nullable=True)  # type: ignore[assignment]
    shipping_address: dict = Column(JSON, nullable=False)  # type: ignore[assignment]
    total: Decimal = Column(Numeric(10, 2), nullable=False)  # type: ignore[assignment]
    status: str = Column(String(20), nullable=False, default=STATUS_PAID)  # type: ignore[assignment]
    # One committed payment produces exactly one order
    payment_reference: str = Column(String(255), unique=True, nullable=False)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    order_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    variant_id: str = Column(String(64), nullable=False)  # type: ignore[assignment]
    product_title: str = Column(String(255), nullable=False)  # type: ignore[assignment]
    variant_name: str | None = Column(String(255), nullable=True)  # type: ignore[assignment]
    quantity: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    unit_price: Decimal = Column(Numeric(10, 2), nullable=False)  # type: ignore[assignment]

    order = relationship("Order", back_populates="items")
