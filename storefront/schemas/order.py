"""Pydantic schemas for checkout and order history."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator


class CustomerInfo(BaseModel):
    name: str
    email: str
    phone: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Customer name must not be empty")
        return v

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        v = v.strip()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v


class ShippingAddress(BaseModel):
    line1: str = Field(min_length=1, max_length=255)
    line2: str | None = None
    city: str = Field(min_length=1, max_length=120)
    state: str | None = None
    postal_code: str = Field(min_length=1, max_length=20)
    country: str = Field(min_length=2, max_length=60)


class OrderItemIn(BaseModel):
    variant_id: str = Field(min_length=1, max_length=64)
    product_title: str = Field(min_length=1, max_length=255)
    variant_name: str | None = None
    quantity: int = Field(gt=0, le=1000)
    unit_price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)


class OrderCreate(BaseModel):
    customer: CustomerInfo
    shipping_address: ShippingAddress
    items: list[OrderItemIn] = Field(min_length=1)
    total: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    # Proof of a confirmed payment, issued by the payment provider
    payment_reference: str = Field(min_length=1, max_length=255)

    @field_validator("payment_reference")
    @classmethod
    def _ref(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Payment reference must not be empty")
        return v


class OrderCreated(BaseModel):
    success: bool = True
    order_number: str


class OrderItemRead(BaseModel):
    variant_id: str
    product_title: str
    variant_name: str | None
    quantity: int
    unit_price: float

    model_config = {"from_attributes": True}


class OrderSummary(BaseModel):
    order_number: str
    created_at: datetime | None
    total: float
    status: str
    item_count: int
    items: list[OrderItemRead]


class OrderDetail(OrderSummary):
    customer_name: str
    customer_email: str
    customer_phone: str | None
    shipping_address: dict
    payment_reference: str
