"""
Order endpoints — checkout finalization and order history.

- POST /orders accepts guests; a bearer token links the order to the account.
- GET endpoints require an authenticated caller.
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends

from storefront.api.v1.deps import get_optional_identity, get_order_service, get_token_identity
from storefront.schemas.order import OrderCreate, OrderCreated, OrderDetail, OrderSummary
from storefront.schemas.token import TokenPayload
from storefront.services.orders import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderCreated, status_code=201)
async def create_order(
    body: OrderCreate,
    background_tasks: BackgroundTasks,
    identity: TokenPayload | None = Depends(get_optional_identity),
    service: OrderService = Depends(get_order_service),
) -> OrderCreated:
    """Record a paid order. Replaying a payment reference returns the same order."""
    return await service.create_order(body, identity, background_tasks)


@router.get("/my-orders", response_model=list[OrderSummary])
async def list_my_orders(
    identity: TokenPayload = Depends(get_token_identity),
    service: OrderService = Depends(get_order_service),
) -> list[OrderSummary]:
    """Caller's orders, newest first, including guest orders under their email."""
    return await service.list_my_orders(identity)


@router.get("/{order_number}", response_model=OrderDetail)
async def get_order(
    order_number: str,
    identity: TokenPayload = Depends(get_token_identity),
    service: OrderService = Depends(get_order_service),
) -> OrderDetail:
    return await service.get_order(identity, order_number)
