"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from storefront.api.v1.endpoints import auth, health, orders

api_router = APIRouter()

# Signup, verification, login, password reset, profile
api_router.include_router(auth.router)

# Checkout finalization and order history
api_router.include_router(orders.router)

# Health
api_router.include_router(health.router)
