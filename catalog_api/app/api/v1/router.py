"""
Top‑level router for version 1 of the API.

Aggregates the resource routers under a single prefix.  When a new
resource is introduced, include its router here.
"""

from fastapi import APIRouter

from .endpoints import auth, bookings, products, users

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(products.router, prefix="/products", tags=["products"])
router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
