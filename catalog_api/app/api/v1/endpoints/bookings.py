"""
Booking endpoints for API v1.

Every route requires authentication.  Ownership and role checks live
in ``BookingService`` so the same rules apply to reads by id and by
coupon code.  ``/coupon/{coupon_code}`` is declared before
``/{booking_id}``.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status

from catalog_api.app.core.query import parse_id
from catalog_api.app.core.security import get_current_user
from catalog_api.app.schemas.booking import BookingCancel, BookingCreate
from catalog_api.app.schemas.user import UserRead
from catalog_api.app.services.booking_service import BookingService

router = APIRouter()


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_booking(payload: BookingCreate, current_user: UserRead = Depends(get_current_user)) -> dict:
    """Book an available product for the caller.

    Product snapshot and price fields may be omitted; they are copied
    from the product.  A unique coupon code is issued.
    """
    booking = await BookingService.create_booking(current_user, payload)
    return {"success": True, "message": "Booking created successfully", "booking": booking}


@router.get("/")
async def list_bookings(current_user: UserRead = Depends(get_current_user)) -> dict:
    """Admins see every booking, everyone else only their own."""
    result = await BookingService.list_bookings(current_user)
    return {"success": True, **result}


@router.get("/coupon/{coupon_code}")
async def get_by_coupon(coupon_code: str, current_user: UserRead = Depends(get_current_user)) -> dict:
    booking = await BookingService.get_by_coupon(current_user, coupon_code)
    return {"success": True, "booking": booking}


@router.get("/{booking_id}")
async def get_booking(booking_id: str, current_user: UserRead = Depends(get_current_user)) -> dict:
    booking = await BookingService.get_booking(current_user, parse_id(booking_id, "booking"))
    return {"success": True, "booking": booking}


@router.patch("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: str,
    payload: Optional[BookingCancel] = None,
    current_user: UserRead = Depends(get_current_user),
) -> dict:
    booking = await BookingService.cancel_booking(current_user, parse_id(booking_id, "booking"), payload)
    return {"success": True, "message": "Booking cancelled successfully", "booking": booking}


@router.patch("/{booking_id}/complete")
async def complete_booking(booking_id: str, current_user: UserRead = Depends(get_current_user)) -> dict:
    booking = await BookingService.complete_booking(current_user, parse_id(booking_id, "booking"))
    return {"success": True, "message": "Booking marked as completed successfully", "booking": booking}
