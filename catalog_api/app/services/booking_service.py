"""
Business logic for bookings.

A booking starts ``confirmed`` and ends either ``cancelled`` or
``completed``; both end states are terminal.  The allowed moves are
listed in ``TRANSITIONS`` and every rejected move has a dedicated
error in ``REJECTIONS``, so adding a state means adding table rows.

Transitions are written with a conditional ``UPDATE ... WHERE status
= ?``; if a concurrent request moved the booking first, the update
matches no row and the request is re‑evaluated against the new state.

Visibility: admins see every booking, other users only their own.
"""

import json
import logging
import secrets
import sqlite3
import string
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from catalog_api.app.core.db import get_connection
from catalog_api.app.core.errors import (
    AlreadyCancelled,
    AlreadyCompleted,
    CannotCancelCompleted,
    CannotCompleteCancelled,
    Forbidden,
    InternalError,
    NotFound,
    ServiceError,
    ValidationFailed,
)
from catalog_api.app.schemas.booking import BookingCancel, BookingCreate, BookingRead, BookingStatus
from catalog_api.app.schemas.product import Availability
from catalog_api.app.schemas.user import UserRead, UserRole

logger = logging.getLogger(__name__)


class BookingAction(str, Enum):
    CANCEL = "cancel"
    COMPLETE = "complete"


TRANSITIONS: Dict[tuple, BookingStatus] = {
    (BookingStatus.CONFIRMED, BookingAction.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.CONFIRMED, BookingAction.COMPLETE): BookingStatus.COMPLETED,
}

REJECTIONS: Dict[tuple, Type[ServiceError]] = {
    (BookingStatus.CANCELLED, BookingAction.CANCEL): AlreadyCancelled,
    (BookingStatus.COMPLETED, BookingAction.CANCEL): CannotCancelCompleted,
    (BookingStatus.COMPLETED, BookingAction.COMPLETE): AlreadyCompleted,
    (BookingStatus.CANCELLED, BookingAction.COMPLETE): CannotCompleteCancelled,
}


def next_status(current: BookingStatus, action: BookingAction) -> BookingStatus:
    """Return the state reached by applying ``action`` to ``current``.

    Raises the matching domain error if the move is not allowed.
    """
    target = TRANSITIONS.get((current, action))
    if target is None:
        error = REJECTIONS.get((current, action), ValidationFailed)
        raise error()
    return target


COUPON_ALPHABET = string.ascii_uppercase + string.digits
COUPON_ATTEMPTS = 5

BOOKING_SELECT = """
    SELECT b.*, u.name AS account_name, u.email AS account_email, u.phone AS account_phone
    FROM bookings b LEFT JOIN users u ON u.id = b.user_id
"""


def generate_coupon_code() -> str:
    return "GIZ" + "".join(secrets.choice(COUPON_ALPHABET) for _ in range(8))


def _is_admin(user: UserRead) -> bool:
    return user.role == UserRole.ADMIN


def _to_booking(row: sqlite3.Row, with_account: bool) -> BookingRead:
    data = {key: row[key] for key in row.keys() if not key.startswith("account_")}
    if with_account and row["account_email"] is not None:
        data["user"] = {
            "id": row["user_id"],
            "name": row["account_name"],
            "email": row["account_email"],
            "phone": row["account_phone"],
        }
    return BookingRead.model_validate(data)


class BookingService:
    """Service for creating, reading and transitioning bookings."""

    @classmethod
    async def create_booking(cls, user: UserRead, data: BookingCreate) -> BookingRead:
        """Place a booking for ``user``.

        The product must exist and be ``Available``.  Snapshot fields
        not supplied by the client are copied from the product; the
        total defaults to selling price times quantity.
        """
        conn = get_connection()
        try:
            cursor = conn.cursor()
            product = cursor.execute(
                "SELECT id, name, category, images, price, original_price, discount, availability "
                "FROM products WHERE id = ?",
                (data.product_id,),
            ).fetchone()
            if not product:
                raise NotFound("Product not found")
            if product["availability"] != Availability.AVAILABLE.value:
                raise ValidationFailed("Product is not available for booking")

            snapshot = cls._snapshot(product, data)
            columns = list(snapshot) + ["user_id", "status", "coupon_code"]
            booking_id = None
            for attempt in range(COUPON_ATTEMPTS):
                values = list(snapshot.values()) + [user.id, BookingStatus.CONFIRMED.value, generate_coupon_code()]
                try:
                    cursor.execute(
                        f"INSERT INTO bookings ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
                        tuple(values),
                    )
                except sqlite3.IntegrityError:
                    # Coupon collision; draw another code.
                    logger.debug("Coupon collision on attempt %s", attempt + 1)
                    continue
                booking_id = cursor.lastrowid
                break
            if booking_id is None:
                raise InternalError("Could not allocate a coupon code")
            conn.commit()
            logger.info("User %s booked product %s (booking %s)", user.id, data.product_id, booking_id)
            row = cursor.execute(BOOKING_SELECT + " WHERE b.id = ?", (booking_id,)).fetchone()
            return _to_booking(row, with_account=_is_admin(user))
        finally:
            conn.close()

    @staticmethod
    def _snapshot(product: sqlite3.Row, data: BookingCreate) -> Dict[str, Any]:
        images = json.loads(product["images"] or "[]")
        selling_price = data.selling_price if data.selling_price is not None else product["price"]
        strike_price = data.strike_price
        if strike_price is None:
            strike_price = product["original_price"] if product["original_price"] is not None else product["price"]
        actual_price = data.actual_price if data.actual_price is not None else strike_price
        return {
            "product_id": product["id"],
            "product_name": data.product_name or product["name"],
            "product_image": data.product_image or (images[0] if images else None),
            "product_category": data.product_category or product["category"],
            "customer_name": data.customer_name,
            "customer_phone": data.customer_phone,
            "customer_address": data.customer_address,
            "quantity": data.quantity,
            "booking_date": data.booking_date.isoformat(),
            "actual_price": actual_price,
            "strike_price": strike_price,
            "selling_price": selling_price,
            "total_amount": data.total_amount if data.total_amount is not None else selling_price * data.quantity,
            "discount_percentage": (
                data.discount_percentage if data.discount_percentage is not None else product["discount"]
            ),
        }

    @classmethod
    async def list_bookings(cls, user: UserRead) -> Dict[str, Any]:
        """All bookings for admins, the caller's own otherwise; newest first."""
        conn = get_connection()
        try:
            sql = BOOKING_SELECT
            params: tuple = ()
            if not _is_admin(user):
                sql += " WHERE b.user_id = ?"
                params = (user.id,)
            sql += " ORDER BY b.created_at DESC, b.id DESC"
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        bookings: List[BookingRead] = [_to_booking(row, with_account=_is_admin(user)) for row in rows]
        return {"count": len(bookings), "bookings": bookings}

    @classmethod
    async def get_booking(cls, user: UserRead, booking_id: int) -> BookingRead:
        conn = get_connection()
        try:
            row = conn.execute(BOOKING_SELECT + " WHERE b.id = ?", (booking_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise NotFound("Booking not found")
        cls._ensure_visible(user, row, "view")
        return _to_booking(row, with_account=_is_admin(user))

    @classmethod
    async def get_by_coupon(cls, user: UserRead, coupon_code: str) -> BookingRead:
        conn = get_connection()
        try:
            row = conn.execute(
                BOOKING_SELECT + " WHERE b.coupon_code = ?", (coupon_code.strip().upper(),)
            ).fetchone()
        finally:
            conn.close()
        if not row:
            raise NotFound("Booking not found with this coupon code")
        cls._ensure_visible(user, row, "view")
        return _to_booking(row, with_account=_is_admin(user))

    @classmethod
    async def cancel_booking(cls, user: UserRead, booking_id: int, data: Optional[BookingCancel] = None) -> BookingRead:
        """Cancel a confirmed booking on behalf of its owner or an admin."""
        reason = data.reason.strip() if data and data.reason and data.reason.strip() else None
        if reason is None:
            reason = "Cancelled by Admin" if _is_admin(user) else "Cancelled by customer"
        return cls._transition(user, booking_id, BookingAction.CANCEL, cancellation_reason=reason)

    @classmethod
    async def complete_booking(cls, user: UserRead, booking_id: int) -> BookingRead:
        """Mark a confirmed booking as completed.  Admins only."""
        if not _is_admin(user):
            raise Forbidden("Not authorized. Admin access required.")
        return cls._transition(user, booking_id, BookingAction.COMPLETE)

    @classmethod
    def _transition(cls, user: UserRead, booking_id: int, action: BookingAction, **extra: Any) -> BookingRead:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            while True:
                row = cursor.execute(BOOKING_SELECT + " WHERE b.id = ?", (booking_id,)).fetchone()
                if not row:
                    raise NotFound("Booking not found")
                cls._ensure_visible(user, row, action.value)
                current = BookingStatus(row["status"])
                target = next_status(current, action)
                assignments = ", ".join(["status = ?"] + [f"{column} = ?" for column in extra])
                cursor.execute(
                    f"UPDATE bookings SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ? AND status = ?",
                    (target.value, *extra.values(), booking_id, current.value),
                )
                if cursor.rowcount == 1:
                    conn.commit()
                    break
                # Another request changed the status in between; re‑check.
                conn.rollback()
            logger.info("User %s moved booking %s from %s to %s", user.id, booking_id, current.value, target.value)
            row = cursor.execute(BOOKING_SELECT + " WHERE b.id = ?", (booking_id,)).fetchone()
            return _to_booking(row, with_account=_is_admin(user))
        finally:
            conn.close()

    @staticmethod
    def _ensure_visible(user: UserRead, row: sqlite3.Row, verb: str) -> None:
        if not _is_admin(user) and row["user_id"] != user.id:
            raise Forbidden(f"Not authorized to {verb} this booking")
