"""
Pydantic models for bookings (orders placed against a product).

A booking stores a snapshot of the product (name, image, category)
and of the pricing at creation time, so later product edits do not
rewrite order history.  Snapshot fields left out by the client are
filled from the product by the service.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator

from .common import ApiModel


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class BookingCreate(ApiModel):
    product_id: int = Field(..., ge=1)
    product_name: Optional[str] = None
    product_image: Optional[str] = None
    product_category: Optional[str] = None
    customer_name: str = Field(..., min_length=1, max_length=100)
    customer_phone: str = Field(..., min_length=1, max_length=20)
    customer_address: str = Field(..., min_length=1, max_length=500)
    quantity: int = Field(..., ge=1)
    booking_date: datetime
    actual_price: Optional[float] = Field(None, ge=0)
    strike_price: Optional[float] = Field(None, ge=0)
    selling_price: Optional[float] = Field(None, ge=0)
    total_amount: Optional[float] = Field(None, ge=0)
    discount_percentage: Optional[float] = Field(None, ge=0, le=100)

    @field_validator("customer_name", "customer_phone", "customer_address", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value


class BookingCancel(ApiModel):
    reason: Optional[str] = Field(None, max_length=500)


class AccountSummary(ApiModel):
    id: int
    name: str
    email: str
    phone: str


class BookingRead(ApiModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    product_image: Optional[str] = None
    product_category: Optional[str] = None
    user_id: int
    customer_name: str
    customer_phone: str
    customer_address: str
    quantity: int
    booking_date: datetime
    actual_price: float = 0
    strike_price: float = 0
    selling_price: float = 0
    total_amount: float = 0
    discount_percentage: float = 0
    status: BookingStatus
    coupon_code: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    # Populated on reads: the customer account (admins only).
    user: Optional[AccountSummary] = None
