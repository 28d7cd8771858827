"""Booking schemas."""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import Field

from app.models.enums import BookingStatus, PaymentStatus
from app.schemas.base import BaseSchema, IDMixin, TimestampMixin


class BookingStatusUpdate(BaseSchema):
    """Move a booking to a new status."""

    status: BookingStatus
    reason: Optional[str] = Field(None, max_length=1000)
    expected_version: Optional[int] = None


class BookingReschedule(BaseSchema):
    booking_date: date
    start_time: time
    reason: Optional[str] = Field(None, max_length=1000)


class BookingResponse(BaseSchema, IDMixin, TimestampMixin):
    """Booking response."""

    customer_id: UUID
    business_id: UUID
    provider_id: Optional[UUID] = None
    service_id: UUID
    booking_date: date
    start_time: time
    total_amount: Decimal
    booking_status: BookingStatus
    payment_status: PaymentStatus
    original_booking_date: Optional[date] = None
    rescheduled_at: Optional[datetime] = None
    reschedule_count: int = 0
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    version: int
