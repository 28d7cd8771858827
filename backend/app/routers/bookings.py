"""Bookings router."""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.permissions import ProviderContext, ensure_same_business, require_capability
from app.models.enums import BookingStatus, ProviderRole
from app.schemas.base import Pagination
from app.schemas.booking import BookingReschedule, BookingResponse, BookingStatusUpdate
from app.services.bookings import BookingService

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


@router.get("")
async def list_bookings(
    business_id: Optional[UUID] = None,
    status: Optional[BookingStatus] = None,
    provider_id: Optional[UUID] = None,
    customer_id: Optional[UUID] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    context: ProviderContext = Depends(require_capability("bookings")),
):
    """List bookings for the caller's business, newest date first."""
    business_id = ensure_same_business(context, business_id)
    if context.role == ProviderRole.PROVIDER:
        provider_id = context.provider_id

    bookings, total = await BookingService(db).list_bookings(
        business_id=business_id,
        status=status,
        provider_id=provider_id,
        customer_id=customer_id,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    return {
        "data": [BookingResponse.model_validate(b) for b in bookings],
        "pagination": Pagination.build(page, limit, total),
    }


@router.get("/{booking_id}")
async def get_booking(
    booking_id: UUID,
    db: AsyncSession = Depends(get_db),
    context: ProviderContext = Depends(require_capability("bookings")),
):
    booking = await BookingService(db).get_booking(context, booking_id)
    return {"data": BookingResponse.model_validate(booking)}


@router.patch("/{booking_id}/status")
async def update_booking_status(
    booking_id: UUID,
    data: BookingStatusUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    context: ProviderContext = Depends(require_capability("bookings")),
):
    """Move a booking along its lifecycle."""
    booking = await BookingService(db).update_status(
        context,
        booking_id,
        data.status,
        reason=data.reason,
        expected_version=data.expected_version,
        ip_address=request.client.host if request.client else None,
    )
    return {"data": BookingResponse.model_validate(booking)}


@router.patch("/{booking_id}/reschedule")
async def reschedule_booking(
    booking_id: UUID,
    data: BookingReschedule,
    db: AsyncSession = Depends(get_db),
    context: ProviderContext = Depends(require_capability("bookings")),
):
    booking = await BookingService(db).reschedule(
        context, booking_id, data.booking_date, data.start_time, reason=data.reason
    )
    return {"data": BookingResponse.model_validate(booking)}
