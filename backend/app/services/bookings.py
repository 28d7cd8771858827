"""Booking queries and the booking status state machine."""

import logging
from datetime import date, datetime, time
from typing import Optional, Union
from uuid import UUID

from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Conflict, NotFound, ValidationFailed
from app.core.permissions import ProviderContext
from app.models.booking import Booking
from app.models.enums import BookingStatus, ProviderRole
from app.services.audit import AuditService

logger = logging.getLogger(__name__)

BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.DECLINED, BookingStatus.CANCELLED}
    ),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
    ),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED, BookingStatus.NO_SHOW}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.DECLINED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}

RESCHEDULABLE = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


def allowed_transitions(current: Union[BookingStatus, str]) -> frozenset[BookingStatus]:
    return BOOKING_TRANSITIONS[BookingStatus(current)]


def can_transition(current: Union[BookingStatus, str], target: Union[BookingStatus, str]) -> bool:
    return BookingStatus(target) in allowed_transitions(current)


def build_bookings_query(
    business_id: UUID,
    status: Optional[BookingStatus] = None,
    provider_id: Optional[UUID] = None,
    customer_id: Optional[UUID] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> Select:
    """Bookings for one business matching the filters, newest booking date first."""
    query = select(Booking).where(Booking.business_id == business_id)
    if status is not None:
        query = query.where(Booking.booking_status == status)
    if provider_id is not None:
        query = query.where(Booking.provider_id == provider_id)
    if customer_id is not None:
        query = query.where(Booking.customer_id == customer_id)
    if date_from is not None:
        query = query.where(Booking.booking_date >= date_from)
    if date_to is not None:
        query = query.where(Booking.booking_date <= date_to)
    return query.order_by(Booking.booking_date.desc(), Booking.start_time.desc())


class BookingService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def list_bookings(
        self,
        business_id: UUID,
        status: Optional[BookingStatus] = None,
        provider_id: Optional[UUID] = None,
        customer_id: Optional[UUID] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[Booking], int]:
        query = build_bookings_query(business_id, status, provider_id, customer_id, date_from, date_to)
        total = (
            await self.db.execute(select(func.count()).select_from(query.order_by(None).subquery()))
        ).scalar_one()
        result = await self.db.execute(query.offset((page - 1) * limit).limit(limit))
        return list(result.scalars().all()), total

    async def get_booking(self, context: ProviderContext, booking_id: UUID) -> Booking:
        """A booking of the caller's business; plain providers only see their own."""
        query = select(Booking).where(
            Booking.id == booking_id,
            Booking.business_id == context.business_id,
        )
        if context.role == ProviderRole.PROVIDER:
            query = query.where(Booking.provider_id == context.provider_id)
        result = await self.db.execute(query)
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFound("Booking not found")
        return booking

    async def update_status(
        self,
        context: ProviderContext,
        booking_id: UUID,
        target: BookingStatus,
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
        ip_address: Optional[str] = None,
    ) -> Booking:
        booking = await self.get_booking(context, booking_id)
        current = BookingStatus(booking.booking_status)

        if not can_transition(current, target):
            raise Conflict(
                f"Cannot change booking from {current.value} to {target.value}",
                code="invalid_transition",
                details={"allowed": sorted(s.value for s in allowed_transitions(current))},
            )
        if expected_version is not None and booking.version != expected_version:
            raise Conflict("Booking was modified by someone else", code="version_conflict")

        values = {"booking_status": target, "version": Booking.version + 1}
        if target == BookingStatus.CANCELLED:
            values.update(
                cancelled_at=datetime.utcnow(),
                cancelled_by=context.user.uid,
                cancellation_reason=reason,
            )

        # Guarded on the status we validated against, so a concurrent change is a conflict
        result = await self.db.execute(
            update(Booking)
            .where(
                Booking.id == booking.id,
                Booking.booking_status == current,
                Booking.version == booking.version,
            )
            .values(**values)
            .returning(Booking)
        )
        updated = result.scalar_one_or_none()
        if updated is None:
            raise Conflict("Booking was modified by someone else", code="version_conflict")

        await self.audit.log_booking_status_changed(
            booking_id=updated.id,
            business_id=updated.business_id,
            actor_id=context.user.uid,
            from_status=current.value,
            to_status=target.value,
            ip_address=ip_address,
        )
        await self.db.commit()
        logger.info(f"[BOOKINGS] {updated.id}: {current.value} -> {target.value}")
        return updated

    async def reschedule(
        self,
        context: ProviderContext,
        booking_id: UUID,
        booking_date: date,
        start_time: time,
        reason: Optional[str] = None,
    ) -> Booking:
        booking = await self.get_booking(context, booking_id)
        if BookingStatus(booking.booking_status) not in RESCHEDULABLE:
            raise Conflict("Only pending or confirmed bookings can be rescheduled", code="invalid_transition")
        if booking_date < date.today():
            raise ValidationFailed("Bookings cannot be moved into the past")

        if booking.original_booking_date is None:
            booking.original_booking_date = booking.booking_date
            booking.original_start_time = booking.start_time
        booking.booking_date = booking_date
        booking.start_time = start_time
        booking.reschedule_reason = reason
        booking.rescheduled_at = datetime.utcnow()
        booking.reschedule_count = (booking.reschedule_count or 0) + 1
        booking.version = (booking.version or 1) + 1

        await self.db.commit()
        await self.db.refresh(booking)
        return booking
