"""Business service and addon pricing rules."""

from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Conflict, NotFound, ValidationFailed
from app.models.catalog import BusinessAddon, BusinessService, Service, ServiceAddon
from app.models.enums import DeliveryType


def format_price(value: Decimal) -> str:
    """``50`` for whole amounts, ``49.50`` otherwise."""
    value = Decimal(value)
    if value == value.to_integral_value():
        return str(int(value))
    return f"{value:.2f}"


def check_service_price(service: Service, business_price: Decimal) -> None:
    """A business may not sell a service below the platform floor price."""
    if business_price is None or Decimal(business_price) <= 0:
        raise ValidationFailed("Business price must be greater than 0", code="invalid_price")
    if Decimal(business_price) < Decimal(service.min_price or 0):
        raise ValidationFailed(
            f"Price must be at least ${format_price(service.min_price)} for {service.name}",
            code="price_below_minimum",
            details={"min_price": str(service.min_price), "service_name": service.name},
        )


def check_addon_price(is_available: bool, custom_price: Optional[Decimal]) -> None:
    """An available addon needs a positive price."""
    if is_available and (custom_price is None or Decimal(custom_price) <= 0):
        raise ValidationFailed(
            "Available addons must have a price greater than 0",
            code="invalid_addon_price",
        )


class PricingService:
    """Creates and updates business services and addons under the pricing rules.

    With ``autocommit=False`` changes are only flushed, leaving the commit to
    the caller's unit of work.
    """

    def __init__(self, db: AsyncSession, autocommit: bool = True):
        self.db = db
        self.autocommit = autocommit

    async def _commit(self) -> None:
        if self.autocommit:
            await self.db.commit()
        else:
            await self.db.flush()

    async def _get_service(self, service_id: UUID) -> Service:
        result = await self.db.execute(select(Service).where(Service.id == service_id))
        service = result.scalar_one_or_none()
        if not service:
            raise NotFound("Service not found")
        return service

    async def list_services(
        self,
        business_id: UUID,
        is_active: Optional[bool] = None,
        page: int = 1,
        limit: int = 25,
    ) -> tuple[list[BusinessService], int]:
        query = select(BusinessService).where(BusinessService.business_id == business_id)
        count_query = select(func.count()).select_from(BusinessService).where(
            BusinessService.business_id == business_id
        )
        if is_active is not None:
            query = query.where(BusinessService.is_active == is_active)
            count_query = count_query.where(BusinessService.is_active == is_active)

        total = (await self.db.execute(count_query)).scalar_one()
        result = await self.db.execute(
            query.order_by(BusinessService.created_at.desc()).offset((page - 1) * limit).limit(limit)
        )
        return list(result.scalars().all()), total

    async def add_service(
        self,
        business_id: UUID,
        service_id: UUID,
        business_price: Decimal,
        delivery_type: DeliveryType = DeliveryType.CUSTOMER_LOCATION,
        business_duration_minutes: Optional[int] = None,
        is_active: bool = True,
    ) -> BusinessService:
        service = await self._get_service(service_id)
        check_service_price(service, business_price)

        existing = await self.db.execute(
            select(BusinessService.id).where(
                BusinessService.business_id == business_id,
                BusinessService.service_id == service_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise Conflict("Service already added to business", code="duplicate_service")

        business_service = BusinessService(
            business_id=business_id,
            service_id=service_id,
            business_price=business_price,
            delivery_type=delivery_type,
            business_duration_minutes=business_duration_minutes or service.duration_minutes,
            is_active=is_active,
        )
        self.db.add(business_service)
        try:
            await self._commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("Service already added to business", code="duplicate_service")
        await self.db.refresh(business_service)
        return business_service

    async def update_service(
        self,
        business_id: UUID,
        service_id: UUID,
        business_price: Decimal,
        delivery_type: DeliveryType,
        is_active: bool,
        business_duration_minutes: Optional[int] = None,
        expected_version: Optional[int] = None,
    ) -> BusinessService:
        """Full-field update with the price rule re-applied."""
        service = await self._get_service(service_id)
        check_service_price(service, business_price)

        conditions = [
            BusinessService.business_id == business_id,
            BusinessService.service_id == service_id,
        ]
        if expected_version is not None:
            conditions.append(BusinessService.version == expected_version)

        result = await self.db.execute(
            update(BusinessService)
            .where(*conditions)
            .values(
                business_price=business_price,
                delivery_type=delivery_type,
                is_active=is_active,
                business_duration_minutes=business_duration_minutes or service.duration_minutes,
                version=BusinessService.version + 1,
            )
            .returning(BusinessService)
        )
        updated = result.scalar_one_or_none()
        if updated is None:
            exists = await self.db.execute(select(BusinessService.id).where(*conditions[:2]))
            if exists.scalar_one_or_none() is None:
                raise NotFound("Business service not found")
            raise Conflict("Business service was modified by someone else", code="version_conflict")
        await self._commit()
        return updated

    async def upsert_service(
        self,
        business_id: UUID,
        service_id: UUID,
        business_price: Decimal,
        delivery_type: DeliveryType,
        is_active: bool,
        business_duration_minutes: Optional[int] = None,
    ) -> BusinessService:
        """Add the service, or overwrite the existing row for it."""
        service = await self._get_service(service_id)
        check_service_price(service, business_price)

        result = await self.db.execute(
            select(BusinessService).where(
                BusinessService.business_id == business_id,
                BusinessService.service_id == service_id,
            )
        )
        business_service = result.scalar_one_or_none()
        if business_service is None:
            business_service = BusinessService(business_id=business_id, service_id=service_id)
            self.db.add(business_service)
        else:
            business_service.version = (business_service.version or 1) + 1

        business_service.business_price = business_price
        business_service.delivery_type = delivery_type
        business_service.is_active = is_active
        business_service.business_duration_minutes = business_duration_minutes or service.duration_minutes

        await self._commit()
        return business_service

    async def remove_service(self, business_id: UUID, service_id: UUID) -> None:
        result = await self.db.execute(
            select(BusinessService).where(
                BusinessService.business_id == business_id,
                BusinessService.service_id == service_id,
            )
        )
        business_service = result.scalar_one_or_none()
        if not business_service:
            raise NotFound("Business service not found")
        await self.db.delete(business_service)
        await self._commit()

    async def set_addon(
        self,
        business_id: UUID,
        addon_id: UUID,
        is_available: bool,
        custom_price: Optional[Decimal],
    ) -> BusinessAddon:
        """Create or replace a business's pricing for an addon."""
        check_addon_price(is_available, custom_price)

        addon = await self.db.execute(select(ServiceAddon.id).where(ServiceAddon.id == addon_id))
        if addon.scalar_one_or_none() is None:
            raise NotFound("Addon not found")

        result = await self.db.execute(
            select(BusinessAddon).where(
                BusinessAddon.business_id == business_id,
                BusinessAddon.addon_id == addon_id,
            )
        )
        business_addon = result.scalar_one_or_none()
        if business_addon is None:
            business_addon = BusinessAddon(business_id=business_id, addon_id=addon_id)
            self.db.add(business_addon)
        business_addon.is_available = is_available
        business_addon.custom_price = custom_price

        await self._commit()
        await self.db.refresh(business_addon)
        return business_addon

    async def deactivate_services(self, business_id: UUID, service_ids: Iterable[UUID]) -> None:
        service_ids = list(service_ids)
        if not service_ids:
            return
        await self.db.execute(
            update(BusinessService)
            .where(
                BusinessService.business_id == business_id,
                BusinessService.service_id.in_(service_ids),
                BusinessService.is_active.is_(True),
            )
            .values(is_active=False, version=BusinessService.version + 1)
        )
        await self._commit()

    async def withdraw_addons(self, business_id: UUID, addon_ids: Iterable[UUID]) -> None:
        addon_ids = list(addon_ids)
        if not addon_ids:
            return
        await self.db.execute(
            update(BusinessAddon)
            .where(BusinessAddon.business_id == business_id, BusinessAddon.addon_id.in_(addon_ids))
            .values(is_available=False)
        )
        await self._commit()

    async def count_active_services(self, business_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(BusinessService)
            .where(BusinessService.business_id == business_id, BusinessService.is_active.is_(True))
        )
        return result.scalar_one()
