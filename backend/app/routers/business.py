"""Business catalog router: which services a business offers and at what price."""

from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.permissions import (
    ProviderContext,
    ensure_same_business,
    require_capability,
    require_owner,
)
from app.schemas.base import Pagination
from app.schemas.business import (
    BusinessAddonResponse,
    BusinessAddonUpsert,
    BusinessServiceCreate,
    BusinessServiceResponse,
    BusinessServiceUpdate,
)
from app.services.pricing import PricingService

router = APIRouter(prefix="/api/business", tags=["business"])


@router.get("/services")
async def list_business_services(
    business_id: Optional[UUID] = None,
    status_filter: Optional[Literal["active", "inactive"]] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    context: ProviderContext = Depends(require_capability("services")),
):
    """List a business's services with pagination."""
    business_id = ensure_same_business(context, business_id)
    is_active = None if status_filter is None else status_filter == "active"
    services, total = await PricingService(db).list_services(business_id, is_active, page, limit)
    return {
        "data": [BusinessServiceResponse.model_validate(s) for s in services],
        "pagination": Pagination.build(page, limit, total),
    }


@router.post("/services", status_code=status.HTTP_201_CREATED)
async def add_business_service(
    data: BusinessServiceCreate,
    db: AsyncSession = Depends(get_db),
    context: ProviderContext = Depends(require_owner),
):
    """Add a catalog service at a price no lower than its minimum."""
    business_id = ensure_same_business(context, data.business_id)
    business_service = await PricingService(db).add_service(
        business_id=business_id,
        service_id=data.service_id,
        business_price=data.business_price,
        delivery_type=data.delivery_type,
        business_duration_minutes=data.business_duration_minutes,
        is_active=data.is_active,
    )
    return {"data": BusinessServiceResponse.model_validate(business_service)}


@router.put("/services")
async def update_business_service(
    data: BusinessServiceUpdate,
    db: AsyncSession = Depends(get_db),
    context: ProviderContext = Depends(require_owner),
):
    business_id = ensure_same_business(context, data.business_id)
    business_service = await PricingService(db).update_service(
        business_id=business_id,
        service_id=data.service_id,
        business_price=data.business_price,
        delivery_type=data.delivery_type,
        is_active=data.is_active,
        business_duration_minutes=data.business_duration_minutes,
        expected_version=data.expected_version,
    )
    return {"data": BusinessServiceResponse.model_validate(business_service)}


@router.delete("/services/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_business_service(
    service_id: UUID,
    business_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db),
    context: ProviderContext = Depends(require_owner),
):
    business_id = ensure_same_business(context, business_id)
    await PricingService(db).remove_service(business_id, service_id)


async def _set_addon(data: BusinessAddonUpsert, db: AsyncSession, context: ProviderContext):
    business_id = ensure_same_business(context, data.business_id)
    addon = await PricingService(db).set_addon(
        business_id=business_id,
        addon_id=data.addon_id,
        is_available=data.is_available,
        custom_price=data.custom_price,
    )
    return {"data": BusinessAddonResponse.model_validate(addon)}


@router.post("/addons", status_code=status.HTTP_201_CREATED)
async def create_business_addon(
    data: BusinessAddonUpsert,
    db: AsyncSession = Depends(get_db),
    context: ProviderContext = Depends(require_owner),
):
    """Offer an addon; available addons need a custom price."""
    return await _set_addon(data, db, context)


@router.put("/addons")
async def update_business_addon(
    data: BusinessAddonUpsert,
    db: AsyncSession = Depends(get_db),
    context: ProviderContext = Depends(require_owner),
):
    return await _set_addon(data, db, context)
