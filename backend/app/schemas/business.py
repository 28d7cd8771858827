"""Business catalog schemas."""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import Field

from app.models.enums import DeliveryType
from app.schemas.base import BaseSchema, IDMixin, TimestampMixin


class BusinessServiceCreate(BaseSchema):
    """Add a catalog service to a business."""

    business_id: Optional[UUID] = None
    service_id: UUID
    business_price: Decimal = Field(..., max_digits=10, decimal_places=2)
    delivery_type: DeliveryType = DeliveryType.CUSTOMER_LOCATION
    business_duration_minutes: Optional[int] = Field(None, gt=0)
    is_active: bool = True


class BusinessServiceUpdate(BaseSchema):
    """Full update of a business service."""

    business_id: Optional[UUID] = None
    service_id: UUID
    business_price: Decimal = Field(..., max_digits=10, decimal_places=2)
    delivery_type: DeliveryType
    business_duration_minutes: Optional[int] = Field(None, gt=0)
    is_active: bool
    expected_version: Optional[int] = None


class BusinessServiceResponse(BaseSchema, IDMixin, TimestampMixin):
    business_id: UUID
    service_id: UUID
    business_price: Decimal
    business_duration_minutes: Optional[int] = None
    delivery_type: DeliveryType
    is_active: bool
    version: int


class BusinessAddonUpsert(BaseSchema):
    business_id: Optional[UUID] = None
    addon_id: UUID
    custom_price: Optional[Decimal] = Field(None, max_digits=10, decimal_places=2)
    is_available: bool = False


class BusinessAddonResponse(BaseSchema, IDMixin, TimestampMixin):
    business_id: UUID
    addon_id: UUID
    custom_price: Optional[Decimal] = None
    is_available: bool
