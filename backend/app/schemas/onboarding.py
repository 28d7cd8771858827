"""Onboarding schemas (phase 1, phase 2 and status)."""

import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import EmailStr, Field, field_validator, model_validator

from app.models.enums import (
    BusinessType,
    DeliveryType,
    DocumentStatus,
    DocumentType,
    OnboardingStep,
    VerificationStatus,
)
from app.schemas.base import BaseSchema, IDMixin, TimestampMixin


# === Phase 1 ===

class BusinessInfoCreate(BaseSchema):
    """Phase 1 business information."""

    business_name: str = Field(..., min_length=2, max_length=255)
    business_type: BusinessType
    contact_email: EmailStr
    phone: str = Field(..., min_length=7, max_length=50)
    website_url: Optional[str] = Field(None, max_length=500)
    business_description: Optional[str] = None
    service_categories: list[UUID] = Field(..., min_length=1)
    service_subcategories: list[UUID] = Field(default_factory=list)
    owner_first_name: Optional[str] = Field(None, max_length=100)
    owner_last_name: Optional[str] = Field(None, max_length=100)


class BusinessProfileResponse(BaseSchema, IDMixin, TimestampMixin):
    business_name: str
    business_type: BusinessType
    contact_email: str
    phone: str
    website_url: Optional[str] = None
    business_description: Optional[str] = None
    verification_status: VerificationStatus
    identity_verified: bool
    is_active: bool
    setup_step: int
    setup_completed: bool
    application_submitted_at: Optional[datetime] = None
    version: int


class IdentitySessionResponse(BaseSchema):
    session_id: str
    url: Optional[str] = None
    status: str
    identity_verified: bool = False


class Consents(BaseSchema):
    information_accuracy: bool = False
    terms_accepted: bool = False
    background_check_consent: bool = False

    def all_given(self) -> bool:
        return self.information_accuracy and self.terms_accepted and self.background_check_consent


class ApplicationSubmit(BaseSchema):
    consents: Consents
    submission_metadata: dict[str, Any] = Field(default_factory=dict)


class ApplicationResponse(BaseSchema, IDMixin):
    business_id: UUID
    application_status: str
    review_status: str
    submitted_at: datetime


class OnboardingStatusResponse(BaseSchema):
    phase: str
    current_step: str
    business_id: Optional[UUID] = None
    verification_status: Optional[VerificationStatus] = None
    application_status: Optional[str] = None
    setup_step: int = 0
    completed_steps: list[str] = Field(default_factory=list)


# === Phase 2 ===

class Phase2TokenValidate(BaseSchema):
    token: str


class Phase2AccessResponse(BaseSchema):
    business_id: UUID
    business_name: str
    application_id: UUID
    current_step: int
    completed_steps: list[str]
    step_data: dict[str, Any]


class Phase2StepSave(BaseSchema):
    business_id: UUID
    step: OnboardingStep
    data: dict[str, Any] = Field(default_factory=dict)


_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class DayHours(BaseSchema):
    closed: bool = False
    open: Optional[str] = None
    close: Optional[str] = None

    @model_validator(mode="after")
    def check_range(self) -> "DayHours":
        if self.closed:
            return self
        if not self.open or not self.close:
            raise ValueError("open and close times are required unless the day is closed")
        for value in (self.open, self.close):
            if not _TIME_RE.match(value):
                raise ValueError(f"Invalid time '{value}', expected HH:MM")
        if self.open >= self.close:
            raise ValueError("close time must be after open time")
        return self


class BusinessHoursData(BaseSchema):
    hours: dict[str, DayHours]

    @field_validator("hours")
    @classmethod
    def check_days(cls, value: dict[str, DayHours]) -> dict[str, DayHours]:
        unknown = [day for day in value if day not in WEEKDAYS]
        if unknown:
            raise ValueError(f"Unknown days: {', '.join(unknown)}")
        if all(day.closed for day in value.values()):
            raise ValueError("At least one day must be open")
        return value


class ServicePriceItem(BaseSchema):
    service_id: UUID
    business_price: Decimal
    delivery_type: DeliveryType = DeliveryType.CUSTOMER_LOCATION
    business_duration_minutes: Optional[int] = Field(None, gt=0)
    is_active: bool = True


class AddonPriceItem(BaseSchema):
    addon_id: UUID
    custom_price: Optional[Decimal] = None
    is_available: bool = False


class ServicePricingData(BaseSchema):
    services: list[ServicePriceItem] = Field(..., min_length=1)
    addons: list[AddonPriceItem] = Field(default_factory=list)


class BankLinkTokenResponse(BaseSchema):
    link_token: str


class BankAccountConnect(BaseSchema):
    business_id: UUID
    public_token: str
    account_id: str
    institution_name: Optional[str] = None


class BankConnectionResponse(BaseSchema):
    business_id: UUID
    institution_name: Optional[str] = None
    account_name: Optional[str] = None
    account_mask: Optional[str] = None
    account_type: Optional[str] = None


class SetupProgressResponse(BaseSchema):
    business_id: UUID
    current_step: int
    completed_steps: list[str]
    step_data: dict[str, Any]
    phase_1_completed: bool
    phase_2_completed: bool


# === Documents ===

class DocumentUploadRequest(BaseSchema):
    file_data: str = Field(..., min_length=1)
    file_name: str = Field(..., min_length=1, max_length=255)
    file_path: Optional[str] = None
    mime_type: str
    business_id: UUID
    user_id: str
    document_type: DocumentType
    file_size_bytes: int = Field(..., gt=0)


class DocumentResponse(BaseSchema, IDMixin):
    business_id: UUID
    document_type: DocumentType
    document_name: str
    file_url: str
    storage_path: str
    file_size_bytes: int
    mime_type: str
    verification_status: DocumentStatus
    rejection_reason: Optional[str] = None
    created_at: datetime


class DocumentListResponse(BaseSchema):
    documents: list[DocumentResponse]
    offered_types: list[DocumentType]
    required_types: list[DocumentType]
    missing_types: list[DocumentType]
