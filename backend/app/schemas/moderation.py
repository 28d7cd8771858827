"""Admin moderation schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from app.models.enums import ApplicationStatus, DocumentStatus, ReviewStatus, VerificationStatus
from app.schemas.base import BaseSchema, IDMixin


class ModerationRequest(BaseSchema):
    notes: Optional[str] = Field(None, max_length=2000)
    expected_version: Optional[int] = None


class BusinessStatusUpdate(ModerationRequest):
    status: VerificationStatus


class DocumentVerificationUpdate(BaseSchema):
    status: DocumentStatus
    rejection_reason: Optional[str] = Field(None, max_length=2000)


class ModeratedResponse(BaseSchema, IDMixin):
    moderated_by: Optional[UUID] = None
    moderated_at: Optional[datetime] = None
    moderation_notes: Optional[str] = None
    version: int


class ReviewResponse(ModeratedResponse):
    booking_id: UUID
    business_id: UUID
    provider_id: Optional[UUID] = None
    overall_rating: int
    service_rating: Optional[int] = None
    communication_rating: Optional[int] = None
    punctuality_rating: Optional[int] = None
    review_text: Optional[str] = None
    is_approved: bool
    is_featured: bool
    created_at: datetime


class BusinessModerationResponse(ModeratedResponse):
    business_name: str
    verification_status: VerificationStatus
    is_active: bool


class ApplicationModerationResponse(ModeratedResponse):
    business_id: UUID
    user_id: str
    application_status: ApplicationStatus
    review_status: ReviewStatus
    submitted_at: datetime


class ApplicationApprovalResponse(BaseSchema):
    application: ApplicationModerationResponse
    phase2_link_sent: bool = True
