"""Business profile and onboarding models."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.models.enums import (
    ApplicationStatus,
    BusinessType,
    ReviewStatus,
    VerificationStatus,
    pg_enum,
)

if TYPE_CHECKING:
    from app.models.provider import Provider
    from app.models.document import BusinessDocument


class BusinessProfile(Base):
    """A business operating on the marketplace.

    ``setup_step`` is the onboarding cursor and only moves forward.
    ``version`` is bumped by every moderation write for lost-update detection.
    """

    __tablename__ = "business_profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    business_name: Mapped[str] = mapped_column(String(255), nullable=False)
    business_type: Mapped[BusinessType] = mapped_column(
        pg_enum(BusinessType, "businesstype"),
        nullable=False,
    )
    contact_email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    website_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    business_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    service_categories: Mapped[list[str]] = mapped_column(JSONB, default=list)
    service_subcategories: Mapped[list[str]] = mapped_column(JSONB, default=list)
    business_hours: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)

    # Verification
    verification_status: Mapped[VerificationStatus] = mapped_column(
        pg_enum(VerificationStatus, "verificationstatus"),
        default=VerificationStatus.PENDING,
        nullable=False,
        index=True,
    )
    identity_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    identity_verification_session_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False)

    # Onboarding cursor
    setup_step: Mapped[int] = mapped_column(Integer, default=0)
    setup_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    application_submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Moderation audit
    moderated_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    moderated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    moderation_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    providers: Mapped[list["Provider"]] = relationship("Provider", back_populates="business")
    documents: Mapped[list["BusinessDocument"]] = relationship(
        "BusinessDocument", back_populates="business"
    )


class BusinessSetupProgress(Base):
    """Per-step onboarding progress; one row per business."""

    __tablename__ = "business_setup_progress"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    business_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("business_profiles.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    current_step: Mapped[int] = mapped_column(Integer, default=1)
    completed_steps: Mapped[list[str]] = mapped_column(JSONB, default=list)
    step_data: Mapped[dict[str, Any]] = mapped_column(JSONB, default=dict)

    phase_1_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    phase_1_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    phase_2_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    phase_2_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class ProviderApplication(Base):
    """A business owner's submitted application awaiting admin review."""

    __tablename__ = "provider_applications"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    business_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("business_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    application_status: Mapped[ApplicationStatus] = mapped_column(
        pg_enum(ApplicationStatus, "applicationstatus"),
        default=ApplicationStatus.SUBMITTED,
        nullable=False,
    )
    review_status: Mapped[ReviewStatus] = mapped_column(
        pg_enum(ReviewStatus, "reviewstatus"),
        default=ReviewStatus.PENDING,
        nullable=False,
    )
    consents_given: Mapped[dict[str, Any]] = mapped_column(JSONB, default=dict)
    submission_metadata: Mapped[dict[str, Any]] = mapped_column(JSONB, default=dict)
    submitted_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    moderated_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    moderated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    moderation_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class ApplicationApproval(Base):
    """A phase-2 onboarding link issued on application approval.

    Only the SHA-256 hash of the signed token is stored.
    """

    __tablename__ = "application_approvals"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    business_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("business_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    application_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("provider_applications.id", ondelete="CASCADE"),
        nullable=False,
    )
    approved_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    approval_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    token_expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
