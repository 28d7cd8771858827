"""Enumeration types for the ROAM marketplace domain model."""

from enum import Enum

from sqlalchemy import Enum as SQLEnum


class BusinessType(str, Enum):
    """Legal/operating shape of a business."""
    INDEPENDENT = "independent"
    SMALL_BUSINESS = "small_business"
    FRANCHISE = "franchise"
    ENTERPRISE = "enterprise"
    OTHER = "other"


class VerificationStatus(str, Enum):
    """Admin verification state of a business."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


class ProviderRole(str, Enum):
    """Role of a provider within its business."""
    OWNER = "owner"
    DISPATCHER = "dispatcher"
    PROVIDER = "provider"


class BackgroundCheckStatus(str, Enum):
    NOT_STARTED = "not_started"
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"


class ApplicationStatus(str, Enum):
    """Lifecycle of a provider application."""
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewStatus(str, Enum):
    """Admin review state of a provider application."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DocumentType(str, Enum):
    """Types of business verification documents."""
    LIABILITY_INSURANCE = "liability_insurance"
    PROFESSIONAL_LICENSE = "professional_license"
    PROFESSIONAL_CERTIFICATE = "professional_certificate"
    BUSINESS_LICENSE = "business_license"
    DRIVERS_LICENSE = "drivers_license"  # identity flow only
    PROOF_OF_ADDRESS = "proof_of_address"  # identity flow only


class DocumentStatus(str, Enum):
    """Verification state of an uploaded document."""
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class DeliveryType(str, Enum):
    """Where a business delivers a service."""
    BUSINESS_LOCATION = "business_location"
    CUSTOMER_LOCATION = "customer_location"
    VIRTUAL = "virtual"
    BOTH_LOCATIONS = "both_locations"


class BookingStatus(str, Enum):
    """Status of a customer booking."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DECLINED = "declined"
    NO_SHOW = "no_show"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


class OnboardingStep(str, Enum):
    """Onboarding steps in cursor order."""
    BUSINESS_INFO = "business_info"
    IDENTITY_VERIFICATION = "identity_verification"
    APPLICATION_SUBMITTED = "application_submitted"
    DOCUMENTS = "documents"
    SERVICE_PRICING = "service_pricing"
    BANKING_PAYOUT = "banking_payout"
    BUSINESS_HOURS = "business_hours"
    FINAL_REVIEW = "final_review"


class AuditAction(str, Enum):
    """Actions tracked in audit log."""
    APPLICATION_SUBMITTED = "application_submitted"
    APPLICATION_APPROVED = "application_approved"
    APPLICATION_REJECTED = "application_rejected"
    BUSINESS_APPROVED = "business_approved"
    BUSINESS_REJECTED = "business_rejected"
    BUSINESS_SUSPENDED = "business_suspended"
    DOCUMENT_UPLOADED = "document_uploaded"
    DOCUMENT_VERIFIED = "document_verified"
    DOCUMENT_REJECTED = "document_rejected"
    REVIEW_APPROVED = "review_approved"
    REVIEW_UNAPPROVED = "review_unapproved"
    REVIEW_FEATURED = "review_featured"
    REVIEW_UNFEATURED = "review_unfeatured"
    BOOKING_STATUS_CHANGED = "booking_status_changed"
    ONBOARDING_COMPLETED = "onboarding_completed"
    STAFF_INVITED = "staff_invited"
    STAFF_JOINED = "staff_joined"


def pg_enum(enum_cls: type[Enum], name: str) -> SQLEnum:
    """Postgres enum column type that stores member values, not names."""
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
    )
