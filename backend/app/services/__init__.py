"""Services for the ROAM platform."""

from app.services.storage import StorageService, get_storage_service
from app.services.audit import AuditService
from app.services.documents import DocumentService
from app.services.pricing import PricingService
from app.services.onboarding import OnboardingService
from app.services.moderation import ModerationService
from app.services.bookings import BookingService
from app.services.staff import StaffService
from app.services.email import EmailService, get_email_service

__all__ = [
    "StorageService",
    "get_storage_service",
    "AuditService",
    "DocumentService",
    "PricingService",
    "OnboardingService",
    "ModerationService",
    "BookingService",
    "StaffService",
    "EmailService",
    "get_email_service",
]
