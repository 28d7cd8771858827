"""SQLAlchemy models for the ROAM marketplace."""

from app.models.business import (
    ApplicationApproval,
    BusinessProfile,
    BusinessSetupProgress,
    ProviderApplication,
)
from app.models.provider import AdminUser, Provider
from app.models.document import BusinessDocument
from app.models.catalog import BusinessAddon, BusinessService, Service, ServiceAddon
from app.models.banking import BankConnection
from app.models.booking import Booking
from app.models.review import Review
from app.models.audit import AuditLog

__all__ = [
    "ApplicationApproval",
    "BusinessProfile",
    "BusinessSetupProgress",
    "ProviderApplication",
    "AdminUser",
    "Provider",
    "BusinessDocument",
    "BusinessAddon",
    "BusinessService",
    "Service",
    "ServiceAddon",
    "BankConnection",
    "Booking",
    "Review",
    "AuditLog",
]
