"""API routers for the ROAM platform."""

from app.routers.onboarding import router as onboarding_router
from app.routers.business import router as business_router
from app.routers.bookings import router as bookings_router
from app.routers.staff import router as staff_router
from app.routers.admin import router as admin_router

__all__ = [
    "onboarding_router",
    "business_router",
    "bookings_router",
    "staff_router",
    "admin_router",
]
