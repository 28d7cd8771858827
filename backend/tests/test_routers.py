import unittest
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

from app.core.database import get_db
from app.core.errors import ValidationFailed
from app.core.permissions import ProviderContext, get_provider_context
from app.core.security import AuthenticatedUser, require_admin
from app.main import app
from app.models.enums import BookingStatus, PaymentStatus, ProviderRole
from app.routers.admin import get_moderation_service
from app.services.storage import get_storage_service


async def _fake_db():
    yield MagicMock()


def _context(role: ProviderRole) -> ProviderContext:
    return ProviderContext(
        user=AuthenticatedUser(uid=f"{role.value}-uid"),
        provider_id=uuid.uuid4(),
        business_id=uuid.uuid4(),
        role=role,
    )


def _booking(business_id):
    return SimpleNamespace(
        id=uuid.uuid4(),
        customer_id=uuid.uuid4(),
        business_id=business_id,
        provider_id=None,
        service_id=uuid.uuid4(),
        booking_date=date(2030, 5, 1),
        start_time=time(10, 0),
        total_amount=Decimal("120.00"),
        booking_status=BookingStatus.PENDING,
        payment_status=PaymentStatus.PENDING,
        original_booking_date=None,
        rescheduled_at=None,
        reschedule_count=0,
        cancelled_at=None,
        cancellation_reason=None,
        version=1,
        created_at=datetime(2030, 4, 1, 12, 0),
        updated_at=None,
    )


class RouterTestCase(unittest.TestCase):
    def setUp(self):
        app.dependency_overrides[get_db] = _fake_db
        app.dependency_overrides[get_storage_service] = lambda: MagicMock()
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()

    def act_as(self, role: ProviderRole) -> ProviderContext:
        context = _context(role)
        app.dependency_overrides[get_provider_context] = lambda: context
        return context


class TestPublicSurface(RouterTestCase):
    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "healthy")

    def test_unknown_route(self):
        response = self.client.get("/api/does-not-exist")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Resource not found", "code": "not_found"})

    def test_phase2_route_without_link(self):
        response = self.client.get("/api/onboarding/documents")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Invalid or expired link", "code": "invalid_link"})

    def test_bookings_require_authentication(self):
        response = self.client.get("/api/bookings")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Authentication required"})


class TestRoleGates(RouterTestCase):
    def test_provider_cannot_change_pricing(self):
        self.act_as(ProviderRole.PROVIDER)
        response = self.client.post(
            "/api/business/services",
            json={"service_id": str(uuid.uuid4()), "business_price": "75.00"},
        )
        self.assertEqual(response.status_code, 403)
        body = response.json()
        self.assertEqual(body["code"], "insufficient_role")
        self.assertEqual(body["details"]["actual_role"], "provider")

    def test_dispatcher_cannot_change_pricing(self):
        self.act_as(ProviderRole.DISPATCHER)
        for method, path in (("post", "/api/business/services"), ("put", "/api/business/addons")):
            with self.subTest(path=path):
                response = self.client.request(
                    method.upper(),
                    path,
                    json={
                        "service_id": str(uuid.uuid4()),
                        "addon_id": str(uuid.uuid4()),
                        "business_price": "75.00",
                        "is_available": False,
                    },
                )
                self.assertEqual(response.status_code, 403)
                self.assertEqual(
                    response.json()["details"],
                    {"required_roles": ["owner"], "actual_role": "dispatcher"},
                )

    def test_dispatcher_can_read_services(self):
        context = self.act_as(ProviderRole.DISPATCHER)
        with patch("app.routers.business.PricingService") as service_cls:
            service_cls.return_value.list_services = AsyncMock(return_value=([], 0))
            response = self.client.get("/api/business/services")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(service_cls.return_value.list_services.await_args.args[0], context.business_id)

    def test_dispatcher_cannot_invite_staff(self):
        self.act_as(ProviderRole.DISPATCHER)
        response = self.client.post("/api/staff/invite", json={"email": "new@spa.test", "role": "provider"})
        self.assertEqual(response.status_code, 403)

    def test_other_business_is_forbidden(self):
        self.act_as(ProviderRole.OWNER)
        response = self.client.get("/api/bookings", params={"business_id": str(uuid.uuid4())})
        self.assertEqual(response.status_code, 403)


class TestBookingRoutes(RouterTestCase):
    def test_list_is_paginated(self):
        context = self.act_as(ProviderRole.DISPATCHER)
        with patch("app.routers.bookings.BookingService") as service_cls:
            service_cls.return_value.list_bookings = AsyncMock(return_value=([_booking(context.business_id)], 51))
            response = self.client.get("/api/bookings", params={"status": "pending", "limit": 50})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(len(body["data"]), 1)
        self.assertEqual(body["pagination"], {"page": 1, "limit": 50, "total": 51, "total_pages": 2})
        kwargs = service_cls.return_value.list_bookings.await_args.kwargs
        self.assertEqual(kwargs["business_id"], context.business_id)
        self.assertEqual(kwargs["status"], BookingStatus.PENDING)

    def test_provider_sees_only_own_bookings(self):
        context = self.act_as(ProviderRole.PROVIDER)
        with patch("app.routers.bookings.BookingService") as service_cls:
            service_cls.return_value.list_bookings = AsyncMock(return_value=([], 0))
            response = self.client.get("/api/bookings", params={"provider_id": str(uuid.uuid4())})

        self.assertEqual(response.status_code, 200)
        kwargs = service_cls.return_value.list_bookings.await_args.kwargs
        self.assertEqual(kwargs["provider_id"], context.provider_id)

    def test_unknown_status_is_rejected(self):
        self.act_as(ProviderRole.DISPATCHER)
        response = self.client.patch(f"/api/bookings/{uuid.uuid4()}/status", json={"status": "teleported"})
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["error"], "Invalid request")
        self.assertEqual(body["details"][0]["field"], "status")


class TestAdminRoutes(RouterTestCase):
    def setUp(self):
        super().setUp()
        admin = AuthenticatedUser(uid="admin-uid")
        admin.admin_id = uuid.uuid4()
        self.moderation = MagicMock()
        app.dependency_overrides[require_admin] = lambda: admin
        app.dependency_overrides[get_moderation_service] = lambda: self.moderation

    def test_feature_ineligible_review(self):
        self.moderation.feature_review = AsyncMock(
            side_effect=ValidationFailed("Only approved reviews rated 4 or higher can be featured", code="not_eligible")
        )
        response = self.client.patch(f"/api/admin/reviews/{uuid.uuid4()}/feature")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "not_eligible")

    def test_reject_application_requires_body(self):
        response = self.client.patch(f"/api/admin/applications/{uuid.uuid4()}/reject")
        self.assertEqual(response.status_code, 400)

    def test_admin_gate(self):
        app.dependency_overrides.pop(require_admin)
        response = self.client.get("/api/admin/reviews")
        self.assertEqual(response.status_code, 401)


if __name__ == "__main__":
    unittest.main()
