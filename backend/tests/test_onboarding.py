import unittest
import uuid
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import DEFAULT, AsyncMock, MagicMock, patch

from app.core.errors import Forbidden, ValidationFailed
from app.core.phase_gate import Phase2Context
from app.core.security import AuthenticatedUser
from app.models.enums import ApplicationStatus, BusinessType, OnboardingStep, VerificationStatus
from app.schemas.onboarding import ApplicationSubmit
from app.services.onboarding import (
    OnboardingService,
    advance_cursor,
    compute_onboarding_status,
    ensure_phase2_user,
)


def _business(**fields):
    values = dict(
        id=uuid.uuid4(),
        business_name="Harbor Spa",
        business_type=BusinessType.SMALL_BUSINESS,
        verification_status=VerificationStatus.PENDING,
        identity_verified=True,
        setup_step=3,
        setup_completed=False,
        business_hours=None,
    )
    values.update(fields)
    return SimpleNamespace(**values)


def _progress(completed=()):
    return SimpleNamespace(
        completed_steps=list(completed),
        step_data={},
        current_step=3,
        phase_2_completed=False,
        phase_2_completed_at=None,
    )


class TestOnboardingStatus(unittest.TestCase):
    def test_no_business_starts_phase1(self):
        status = compute_onboarding_status(None, None, None)
        self.assertEqual(status["phase"], "phase1")
        self.assertEqual(status["current_step"], "business_info")

    def test_identity_pending(self):
        status = compute_onboarding_status(_business(identity_verified=False), _progress(["business_info"]), None)
        self.assertEqual(status["current_step"], "identity_verification")

    def test_waiting_for_admin(self):
        application = SimpleNamespace(application_status=ApplicationStatus.SUBMITTED)
        status = compute_onboarding_status(_business(), _progress(), application)
        self.assertEqual(status["phase"], "phase1")
        self.assertEqual(status["current_step"], "awaiting_approval")
        self.assertEqual(status["application_status"], "submitted")

    def test_rejected_application_can_resubmit(self):
        application = SimpleNamespace(application_status=ApplicationStatus.REJECTED)
        status = compute_onboarding_status(_business(), _progress(), application)
        self.assertEqual(status["current_step"], "application_submitted")

    def test_approved_moves_to_first_open_phase2_step(self):
        application = SimpleNamespace(application_status=ApplicationStatus.APPROVED)
        status = compute_onboarding_status(
            _business(), _progress(["documents", "service_pricing"]), application
        )
        self.assertEqual(status["phase"], "phase2")
        self.assertEqual(status["current_step"], "banking_payout")

    def test_completed_setup(self):
        application = SimpleNamespace(application_status=ApplicationStatus.APPROVED)
        status = compute_onboarding_status(_business(setup_completed=True), _progress(), application)
        self.assertEqual(status["phase"], "complete")

    def test_cursor_never_moves_back(self):
        self.assertEqual(advance_cursor(None, OnboardingStep.BUSINESS_INFO), 1)
        self.assertEqual(advance_cursor(6, OnboardingStep.DOCUMENTS), 6)
        self.assertEqual(advance_cursor(4, OnboardingStep.BUSINESS_HOURS), 7)


class OnboardingTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.db = MagicMock()
        self.db.execute = AsyncMock()
        self.db.flush = AsyncMock()
        self.db.commit = AsyncMock()
        self.db.refresh = AsyncMock()
        self.service = OnboardingService(self.db)
        self.business = _business()
        self.ctx = Phase2Context(self.business.id, "owner-uid", uuid.uuid4())
        self.service.get_business = AsyncMock(return_value=self.business)


class TestPhase2Steps(OnboardingTestCase):
    async def test_final_review_is_not_a_saveable_step(self):
        with self.assertRaises(ValidationFailed) as ctx:
            await self.service.save_phase2_step(self.ctx, self.business.id, OnboardingStep.FINAL_REVIEW, {})
        self.assertEqual(ctx.exception.code, "invalid_step")

    async def test_phase1_step_is_rejected(self):
        with self.assertRaises(ValidationFailed):
            await self.service.save_phase2_step(self.ctx, self.business.id, OnboardingStep.BUSINESS_INFO, {})

    async def test_other_business_is_forbidden(self):
        with self.assertRaises(Forbidden):
            await self.service.save_phase2_step(self.ctx, uuid.uuid4(), OnboardingStep.BUSINESS_HOURS, {})
        self.service.get_business.assert_not_called()

    async def test_saving_hours_twice_is_idempotent(self):
        progress = _progress(["business_info", "identity_verification", "application_submitted"])
        self.service.get_progress = AsyncMock(return_value=progress)
        data = {
            "hours": {
                "monday": {"open": "09:00", "close": "17:00"},
                "sunday": {"closed": True},
            }
        }

        await self.service.save_phase2_step(self.ctx, self.business.id, OnboardingStep.BUSINESS_HOURS, data)
        first = (list(progress.completed_steps), dict(progress.step_data), progress.current_step)
        await self.service.save_phase2_step(self.ctx, self.business.id, OnboardingStep.BUSINESS_HOURS, data)

        self.assertEqual((progress.completed_steps, progress.step_data, progress.current_step), first)
        self.assertEqual(progress.completed_steps.count("business_hours"), 1)
        self.assertEqual(progress.current_step, 7)
        self.assertEqual(self.business.setup_step, 7)
        self.assertEqual(self.business.business_hours["monday"]["open"], "09:00")

    async def test_invalid_hours_report_field_details(self):
        self.service.get_progress = AsyncMock(return_value=_progress())
        with self.assertRaises(ValidationFailed) as ctx:
            await self.service.save_phase2_step(
                self.ctx,
                self.business.id,
                OnboardingStep.BUSINESS_HOURS,
                {"hours": {"monday": {"open": "18:00", "close": "09:00"}}},
            )
        self.assertEqual(ctx.exception.message, "Invalid data for step 'business_hours'")
        self.assertTrue(ctx.exception.details)
        self.db.commit.assert_not_called()

    async def test_documents_step_requires_uploads(self):
        self.service._missing_documents = AsyncMock(return_value=["business_license"])
        with self.assertRaises(ValidationFailed) as ctx:
            await self.service.save_phase2_step(self.ctx, self.business.id, OnboardingStep.DOCUMENTS, {})
        self.assertEqual(ctx.exception.code, "documents_missing")
        self.assertEqual(ctx.exception.details, {"missing": ["business_license"]})

    async def test_banking_step_requires_connection(self):
        self.service._has_bank_connection = AsyncMock(return_value=False)
        with self.assertRaises(ValidationFailed) as ctx:
            await self.service.save_phase2_step(self.ctx, self.business.id, OnboardingStep.BANKING_PAYOUT, {})
        self.assertEqual(ctx.exception.code, "bank_account_missing")


def _pricing(service_ids, addon_ids=()):
    return {
        "services": [{"service_id": str(s), "business_price": "90.00"} for s in service_ids],
        "addons": [{"addon_id": str(a), "custom_price": "15.00", "is_available": True} for a in addon_ids],
    }


class TestServicePricingStep(OnboardingTestCase):
    def setUp(self):
        super().setUp()
        self.progress = _progress(["documents"])
        self.service.get_progress = AsyncMock(return_value=self.progress)

    async def test_price_floor_applies(self):
        catalog = SimpleNamespace(name="Deep Tissue Massage", min_price=Decimal("120.00"), duration_minutes=60)
        with patch("app.services.onboarding.PricingService._get_service", AsyncMock(return_value=catalog)):
            with self.assertRaises(ValidationFailed) as ctx:
                await self.service.save_phase2_step(
                    self.ctx, self.business.id, OnboardingStep.SERVICE_PRICING, _pricing([uuid.uuid4()])
                )
        self.assertEqual(ctx.exception.code, "price_below_minimum")
        self.assertNotIn("service_pricing", self.progress.completed_steps)
        self.db.commit.assert_not_called()

    async def test_available_addon_needs_price(self):
        data = _pricing([uuid.uuid4()])
        data["addons"] = [{"addon_id": str(uuid.uuid4()), "is_available": True}]
        with patch("app.services.onboarding.PricingService.upsert_service", AsyncMock()):
            with self.assertRaises(ValidationFailed) as ctx:
                await self.service.save_phase2_step(
                    self.ctx, self.business.id, OnboardingStep.SERVICE_PRICING, data
                )
        self.assertEqual(ctx.exception.code, "invalid_addon_price")
        self.db.commit.assert_not_called()

    def _stub_pricing(self):
        return patch.multiple(
            "app.services.onboarding.PricingService",
            upsert_service=DEFAULT,
            set_addon=DEFAULT,
            deactivate_services=DEFAULT,
            withdraw_addons=DEFAULT,
        )

    async def _save(self, data):
        await self.service.save_phase2_step(self.ctx, self.business.id, OnboardingStep.SERVICE_PRICING, data)

    async def test_saving_same_pricing_twice_is_idempotent(self):
        data = _pricing([uuid.uuid4(), uuid.uuid4()], [uuid.uuid4()])
        with self._stub_pricing() as pricing:
            await self._save(data)
            first = (list(self.progress.completed_steps), dict(self.progress.step_data))
            await self._save(data)

        self.assertEqual((self.progress.completed_steps, self.progress.step_data), first)
        self.assertEqual(self.progress.completed_steps.count("service_pricing"), 1)
        self.assertEqual(pricing["upsert_service"].await_count, 4)
        for name in ("deactivate_services", "withdraw_addons"):
            for call in pricing[name].await_args_list:
                self.assertEqual(call.args[1], set())

    async def test_resave_switches_off_dropped_entries(self):
        kept, dropped = uuid.uuid4(), uuid.uuid4()
        kept_addon, dropped_addon = uuid.uuid4(), uuid.uuid4()
        with self._stub_pricing() as pricing:
            await self._save(_pricing([kept, dropped], [kept_addon, dropped_addon]))
            await self._save(_pricing([kept], [kept_addon]))

        self.assertEqual(pricing["deactivate_services"].await_args.args, (self.business.id, {dropped}))
        self.assertEqual(pricing["withdraw_addons"].await_args.args, (self.business.id, {dropped_addon}))
        saved = self.progress.step_data["service_pricing"]
        self.assertEqual([s["service_id"] for s in saved["services"]], [str(kept)])


class TestFinalReview(OnboardingTestCase):
    async def test_lists_everything_missing(self):
        self.service._missing_documents = AsyncMock(return_value=["business_license"])
        self.service._has_bank_connection = AsyncMock(return_value=False)

        with patch("app.services.onboarding.PricingService.count_active_services", AsyncMock(return_value=0)):
            with self.assertRaises(ValidationFailed) as ctx:
                await self.service.complete_final_review(self.ctx, self.business.id)

        self.assertEqual(ctx.exception.code, "onboarding_incomplete")
        self.assertEqual(
            ctx.exception.details["missing"],
            ["document:business_license", "service_pricing", "banking_payout", "business_hours"],
        )
        self.assertFalse(self.business.setup_completed)

    async def test_complete_hands_business_to_admins(self):
        self.business.business_hours = {"monday": {"closed": False, "open": "09:00", "close": "17:00"}}
        self.business.verification_status = VerificationStatus.APPROVED
        self.service._missing_documents = AsyncMock(return_value=[])
        self.service._has_bank_connection = AsyncMock(return_value=True)
        progress = _progress(["documents", "service_pricing", "banking_payout", "business_hours"])
        self.service.get_progress = AsyncMock(return_value=progress)

        with patch("app.services.onboarding.PricingService.count_active_services", AsyncMock(return_value=2)):
            business = await self.service.complete_final_review(self.ctx, self.business.id)

        self.assertTrue(business.setup_completed)
        self.assertEqual(business.verification_status, VerificationStatus.PENDING)
        self.assertTrue(progress.phase_2_completed)
        self.assertIn("final_review", progress.completed_steps)
        self.assertEqual(business.setup_step, 8)
        self.db.commit.assert_awaited_once()


class TestPhase1(OnboardingTestCase):
    async def test_submit_requires_every_consent(self):
        data = ApplicationSubmit.model_validate(
            {"consents": {"information_accuracy": True, "terms_accepted": True}}
        )
        with self.assertRaises(ValidationFailed) as ctx:
            await self.service.submit_application(AuthenticatedUser(uid="owner-uid"), data)
        self.assertEqual(ctx.exception.code, "consents_required")
        self.db.execute.assert_not_called()

    def test_phase2_link_is_personal(self):
        ctx = Phase2Context(uuid.uuid4(), "owner-uid", uuid.uuid4())
        ensure_phase2_user(ctx, "owner-uid")
        with self.assertRaises(Forbidden):
            ensure_phase2_user(ctx, "someone-else")


if __name__ == "__main__":
    unittest.main()
