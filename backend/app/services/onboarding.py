"""
Provider onboarding orchestration.

Phase 1 (signed-in owner): business info, identity verification, application
submission. An admin then approves the application, which emails a phase-2
link. Phase 2 (link holder): documents, service pricing, payout account,
business hours and a final review that hands the business to admins for
verification.

``business_profiles.setup_step`` is the cursor; it only moves forward.
Each phase-2 step save replaces that step's payload and leaves other steps
untouched, so saving the same step twice has the same effect as saving it once.
"""

import logging
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Conflict, Forbidden, NotFound, ValidationFailed
from app.core.phase_gate import Phase2Context
from app.core.security import AuthenticatedUser
from app.models.banking import BankConnection
from app.models.business import BusinessProfile, BusinessSetupProgress, ProviderApplication
from app.models.document import BusinessDocument
from app.models.enums import (
    ApplicationStatus,
    AuditAction,
    BackgroundCheckStatus,
    OnboardingStep,
    ProviderRole,
    ReviewStatus,
    VerificationStatus,
)
from app.models.provider import Provider
from app.schemas.onboarding import (
    ApplicationSubmit,
    BusinessHoursData,
    BusinessInfoCreate,
    ServicePricingData,
)
from app.services.audit import AuditService
from app.services.documents import missing_required_documents
from app.services.email import EmailService
from app.services.identity import IdentityVerificationClient
from app.services.pricing import PricingService

logger = logging.getLogger(__name__)

STEP_ORDER: dict[OnboardingStep, int] = {
    OnboardingStep.BUSINESS_INFO: 1,
    OnboardingStep.IDENTITY_VERIFICATION: 2,
    OnboardingStep.APPLICATION_SUBMITTED: 3,
    OnboardingStep.DOCUMENTS: 4,
    OnboardingStep.SERVICE_PRICING: 5,
    OnboardingStep.BANKING_PAYOUT: 6,
    OnboardingStep.BUSINESS_HOURS: 7,
    OnboardingStep.FINAL_REVIEW: 8,
}

PHASE_1_STEPS = (
    OnboardingStep.BUSINESS_INFO,
    OnboardingStep.IDENTITY_VERIFICATION,
    OnboardingStep.APPLICATION_SUBMITTED,
)
PHASE_2_STEPS = (
    OnboardingStep.DOCUMENTS,
    OnboardingStep.SERVICE_PRICING,
    OnboardingStep.BANKING_PAYOUT,
    OnboardingStep.BUSINESS_HOURS,
    OnboardingStep.FINAL_REVIEW,
)


def _dropped_ids(previous: dict, current: dict, key: str, id_field: str) -> set[UUID]:
    """Ids listed under ``key`` in the previous step payload but not the current one."""
    kept = {str(item[id_field]) for item in current.get(key, [])}
    return {UUID(str(item[id_field])) for item in previous.get(key, []) if str(item[id_field]) not in kept}


def advance_cursor(current: Optional[int], step: OnboardingStep) -> int:
    """The cursor after completing ``step``; never moves backwards."""
    return max(current or 0, STEP_ORDER[step])


def compute_onboarding_status(
    business: Optional[BusinessProfile],
    progress: Optional[BusinessSetupProgress],
    application: Optional[ProviderApplication],
) -> dict[str, Any]:
    """Derive ``{phase, current_step, ...}`` from the stored onboarding state."""
    if business is None:
        return {
            "phase": "phase1",
            "current_step": OnboardingStep.BUSINESS_INFO.value,
            "business_id": None,
            "verification_status": None,
            "application_status": None,
            "setup_step": 0,
            "completed_steps": [],
        }

    completed = list(progress.completed_steps or []) if progress else []
    status = {
        "business_id": business.id,
        "verification_status": business.verification_status,
        "application_status": application.application_status.value if application else None,
        "setup_step": business.setup_step or 0,
        "completed_steps": completed,
    }

    if business.setup_completed:
        return {**status, "phase": "complete", "current_step": "admin_review"}

    if application is not None and application.application_status == ApplicationStatus.APPROVED:
        next_step = next(
            (s for s in PHASE_2_STEPS if s.value not in completed),
            OnboardingStep.FINAL_REVIEW,
        )
        return {**status, "phase": "phase2", "current_step": next_step.value}

    if not business.identity_verified:
        current = OnboardingStep.IDENTITY_VERIFICATION.value
    elif application is None or application.application_status == ApplicationStatus.REJECTED:
        current = OnboardingStep.APPLICATION_SUBMITTED.value
    else:
        current = "awaiting_approval"
    return {**status, "phase": "phase1", "current_step": current}


class OnboardingService:
    """Reads and advances a business's onboarding state."""

    def __init__(
        self,
        db: AsyncSession,
        email: Optional[EmailService] = None,
        identity: Optional[IdentityVerificationClient] = None,
    ):
        self.db = db
        self.email = email
        self.identity = identity
        self.audit = AuditService(db)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_owner_provider(self, user_id: str) -> Optional[Provider]:
        result = await self.db.execute(
            select(Provider).where(
                Provider.user_id == user_id,
                Provider.provider_role == ProviderRole.OWNER,
                Provider.is_active.is_(True),
            )
        )
        return result.scalars().first()

    async def get_business(self, business_id: UUID) -> BusinessProfile:
        result = await self.db.execute(
            select(BusinessProfile).where(BusinessProfile.id == business_id)
        )
        business = result.scalar_one_or_none()
        if not business:
            raise NotFound("Business profile not found")
        return business

    async def get_owned_business(self, user: AuthenticatedUser) -> tuple[Provider, BusinessProfile]:
        owner = await self.get_owner_provider(user.uid)
        if owner is None:
            raise NotFound("Business profile not found")
        return owner, await self.get_business(owner.business_id)

    async def get_progress(self, business_id: UUID, create: bool = True) -> Optional[BusinessSetupProgress]:
        result = await self.db.execute(
            select(BusinessSetupProgress).where(BusinessSetupProgress.business_id == business_id)
        )
        progress = result.scalar_one_or_none()
        if progress is None and create:
            progress = BusinessSetupProgress(
                business_id=business_id,
                current_step=1,
                completed_steps=[],
                step_data={},
            )
            self.db.add(progress)
            await self.db.flush()
        return progress

    async def get_latest_application(self, business_id: UUID) -> Optional[ProviderApplication]:
        result = await self.db.execute(
            select(ProviderApplication)
            .where(ProviderApplication.business_id == business_id)
            .order_by(ProviderApplication.submitted_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Progress bookkeeping
    # ------------------------------------------------------------------

    def _record_step(
        self,
        business: BusinessProfile,
        progress: BusinessSetupProgress,
        step: OnboardingStep,
        data: Optional[dict[str, Any]] = None,
    ) -> None:
        completed = list(progress.completed_steps or [])
        if step.value not in completed:
            completed.append(step.value)
        progress.completed_steps = completed
        if data is not None:
            progress.step_data = {**(progress.step_data or {}), step.value: data}
        progress.current_step = advance_cursor(progress.current_step, step)
        business.setup_step = advance_cursor(business.setup_step, step)

    # ------------------------------------------------------------------
    # Phase 1
    # ------------------------------------------------------------------

    async def save_business_info(self, user: AuthenticatedUser, data: BusinessInfoCreate) -> BusinessProfile:
        """Create the owner's business (and owner provider row) or update it before submission."""
        owner = await self.get_owner_provider(user.uid)
        if owner is None:
            business = BusinessProfile(
                verification_status=VerificationStatus.PENDING,
                is_active=False,
                setup_step=0,
                setup_completed=False,
            )
            self.db.add(business)
        else:
            business = await self.get_business(owner.business_id)
            if business.application_submitted_at is not None:
                raise Conflict(
                    "Business information cannot be changed after the application is submitted",
                    code="application_submitted",
                )

        business.business_name = data.business_name
        business.business_type = data.business_type
        business.contact_email = data.contact_email
        business.phone = data.phone
        business.website_url = data.website_url
        business.business_description = data.business_description
        business.service_categories = [str(c) for c in data.service_categories]
        business.service_subcategories = [str(s) for s in data.service_subcategories]
        await self.db.flush()

        if owner is None:
            owner = Provider(
                business_id=business.id,
                user_id=user.uid,
                provider_role=ProviderRole.OWNER,
                email=user.email or data.contact_email,
                first_name=data.owner_first_name,
                last_name=data.owner_last_name,
                phone=data.phone,
                is_active=True,
            )
            self.db.add(owner)
        elif data.owner_first_name or data.owner_last_name:
            owner.first_name = data.owner_first_name or owner.first_name
            owner.last_name = data.owner_last_name or owner.last_name

        progress = await self.get_progress(business.id)
        self._record_step(
            business,
            progress,
            OnboardingStep.BUSINESS_INFO,
            data.model_dump(mode="json", exclude={"owner_first_name", "owner_last_name"}),
        )

        await self.db.commit()
        await self.db.refresh(business)
        logger.info(f"[ONBOARDING] Business info saved for {business.id}")
        return business

    async def start_identity_verification(self, user: AuthenticatedUser, return_url: str) -> dict[str, Any]:
        _, business = await self.get_owned_business(user)
        if business.identity_verified:
            raise Conflict("Identity is already verified", code="identity_verified")
        session = await self.identity.create_session(business.id, user.uid, return_url)
        business.identity_verification_session_id = session["id"]
        await self.db.commit()
        return {
            "session_id": session["id"],
            "url": session.get("url"),
            "status": session.get("status", "requires_input"),
            "identity_verified": False,
        }

    async def check_identity_verification(self, user: AuthenticatedUser) -> dict[str, Any]:
        _, business = await self.get_owned_business(user)
        session_id = business.identity_verification_session_id
        if not session_id:
            raise ValidationFailed("Identity verification has not been started", code="identity_not_started")

        if not business.identity_verified:
            session = await self.identity.get_session(session_id)
            status = session.get("status", "unknown")
            if status == "verified":
                business.identity_verified = True
                progress = await self.get_progress(business.id)
                self._record_step(
                    business,
                    progress,
                    OnboardingStep.IDENTITY_VERIFICATION,
                    {"session_id": session_id, "verified_at": datetime.utcnow().isoformat()},
                )
                await self.db.commit()
                logger.info(f"[IDENTITY] Business {business.id} identity verified")
        else:
            status = "verified"

        return {
            "session_id": session_id,
            "status": status,
            "identity_verified": business.identity_verified,
        }

    async def submit_application(
        self,
        user: AuthenticatedUser,
        data: ApplicationSubmit,
        ip_address: Optional[str] = None,
    ) -> ProviderApplication:
        """Submit the phase-1 application for admin review."""
        if not data.consents.all_given():
            raise ValidationFailed("All consents must be given to submit application", code="consents_required")

        owner, business = await self.get_owned_business(user)
        if not business.identity_verified:
            raise ValidationFailed(
                "Identity verification must be completed before submitting",
                code="identity_not_verified",
            )

        existing = await self.get_latest_application(business.id)
        if existing is not None and existing.application_status != ApplicationStatus.REJECTED:
            raise Conflict("Application already submitted", code="already_submitted")

        now = datetime.utcnow()
        application = ProviderApplication(
            business_id=business.id,
            user_id=user.uid,
            application_status=ApplicationStatus.SUBMITTED,
            review_status=ReviewStatus.PENDING,
            consents_given={**data.consents.model_dump(), "given_at": now.isoformat()},
            submission_metadata={**data.submission_metadata, "ip_address": ip_address},
            submitted_at=now,
        )
        self.db.add(application)

        business.verification_status = VerificationStatus.PENDING
        business.application_submitted_at = now
        owner.background_check_status = BackgroundCheckStatus.PENDING

        progress = await self.get_progress(business.id)
        self._record_step(business, progress, OnboardingStep.APPLICATION_SUBMITTED, {"submitted_at": now.isoformat()})
        progress.phase_1_completed = True
        progress.phase_1_completed_at = now

        await self.db.flush()
        await self.audit.log(
            action=AuditAction.APPLICATION_SUBMITTED,
            resource_type="provider_application",
            resource_id=application.id,
            business_id=business.id,
            actor_id=user.uid,
            ip_address=ip_address,
        )
        await self.db.commit()
        await self.db.refresh(application)

        if self.email:
            await self.email.send_application_received(business.contact_email, business.business_name)
        logger.info(f"[ONBOARDING] Application {application.id} submitted for business {business.id}")
        return application

    async def get_status(self, user: AuthenticatedUser) -> dict[str, Any]:
        owner = await self.get_owner_provider(user.uid)
        if owner is None:
            return compute_onboarding_status(None, None, None)
        business = await self.get_business(owner.business_id)
        progress = await self.get_progress(business.id, create=False)
        application = await self.get_latest_application(business.id)
        return compute_onboarding_status(business, progress, application)

    # ------------------------------------------------------------------
    # Phase 2
    # ------------------------------------------------------------------

    async def describe_phase2_access(self, ctx: Phase2Context) -> dict[str, Any]:
        business = await self.get_business(ctx.business_id)
        progress = await self.get_progress(business.id)
        await self.db.commit()
        return {
            "business_id": business.id,
            "business_name": business.business_name,
            "application_id": ctx.application_id,
            "current_step": progress.current_step,
            "completed_steps": list(progress.completed_steps or []),
            "step_data": dict(progress.step_data or {}),
        }

    async def _missing_documents(self, business: BusinessProfile) -> list[str]:
        result = await self.db.execute(
            select(BusinessDocument.document_type, BusinessDocument.verification_status).where(
                BusinessDocument.business_id == business.id
            )
        )
        pairs = [(row[0], getattr(row[1], "value", row[1])) for row in result.all()]
        return [t.value for t in missing_required_documents(business.business_type, pairs)]

    async def _has_bank_connection(self, business_id: UUID) -> bool:
        result = await self.db.execute(
            select(BankConnection.id).where(
                BankConnection.business_id == business_id,
                BankConnection.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none() is not None

    async def save_phase2_step(
        self,
        ctx: Phase2Context,
        business_id: UUID,
        step: OnboardingStep,
        data: dict[str, Any],
    ) -> BusinessSetupProgress:
        """Validate and persist one phase-2 step, replacing its previous payload."""
        ctx.ensure_business(business_id)
        if step not in PHASE_2_STEPS or step == OnboardingStep.FINAL_REVIEW:
            raise ValidationFailed(f"Step '{step.value}' cannot be saved here", code="invalid_step")

        business = await self.get_business(ctx.business_id)
        if business.setup_completed:
            raise Conflict("Onboarding has already been completed", code="onboarding_completed")

        try:
            if step == OnboardingStep.DOCUMENTS:
                missing = await self._missing_documents(business)
                if missing:
                    raise ValidationFailed(
                        "Required documents are missing",
                        code="documents_missing",
                        details={"missing": missing},
                    )
                payload = {"confirmed_at": datetime.utcnow().isoformat()}

            elif step == OnboardingStep.SERVICE_PRICING:
                pricing_data = ServicePricingData.model_validate(data)
                pricing = PricingService(self.db, autocommit=False)
                for item in pricing_data.services:
                    await pricing.upsert_service(
                        business_id=business.id,
                        service_id=item.service_id,
                        business_price=item.business_price,
                        delivery_type=item.delivery_type,
                        is_active=item.is_active,
                        business_duration_minutes=item.business_duration_minutes,
                    )
                for addon in pricing_data.addons:
                    await pricing.set_addon(
                        business_id=business.id,
                        addon_id=addon.addon_id,
                        is_available=addon.is_available,
                        custom_price=addon.custom_price,
                    )
                payload = pricing_data.model_dump(mode="json")

                # Entries dropped since the last save are switched off.
                progress = await self.get_progress(business.id)
                previous = (progress.step_data or {}).get(step.value) or {}
                await pricing.deactivate_services(
                    business.id, _dropped_ids(previous, payload, "services", "service_id")
                )
                await pricing.withdraw_addons(
                    business.id, _dropped_ids(previous, payload, "addons", "addon_id")
                )

            elif step == OnboardingStep.BANKING_PAYOUT:
                if not await self._has_bank_connection(business.id):
                    raise ValidationFailed("Connect a payout bank account first", code="bank_account_missing")
                payload = {"confirmed_at": datetime.utcnow().isoformat()}

            else:
                hours = BusinessHoursData.model_validate(data)
                business.business_hours = hours.model_dump(mode="json")["hours"]
                payload = hours.model_dump(mode="json")

        except ValidationError as e:
            raise ValidationFailed(
                f"Invalid data for step '{step.value}'",
                details=[{"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]} for err in e.errors()],
            )

        progress = await self.get_progress(business.id)
        self._record_step(business, progress, step, payload)
        await self.db.commit()
        await self.db.refresh(progress)
        logger.info(f"[ONBOARDING] Saved step {step.value} for business {business.id}")
        return progress

    async def complete_final_review(
        self,
        ctx: Phase2Context,
        business_id: UUID,
        ip_address: Optional[str] = None,
    ) -> BusinessProfile:
        """Check every phase-2 requirement and hand the business to admin review."""
        ctx.ensure_business(business_id)
        business = await self.get_business(ctx.business_id)
        if business.setup_completed:
            raise Conflict("Onboarding has already been completed", code="onboarding_completed")

        missing: list[str] = [f"document:{t}" for t in await self._missing_documents(business)]
        if await PricingService(self.db).count_active_services(business.id) == 0:
            missing.append("service_pricing")
        if not await self._has_bank_connection(business.id):
            missing.append("banking_payout")
        if not business.business_hours:
            missing.append("business_hours")
        if missing:
            raise ValidationFailed(
                "Onboarding is incomplete",
                code="onboarding_incomplete",
                details={"missing": missing},
            )

        now = datetime.utcnow()
        progress = await self.get_progress(business.id)
        self._record_step(business, progress, OnboardingStep.FINAL_REVIEW, {"completed_at": now.isoformat()})
        progress.phase_2_completed = True
        progress.phase_2_completed_at = now
        business.setup_completed = True
        business.verification_status = VerificationStatus.PENDING

        await self.audit.log(
            action=AuditAction.ONBOARDING_COMPLETED,
            resource_type="business_profile",
            resource_id=business.id,
            business_id=business.id,
            actor_id=ctx.user_id,
            ip_address=ip_address,
        )
        await self.db.commit()
        await self.db.refresh(business)
        logger.info(f"[ONBOARDING] Business {business.id} completed onboarding, pending admin review")
        return business


def ensure_phase2_user(ctx: Phase2Context, user_id: str) -> None:
    """The link is personal to the applicant it was issued for."""
    if user_id != ctx.user_id:
        raise Forbidden("This link was issued to a different user", code="user_mismatch")
