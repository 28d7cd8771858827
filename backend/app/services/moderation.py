"""
Admin moderation of businesses, provider applications and reviews.

Every decision is one ``UPDATE ... RETURNING`` that writes the new state and
the moderation audit fields together and bumps ``version``. When the caller
sends ``expected_version`` the update only applies to that version, so a
concurrent decision is reported as a conflict instead of being overwritten.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import Conflict, NotFound, ValidationFailed
from app.core.security import AuthenticatedUser, hash_token
from app.core.tokens import issue_phase2_token
from app.models.business import ApplicationApproval, BusinessProfile, ProviderApplication
from app.models.enums import ApplicationStatus, AuditAction, ReviewStatus, VerificationStatus
from app.models.review import Review
from app.services.audit import AuditService
from app.services.email import EmailService

logger = logging.getLogger(__name__)

FEATURE_MIN_RATING = 4

REVIEW_FILTERS = ("approved", "unapproved", "featured")


@dataclass
class ModerationDecision:
    """Who decided, and why."""

    admin: AuthenticatedUser
    notes: Optional[str] = None
    expected_version: Optional[int] = None
    ip_address: Optional[str] = None


class ModerationService:
    def __init__(self, db: AsyncSession, email: Optional[EmailService] = None):
        self.db = db
        self.email = email
        self.audit = AuditService(db)

    async def _moderate(
        self,
        model,
        resource_id: UUID,
        values: dict[str, Any],
        decision: ModerationDecision,
        eligibility: tuple = (),
        ineligible_message: str = "This action is not allowed in the current state",
    ):
        """Apply one moderation UPDATE and explain why nothing matched if it fails."""
        conditions = [model.id == resource_id, *eligibility]
        if decision.expected_version is not None:
            conditions.append(model.version == decision.expected_version)

        result = await self.db.execute(
            update(model)
            .where(*conditions)
            .values(
                **values,
                moderated_by=decision.admin.admin_id,
                moderated_at=datetime.utcnow(),
                moderation_notes=decision.notes,
                version=model.version + 1,
            )
            .returning(model)
        )
        row = result.scalar_one_or_none()
        if row is not None:
            return row

        current = await self.db.execute(select(model.version).where(model.id == resource_id))
        version = current.scalar_one_or_none()
        if version is None:
            raise NotFound(f"{model.__name__} not found")
        if decision.expected_version is not None and version != decision.expected_version:
            raise Conflict(
                f"{model.__name__} was modified by someone else",
                code="version_conflict",
                details={"expected_version": decision.expected_version, "current_version": version},
            )
        raise ValidationFailed(ineligible_message, code="not_eligible")

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------

    async def _review_decision(
        self,
        review_id: UUID,
        values: dict[str, Any],
        action: AuditAction,
        decision: ModerationDecision,
        eligibility: tuple = (),
        ineligible_message: str = "",
    ) -> Review:
        review = await self._moderate(Review, review_id, values, decision, eligibility, ineligible_message)
        await self.audit.log_moderation(
            action=action,
            resource_type="review",
            resource_id=review.id,
            actor_id=decision.admin.uid,
            business_id=review.business_id,
            notes=decision.notes,
            ip_address=decision.ip_address,
        )
        await self.db.commit()
        logger.info(f"[MODERATION] {action.value} {review.id} by {decision.admin.uid}")
        return review

    async def approve_review(self, review_id: UUID, decision: ModerationDecision) -> Review:
        return await self._review_decision(
            review_id, {"is_approved": True}, AuditAction.REVIEW_APPROVED, decision
        )

    async def unapprove_review(self, review_id: UUID, decision: ModerationDecision) -> Review:
        """Withdraw approval; an unapproved review cannot stay featured."""
        return await self._review_decision(
            review_id,
            {"is_approved": False, "is_featured": False},
            AuditAction.REVIEW_UNAPPROVED,
            decision,
        )

    async def feature_review(self, review_id: UUID, decision: ModerationDecision) -> Review:
        return await self._review_decision(
            review_id,
            {"is_featured": True},
            AuditAction.REVIEW_FEATURED,
            decision,
            eligibility=(Review.is_approved.is_(True), Review.overall_rating >= FEATURE_MIN_RATING),
            ineligible_message=(
                f"Only approved reviews rated {FEATURE_MIN_RATING} or higher can be featured"
            ),
        )

    async def unfeature_review(self, review_id: UUID, decision: ModerationDecision) -> Review:
        return await self._review_decision(
            review_id, {"is_featured": False}, AuditAction.REVIEW_UNFEATURED, decision
        )

    async def list_reviews(
        self,
        status: Optional[str] = None,
        rating: Optional[int] = None,
        business_id: Optional[UUID] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[Review], int]:
        conditions = []
        if status == "approved":
            conditions.append(Review.is_approved.is_(True))
        elif status == "unapproved":
            conditions.append(Review.is_approved.is_(False))
        elif status == "featured":
            conditions.append(Review.is_featured.is_(True))
        elif status is not None:
            raise ValidationFailed(f"status must be one of: {', '.join(REVIEW_FILTERS)}")
        if rating is not None:
            conditions.append(Review.overall_rating == rating)
        if business_id is not None:
            conditions.append(Review.business_id == business_id)
        if search:
            conditions.append(or_(Review.review_text.ilike(f"%{search}%"), Review.moderation_notes.ilike(f"%{search}%")))

        total = (
            await self.db.execute(select(func.count()).select_from(Review).where(*conditions))
        ).scalar_one()
        result = await self.db.execute(
            select(Review)
            .where(*conditions)
            .order_by(Review.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    # ------------------------------------------------------------------
    # Businesses
    # ------------------------------------------------------------------

    async def set_business_status(
        self,
        business_id: UUID,
        status: VerificationStatus,
        decision: ModerationDecision,
    ) -> BusinessProfile:
        """Approve, reject or suspend a business. Approval also activates it."""
        if status == VerificationStatus.PENDING:
            raise ValidationFailed("Businesses can only be approved, rejected or suspended")
        if status in (VerificationStatus.REJECTED, VerificationStatus.SUSPENDED) and not decision.notes:
            raise ValidationFailed("A reason is required to reject or suspend a business")

        values: dict[str, Any] = {"verification_status": status}
        if status == VerificationStatus.APPROVED:
            values["is_active"] = True
        elif status == VerificationStatus.SUSPENDED:
            values["is_active"] = False

        business = await self._moderate(BusinessProfile, business_id, values, decision)
        action = {
            VerificationStatus.APPROVED: AuditAction.BUSINESS_APPROVED,
            VerificationStatus.REJECTED: AuditAction.BUSINESS_REJECTED,
            VerificationStatus.SUSPENDED: AuditAction.BUSINESS_SUSPENDED,
        }[status]
        await self.audit.log_moderation(
            action=action,
            resource_type="business_profile",
            resource_id=business.id,
            actor_id=decision.admin.uid,
            business_id=business.id,
            notes=decision.notes,
            ip_address=decision.ip_address,
        )
        await self.db.commit()
        logger.info(f"[MODERATION] Business {business.id} -> {status.value} by {decision.admin.uid}")

        if self.email:
            await self.email.send_business_status(
                business.contact_email, business.business_name, status.value, decision.notes
            )
        return business

    # ------------------------------------------------------------------
    # Provider applications
    # ------------------------------------------------------------------

    async def list_applications(
        self,
        review_status: Optional[ReviewStatus] = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[ProviderApplication], int]:
        conditions = []
        if review_status is not None:
            conditions.append(ProviderApplication.review_status == review_status)
        total = (
            await self.db.execute(
                select(func.count()).select_from(ProviderApplication).where(*conditions)
            )
        ).scalar_one()
        result = await self.db.execute(
            select(ProviderApplication)
            .where(*conditions)
            .order_by(ProviderApplication.submitted_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def _load_business(self, business_id: UUID) -> BusinessProfile:
        result = await self.db.execute(select(BusinessProfile).where(BusinessProfile.id == business_id))
        business = result.scalar_one_or_none()
        if business is None:
            raise NotFound("BusinessProfile not found")
        return business

    async def approve_application(
        self,
        application_id: UUID,
        decision: ModerationDecision,
    ) -> tuple[ProviderApplication, str]:
        """Approve a submitted application and issue its phase-2 link.

        Returns the application and the phase-2 URL that was emailed.
        """
        application = await self._moderate(
            ProviderApplication,
            application_id,
            {
                "application_status": ApplicationStatus.APPROVED,
                "review_status": ReviewStatus.APPROVED,
            },
            decision,
            eligibility=(ProviderApplication.application_status == ApplicationStatus.SUBMITTED,),
            ineligible_message="Only submitted applications can be approved",
        )

        token, expires_at = issue_phase2_token(
            business_id=application.business_id,
            user_id=application.user_id,
            application_id=application.id,
        )
        # Earlier links for this business stop working once a new one is issued
        await self.db.execute(
            update(ApplicationApproval)
            .where(
                ApplicationApproval.business_id == application.business_id,
                ApplicationApproval.revoked_at.is_(None),
            )
            .values(revoked_at=datetime.utcnow())
        )
        self.db.add(
            ApplicationApproval(
                business_id=application.business_id,
                application_id=application.id,
                approved_by=decision.admin.admin_id,
                approval_notes=decision.notes,
                token_hash=hash_token(token),
                token_expires_at=expires_at,
            )
        )
        await self.audit.log_moderation(
            action=AuditAction.APPLICATION_APPROVED,
            resource_type="provider_application",
            resource_id=application.id,
            actor_id=decision.admin.uid,
            business_id=application.business_id,
            notes=decision.notes,
            ip_address=decision.ip_address,
        )
        await self.db.commit()

        phase2_url = f"{get_settings().provider_app_url}/provider-onboarding/phase2?token={token}"
        business = await self._load_business(application.business_id)
        if self.email:
            await self.email.send_application_approved(business.contact_email, business.business_name, phase2_url)
        logger.info(f"[MODERATION] Application {application.id} approved by {decision.admin.uid}")
        return application, phase2_url

    async def reject_application(
        self,
        application_id: UUID,
        decision: ModerationDecision,
    ) -> ProviderApplication:
        if not decision.notes:
            raise ValidationFailed("A reason is required to reject an application")

        application = await self._moderate(
            ProviderApplication,
            application_id,
            {
                "application_status": ApplicationStatus.REJECTED,
                "review_status": ReviewStatus.REJECTED,
            },
            decision,
            eligibility=(ProviderApplication.application_status == ApplicationStatus.SUBMITTED,),
            ineligible_message="Only submitted applications can be rejected",
        )
        await self.audit.log_moderation(
            action=AuditAction.APPLICATION_REJECTED,
            resource_type="provider_application",
            resource_id=application.id,
            actor_id=decision.admin.uid,
            business_id=application.business_id,
            notes=decision.notes,
            ip_address=decision.ip_address,
        )
        await self.db.commit()

        business = await self._load_business(application.business_id)
        if self.email:
            await self.email.send_application_rejected(business.contact_email, business.business_name, decision.notes)
        logger.info(f"[MODERATION] Application {application.id} rejected by {decision.admin.uid}")
        return application
