"""Staff invitations for dispatchers and providers."""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import Conflict, Forbidden, NotFound, ValidationFailed
from app.core.permissions import ProviderContext
from app.core.security import AuthenticatedUser
from app.core.tokens import (
    STAFF_INVITATION_PURPOSE,
    InvalidLinkError,
    decode_link_token,
    issue_staff_invitation_token,
)
from app.models.business import BusinessProfile
from app.models.enums import AuditAction, ProviderRole, VerificationStatus
from app.models.provider import Provider
from app.services.audit import AuditService
from app.services.email import EmailService

logger = logging.getLogger(__name__)

INVITABLE_ROLES = (ProviderRole.DISPATCHER, ProviderRole.PROVIDER)


class StaffService:
    def __init__(self, db: AsyncSession, email: Optional[EmailService] = None):
        self.db = db
        self.email = email
        self.audit = AuditService(db)

    async def _business(self, business_id: UUID) -> BusinessProfile:
        result = await self.db.execute(select(BusinessProfile).where(BusinessProfile.id == business_id))
        business = result.scalar_one_or_none()
        if business is None:
            raise NotFound("Business profile not found")
        return business

    async def invite(self, context: ProviderContext, email: str, role: ProviderRole) -> dict[str, Any]:
        if role not in INVITABLE_ROLES:
            raise ValidationFailed("Only dispatchers and providers can be invited", code="invalid_role")

        business = await self._business(context.business_id)
        if business.verification_status != VerificationStatus.APPROVED:
            raise Forbidden("Staff can be invited once the business is approved", code="business_not_approved")

        token, expires_at = issue_staff_invitation_token(
            business_id=business.id,
            email=email,
            role=role.value,
            invited_by=context.user.uid,
        )
        invite_url = f"{get_settings().provider_app_url}/staff/accept?token={token}"

        await self.audit.log(
            action=AuditAction.STAFF_INVITED,
            resource_type="business_profile",
            resource_id=business.id,
            business_id=business.id,
            actor_id=context.user.uid,
            details={"email": email.lower(), "role": role.value},
        )
        await self.db.commit()

        sent = False
        if self.email:
            sent = await self.email.send_staff_invitation(email, business.business_name, role.value, invite_url)
        logger.info(f"[STAFF] {role.value} invitation for business {business.id}")
        return {"email": email.lower(), "role": role.value, "expires_at": expires_at, "email_sent": sent}

    async def describe_invitation(self, token: str) -> dict[str, Any]:
        claims = decode_link_token(token, STAFF_INVITATION_PURPOSE)
        try:
            business = await self._business(UUID(claims["business_id"]))
        except (KeyError, ValueError, NotFound):
            raise InvalidLinkError()
        return {
            "business_id": business.id,
            "business_name": business.business_name,
            "email": claims.get("email"),
            "role": claims.get("role"),
        }

    async def accept(
        self,
        user: AuthenticatedUser,
        token: str,
        first_name: str,
        last_name: str,
        phone: str,
    ) -> Provider:
        """Create the invited provider record for the signed-in user."""
        invitation = await self.describe_invitation(token)
        if not user.email or user.email.lower() != invitation["email"]:
            raise Forbidden("This invitation was sent to a different email address", code="email_mismatch")

        existing = await self.db.execute(
            select(Provider.id).where(
                Provider.user_id == user.uid,
                Provider.business_id == invitation["business_id"],
                Provider.is_active.is_(True),
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise Conflict("You are already a member of this business", code="already_member")

        provider = Provider(
            business_id=invitation["business_id"],
            user_id=user.uid,
            provider_role=ProviderRole(invitation["role"]),
            first_name=first_name,
            last_name=last_name,
            email=user.email,
            phone=phone,
            is_active=True,
        )
        self.db.add(provider)
        await self.db.flush()
        await self.audit.log(
            action=AuditAction.STAFF_JOINED,
            resource_type="provider",
            resource_id=provider.id,
            business_id=provider.business_id,
            actor_id=user.uid,
            details={"role": provider.provider_role.value},
        )
        await self.db.commit()
        await self.db.refresh(provider)
        return provider
