"""Phase-2 onboarding access gate.

Phase-2 endpoints are reached through an emailed link rather than a
provider session. The link token arrives in the ``X-Phase2-Token`` header and
must match a live ``application_approvals`` row for an existing business.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.errors import Forbidden
from app.core.security import hash_token
from app.core.tokens import PHASE2_PURPOSE, InvalidLinkError, decode_link_token


@dataclass
class Phase2Context:
    business_id: UUID
    user_id: str
    application_id: UUID

    def ensure_business(self, business_id: Optional[UUID]) -> UUID:
        """Reject requests that name a business other than the link's."""
        if business_id is not None and business_id != self.business_id:
            raise Forbidden("This link does not grant access to that business", code="business_mismatch")
        return self.business_id


async def resolve_phase2_token(db: AsyncSession, token: Optional[str]) -> Phase2Context:
    """Validate a phase-2 link token against its signed claims and the approval record."""
    from app.models.business import ApplicationApproval, BusinessProfile

    payload = decode_link_token(token, PHASE2_PURPOSE)
    try:
        business_id = UUID(payload["business_id"])
        application_id = UUID(payload["application_id"])
        user_id = str(payload["user_id"])
    except (KeyError, TypeError, ValueError):
        raise InvalidLinkError()

    result = await db.execute(
        select(ApplicationApproval.id)
        .join(BusinessProfile, BusinessProfile.id == ApplicationApproval.business_id)
        .where(
            ApplicationApproval.token_hash == hash_token(token),
            ApplicationApproval.business_id == business_id,
            ApplicationApproval.application_id == application_id,
            ApplicationApproval.revoked_at.is_(None),
            ApplicationApproval.token_expires_at > datetime.utcnow(),
        )
    )
    if result.scalar_one_or_none() is None:
        raise InvalidLinkError()

    return Phase2Context(business_id=business_id, user_id=user_id, application_id=application_id)


async def require_phase2_access(
    x_phase2_token: Optional[str] = Header(None, alias="X-Phase2-Token"),
    db: AsyncSession = Depends(get_db),
) -> Phase2Context:
    """FastAPI dependency for phase-2 onboarding endpoints."""
    return await resolve_phase2_token(db, x_phase2_token)
