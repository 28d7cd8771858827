"""Staff invitation router."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.permissions import ProviderContext, require_owner
from app.core.security import AuthenticatedUser, verify_firebase_token
from app.schemas.staff import (
    InvitationAccept,
    InvitationDetails,
    InvitationToken,
    ProviderResponse,
    StaffInviteCreate,
    StaffInviteResponse,
)
from app.services.email import EmailService, get_email_service
from app.services.staff import StaffService

router = APIRouter(prefix="/api/staff", tags=["staff"])


@router.post("/invite", status_code=status.HTTP_201_CREATED)
async def invite_staff(
    data: StaffInviteCreate,
    db: AsyncSession = Depends(get_db),
    email: EmailService = Depends(get_email_service),
    context: ProviderContext = Depends(require_owner),
):
    """Invite a dispatcher or provider to the caller's business."""
    result = await StaffService(db, email).invite(context, data.email, data.role)
    return {"data": StaffInviteResponse(**result)}


@router.post("/validate-invitation")
async def validate_invitation(
    data: InvitationToken,
    db: AsyncSession = Depends(get_db),
):
    details = await StaffService(db).describe_invitation(data.token)
    return {"data": InvitationDetails(**details)}


@router.post("/accept-invitation", status_code=status.HTTP_201_CREATED)
async def accept_invitation(
    data: InvitationAccept,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(verify_firebase_token),
):
    """Join the inviting business as the signed-in user."""
    provider = await StaffService(db).accept(
        current_user,
        data.token,
        first_name=data.first_name,
        last_name=data.last_name,
        phone=data.phone,
    )
    return {"data": ProviderResponse.model_validate(provider)}
