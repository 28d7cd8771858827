"""Staff invitation schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import EmailStr, Field

from app.models.enums import ProviderRole
from app.schemas.base import BaseSchema, IDMixin


class StaffInviteCreate(BaseSchema):
    email: EmailStr
    role: ProviderRole


class StaffInviteResponse(BaseSchema):
    email: str
    role: ProviderRole
    expires_at: datetime
    email_sent: bool


class InvitationToken(BaseSchema):
    token: str


class InvitationDetails(BaseSchema):
    business_id: UUID
    business_name: str
    email: str
    role: ProviderRole


class InvitationAccept(BaseSchema):
    token: str
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=7, max_length=50)


class ProviderResponse(BaseSchema, IDMixin):
    business_id: UUID
    provider_role: ProviderRole
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    is_active: bool
