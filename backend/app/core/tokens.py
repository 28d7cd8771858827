"""Signed single-purpose links (phase-2 onboarding, staff invitations)."""

from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import UUID

from jose import JWTError, jwt

from app.core.config import get_settings
from app.core.errors import Unauthorized

PHASE2_PURPOSE = "phase2"
STAFF_INVITATION_PURPOSE = "staff_invitation"

INVALID_LINK_MESSAGE = "Invalid or expired link"


class InvalidLinkError(Unauthorized):
    """Raised for every link-token failure; the message never says which check failed."""

    def __init__(self):
        super().__init__(INVALID_LINK_MESSAGE, code="invalid_link")


def _sign(purpose: str, claims: dict[str, Any], expires_at: datetime) -> str:
    settings = get_settings()
    to_encode = {
        **claims,
        "purpose": purpose,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": datetime.utcnow(),
        "exp": expires_at,
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_link_token(token: Optional[str], purpose: str) -> dict[str, Any]:
    """Verify signature, expiry, issuer, audience and purpose of a link token."""
    if not token:
        raise InvalidLinkError()
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except JWTError:
        raise InvalidLinkError()
    if payload.get("purpose") != purpose:
        raise InvalidLinkError()
    return payload


def issue_phase2_token(
    business_id: UUID,
    user_id: str,
    application_id: UUID,
    ttl: Optional[timedelta] = None,
) -> tuple[str, datetime]:
    """Sign a phase-2 onboarding link. Returns (token, expires_at)."""
    settings = get_settings()
    expires_at = datetime.utcnow() + (ttl or timedelta(days=settings.phase2_token_ttl_days))
    token = _sign(
        PHASE2_PURPOSE,
        {
            "business_id": str(business_id),
            "user_id": user_id,
            "application_id": str(application_id),
        },
        expires_at,
    )
    return token, expires_at


def issue_staff_invitation_token(
    business_id: UUID,
    email: str,
    role: str,
    invited_by: str,
    ttl: Optional[timedelta] = None,
) -> tuple[str, datetime]:
    settings = get_settings()
    expires_at = datetime.utcnow() + (ttl or timedelta(days=settings.staff_invitation_ttl_days))
    token = _sign(
        STAFF_INVITATION_PURPOSE,
        {
            "business_id": str(business_id),
            "email": email.lower(),
            "role": role,
            "invited_by": invited_by,
        },
        expires_at,
    )
    return token, expires_at
