"""Role-based authorization for provider-portal routes.

Callers are resolved to their active ``Provider`` row; the row's
``provider_role`` is checked against either an explicit allow-list
(``require_role``) or the capability table (``require_capability``).
A caller without an active provider record gets 403, never 401.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Union
from uuid import UUID

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.errors import Forbidden
from app.core.security import AuthenticatedUser, verify_firebase_token
from app.models.enums import ProviderRole

ALL_FEATURES = "*"

ROLE_CAPABILITIES: dict[ProviderRole, frozenset[str]] = {
    ProviderRole.OWNER: frozenset({ALL_FEATURES}),
    ProviderRole.DISPATCHER: frozenset(
        {"dashboard", "bookings", "staff", "services", "profile", "settings"}
    ),
    ProviderRole.PROVIDER: frozenset({"bookings", "profile", "settings"}),
}


def has_capability(role: Union[ProviderRole, str, None], feature: str) -> bool:
    """Whether ``role`` may use ``feature``. Unknown roles have no capabilities."""
    try:
        role = ProviderRole(role)
    except ValueError:
        return False
    capabilities = ROLE_CAPABILITIES.get(role, frozenset())
    return ALL_FEATURES in capabilities or feature in capabilities


@dataclass
class ProviderContext:
    """The authenticated caller's active provider record."""

    user: AuthenticatedUser
    provider_id: UUID
    business_id: UUID
    role: ProviderRole

    def can(self, feature: str) -> bool:
        return has_capability(self.role, feature)


async def get_active_provider(db: AsyncSession, user_id: str):
    from app.models.provider import Provider

    result = await db.execute(
        select(Provider)
        .where(Provider.user_id == user_id, Provider.is_active.is_(True))
        .order_by(Provider.created_at)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_provider_context(
    current_user: AuthenticatedUser = Depends(verify_firebase_token),
    db: AsyncSession = Depends(get_db),
) -> ProviderContext:
    """Resolve the caller's active provider record or fail with 403."""
    provider = await get_active_provider(db, current_user.uid)
    if provider is None:
        raise Forbidden("No active provider record for this account", code="no_provider")
    return ProviderContext(
        user=current_user,
        provider_id=provider.id,
        business_id=provider.business_id,
        role=ProviderRole(provider.provider_role),
    )


def require_role(allowed_roles: Iterable[Union[ProviderRole, str]]):
    """Dependency factory restricting a route to the given provider roles."""
    allowed = [ProviderRole(r) for r in allowed_roles]

    async def dependency(
        context: ProviderContext = Depends(get_provider_context),
    ) -> ProviderContext:
        if context.role not in allowed:
            raise Forbidden(
                "Insufficient role for this action",
                code="insufficient_role",
                details={
                    "required_roles": [r.value for r in allowed],
                    "actual_role": context.role.value,
                },
            )
        return context

    return dependency


# Catalog pricing and staff invitations.
require_owner = require_role([ProviderRole.OWNER])


def require_capability(feature: str):
    """Dependency factory restricting a route to roles holding ``feature``."""

    async def dependency(
        context: ProviderContext = Depends(get_provider_context),
    ) -> ProviderContext:
        if not context.can(feature):
            raise Forbidden(
                "Insufficient role for this action",
                code="insufficient_role",
                details={
                    "required_capability": feature,
                    "actual_role": context.role.value,
                },
            )
        return context

    return dependency


def ensure_same_business(context: ProviderContext, business_id: Optional[UUID]) -> UUID:
    """Scope a request to the caller's own business."""
    if business_id is not None and business_id != context.business_id:
        raise Forbidden("You do not have access to this business", code="business_mismatch")
    return context.business_id
