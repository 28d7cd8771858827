"""Audit logging service."""

from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditLog
from app.models.enums import AuditAction


class AuditService:
    """Service for creating audit log entries.

    Entries are flushed into the caller's transaction, so they commit or roll
    back together with the change they describe.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        action: AuditAction,
        resource_type: str,
        resource_id: UUID,
        business_id: Optional[UUID] = None,
        actor_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        """Create an audit log entry."""
        entry = AuditLog(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            business_id=business_id,
            actor_id=actor_id,
            details=details or {},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def log_moderation(
        self,
        action: AuditAction,
        resource_type: str,
        resource_id: UUID,
        actor_id: str,
        business_id: Optional[UUID] = None,
        notes: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> AuditLog:
        """Log an admin moderation decision."""
        return await self.log(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            business_id=business_id,
            actor_id=actor_id,
            details={"notes": notes} if notes else None,
            ip_address=ip_address,
        )

    async def log_document_uploaded(
        self,
        document_id: UUID,
        business_id: UUID,
        actor_id: str,
        document_type: str,
        storage_path: str,
        ip_address: Optional[str] = None,
    ) -> AuditLog:
        """Log a verification document upload."""
        return await self.log(
            action=AuditAction.DOCUMENT_UPLOADED,
            resource_type="business_document",
            resource_id=document_id,
            business_id=business_id,
            actor_id=actor_id,
            details={"document_type": document_type, "storage_path": storage_path},
            ip_address=ip_address,
        )

    async def log_booking_status_changed(
        self,
        booking_id: UUID,
        business_id: UUID,
        actor_id: str,
        from_status: str,
        to_status: str,
        ip_address: Optional[str] = None,
    ) -> AuditLog:
        """Log a booking status transition."""
        return await self.log(
            action=AuditAction.BOOKING_STATUS_CHANGED,
            resource_type="booking",
            resource_id=booking_id,
            business_id=business_id,
            actor_id=actor_id,
            details={"from": from_status, "to": to_status},
            ip_address=ip_address,
        )
