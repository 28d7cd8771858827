"""Admin moderation router.

Every route requires an active ``AdminUser``. Decisions accept an optional
``expected_version``; a stale version is answered with 409.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import AuthenticatedUser, require_admin
from app.models.enums import ReviewStatus
from app.schemas.base import Pagination
from app.schemas.moderation import (
    ApplicationApprovalResponse,
    ApplicationModerationResponse,
    BusinessModerationResponse,
    BusinessStatusUpdate,
    DocumentVerificationUpdate,
    ModerationRequest,
    ReviewResponse,
)
from app.schemas.onboarding import DocumentResponse
from app.services.documents import DocumentService
from app.services.email import EmailService, get_email_service
from app.services.moderation import ModerationDecision, ModerationService
from app.services.storage import StorageService, get_storage_service

router = APIRouter(prefix="/api/admin", tags=["admin"])


def get_moderation_service(
    db: AsyncSession = Depends(get_db),
    email: EmailService = Depends(get_email_service),
) -> ModerationService:
    return ModerationService(db, email)


def _decision(
    admin: AuthenticatedUser,
    request: Request,
    data: Optional[ModerationRequest],
) -> ModerationDecision:
    return ModerationDecision(
        admin=admin,
        notes=data.notes if data else None,
        expected_version=data.expected_version if data else None,
        ip_address=request.client.host if request.client else None,
    )


# === Reviews ===

@router.get("/reviews")
async def list_reviews(
    status: Optional[str] = None,
    rating: Optional[int] = Query(None, ge=1, le=5),
    business_id: Optional[UUID] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    service: ModerationService = Depends(get_moderation_service),
    admin: AuthenticatedUser = Depends(require_admin),
):
    """List reviews for moderation."""
    reviews, total = await service.list_reviews(status, rating, business_id, search, page, limit)
    return {
        "data": [ReviewResponse.model_validate(r) for r in reviews],
        "pagination": Pagination.build(page, limit, total),
    }


@router.patch("/reviews/{review_id}/approve")
async def approve_review(
    review_id: UUID,
    request: Request,
    data: Optional[ModerationRequest] = None,
    service: ModerationService = Depends(get_moderation_service),
    admin: AuthenticatedUser = Depends(require_admin),
):
    review = await service.approve_review(review_id, _decision(admin, request, data))
    return {"data": ReviewResponse.model_validate(review)}


@router.patch("/reviews/{review_id}/unapprove")
async def unapprove_review(
    review_id: UUID,
    request: Request,
    data: Optional[ModerationRequest] = None,
    service: ModerationService = Depends(get_moderation_service),
    admin: AuthenticatedUser = Depends(require_admin),
):
    review = await service.unapprove_review(review_id, _decision(admin, request, data))
    return {"data": ReviewResponse.model_validate(review)}


@router.patch("/reviews/{review_id}/feature")
async def feature_review(
    review_id: UUID,
    request: Request,
    data: Optional[ModerationRequest] = None,
    service: ModerationService = Depends(get_moderation_service),
    admin: AuthenticatedUser = Depends(require_admin),
):
    """Feature an approved review rated 4 or higher."""
    review = await service.feature_review(review_id, _decision(admin, request, data))
    return {"data": ReviewResponse.model_validate(review)}


@router.patch("/reviews/{review_id}/unfeature")
async def unfeature_review(
    review_id: UUID,
    request: Request,
    data: Optional[ModerationRequest] = None,
    service: ModerationService = Depends(get_moderation_service),
    admin: AuthenticatedUser = Depends(require_admin),
):
    review = await service.unfeature_review(review_id, _decision(admin, request, data))
    return {"data": ReviewResponse.model_validate(review)}


# === Businesses ===

@router.patch("/businesses/{business_id}/status")
async def set_business_status(
    business_id: UUID,
    data: BusinessStatusUpdate,
    request: Request,
    service: ModerationService = Depends(get_moderation_service),
    admin: AuthenticatedUser = Depends(require_admin),
):
    """Approve, reject or suspend a business."""
    business = await service.set_business_status(business_id, data.status, _decision(admin, request, data))
    return {"data": BusinessModerationResponse.model_validate(business)}


# === Provider applications ===

@router.get("/applications")
async def list_applications(
    review_status: Optional[ReviewStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    service: ModerationService = Depends(get_moderation_service),
    admin: AuthenticatedUser = Depends(require_admin),
):
    applications, total = await service.list_applications(review_status, page, limit)
    return {
        "data": [ApplicationModerationResponse.model_validate(a) for a in applications],
        "pagination": Pagination.build(page, limit, total),
    }


@router.patch("/applications/{application_id}/approve")
async def approve_application(
    application_id: UUID,
    request: Request,
    data: Optional[ModerationRequest] = None,
    service: ModerationService = Depends(get_moderation_service),
    admin: AuthenticatedUser = Depends(require_admin),
):
    """Approve an application and email the applicant their phase-2 link."""
    application, _ = await service.approve_application(application_id, _decision(admin, request, data))
    return {
        "data": ApplicationApprovalResponse(
            application=ApplicationModerationResponse.model_validate(application),
        )
    }


@router.patch("/applications/{application_id}/reject")
async def reject_application(
    application_id: UUID,
    data: ModerationRequest,
    request: Request,
    service: ModerationService = Depends(get_moderation_service),
    admin: AuthenticatedUser = Depends(require_admin),
):
    application = await service.reject_application(application_id, _decision(admin, request, data))
    return {"data": ApplicationModerationResponse.model_validate(application)}


# === Documents ===

@router.patch("/documents/{document_id}")
async def verify_document(
    document_id: UUID,
    data: DocumentVerificationUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
    admin: AuthenticatedUser = Depends(require_admin),
):
    """Record a verification decision for an uploaded document."""
    document = await DocumentService(db, storage).set_verification_status(
        document_id,
        data.status,
        admin_id=admin.admin_id,
        actor_uid=admin.uid,
        rejection_reason=data.rejection_reason,
        ip_address=request.client.host if request.client else None,
    )
    return {"data": DocumentResponse.model_validate(document)}
