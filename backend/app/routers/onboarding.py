"""Provider onboarding router.

Phase-1 endpoints require a signed-in owner. Phase-2 endpoints are reached
through the emailed link and are gated by the ``X-Phase2-Token`` header.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db
from app.core.phase_gate import Phase2Context, require_phase2_access, resolve_phase2_token
from app.core.security import AuthenticatedUser, verify_firebase_token
from app.schemas.onboarding import (
    ApplicationResponse,
    ApplicationSubmit,
    BankAccountConnect,
    BankConnectionResponse,
    BankLinkTokenResponse,
    BusinessInfoCreate,
    BusinessProfileResponse,
    DocumentListResponse,
    DocumentResponse,
    DocumentUploadRequest,
    IdentitySessionResponse,
    OnboardingStatusResponse,
    Phase2AccessResponse,
    Phase2StepSave,
    Phase2TokenValidate,
    SetupProgressResponse,
)
from app.services.banking import BankingService, PlaidClient, get_plaid_client
from app.services.documents import (
    DocumentService,
    DocumentUpload,
    missing_required_documents,
    offered_document_types,
    required_document_types,
)
from app.services.email import EmailService, get_email_service
from app.services.identity import IdentityVerificationClient, get_identity_client
from app.services.onboarding import OnboardingService, ensure_phase2_user
from app.services.storage import StorageService, get_storage_service

router = APIRouter(prefix="/api/onboarding", tags=["onboarding"])


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def get_onboarding_service(
    db: AsyncSession = Depends(get_db),
    email: EmailService = Depends(get_email_service),
    identity: IdentityVerificationClient = Depends(get_identity_client),
) -> OnboardingService:
    return OnboardingService(db, email=email, identity=identity)


# === Phase 1 ===

@router.post("/business-info", status_code=status.HTTP_201_CREATED)
async def save_business_info(
    data: BusinessInfoCreate,
    service: OnboardingService = Depends(get_onboarding_service),
    current_user: AuthenticatedUser = Depends(verify_firebase_token),
):
    """Create or update the owner's business profile."""
    business = await service.save_business_info(current_user, data)
    return {"data": BusinessProfileResponse.model_validate(business)}


@router.post("/identity-verification")
async def start_identity_verification(
    service: OnboardingService = Depends(get_onboarding_service),
    current_user: AuthenticatedUser = Depends(verify_firebase_token),
):
    """Start a hosted identity verification session."""
    return_url = f"{get_settings().provider_app_url}/provider-onboarding/identity-complete"
    session = await service.start_identity_verification(current_user, return_url)
    return {"data": IdentitySessionResponse(**session)}


@router.get("/identity-verification")
async def check_identity_verification(
    service: OnboardingService = Depends(get_onboarding_service),
    current_user: AuthenticatedUser = Depends(verify_firebase_token),
):
    result = await service.check_identity_verification(current_user)
    return {"data": IdentitySessionResponse(**result)}


@router.post("/submit-application", status_code=status.HTTP_201_CREATED)
async def submit_application(
    data: ApplicationSubmit,
    request: Request,
    service: OnboardingService = Depends(get_onboarding_service),
    current_user: AuthenticatedUser = Depends(verify_firebase_token),
):
    """Submit the phase-1 application for admin review."""
    application = await service.submit_application(current_user, data, ip_address=_client_ip(request))
    return {"data": ApplicationResponse.model_validate(application)}


@router.get("/status")
async def get_onboarding_status(
    service: OnboardingService = Depends(get_onboarding_service),
    current_user: AuthenticatedUser = Depends(verify_firebase_token),
):
    result = await service.get_status(current_user)
    return {"data": OnboardingStatusResponse(**result)}


# === Phase 2 ===

@router.post("/validate-phase2-token")
async def validate_phase2_token(
    data: Phase2TokenValidate,
    db: AsyncSession = Depends(get_db),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Check an emailed phase-2 link and describe where onboarding stands."""
    ctx = await resolve_phase2_token(db, data.token)
    access = await service.describe_phase2_access(ctx)
    return {"data": Phase2AccessResponse(**access)}


@router.post("/save-phase2-progress")
async def save_phase2_progress(
    data: Phase2StepSave,
    ctx: Phase2Context = Depends(require_phase2_access),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Save one phase-2 step. Saving the same step again replaces its data."""
    progress = await service.save_phase2_step(ctx, data.business_id, data.step, data.data)
    return {"data": SetupProgressResponse.model_validate(progress)}


@router.post("/complete")
async def complete_onboarding(
    request: Request,
    ctx: Phase2Context = Depends(require_phase2_access),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Final review: verify every phase-2 requirement and submit for admin review."""
    business = await service.complete_final_review(ctx, ctx.business_id, ip_address=_client_ip(request))
    return {"data": BusinessProfileResponse.model_validate(business)}


@router.post("/upload-documents", status_code=status.HTTP_201_CREATED)
async def upload_document(
    data: DocumentUploadRequest,
    request: Request,
    ctx: Phase2Context = Depends(require_phase2_access),
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    """Upload one verification document (base64 JSON body)."""
    business_id = ctx.ensure_business(data.business_id)
    ensure_phase2_user(ctx, data.user_id)

    document = await DocumentService(db, storage).upload(
        DocumentUpload(
            business_id=business_id,
            user_id=data.user_id,
            document_type=data.document_type,
            file_name=data.file_name,
            mime_type=data.mime_type,
            file_data=data.file_data,
            file_size_bytes=data.file_size_bytes,
        ),
        ip_address=_client_ip(request),
    )
    return {
        "data": {
            "id": document.id,
            "document_type": document.document_type,
            "document_name": document.document_name,
            "url": document.file_url,
            "size": document.file_size_bytes,
            "storage_path": document.storage_path,
            "uploaded_at": document.created_at,
        }
    }


@router.get("/documents")
async def list_documents(
    ctx: Phase2Context = Depends(require_phase2_access),
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    """List uploaded documents with the offered, required and missing types."""
    business = await OnboardingService(db).get_business(ctx.business_id)
    documents = await DocumentService(db, storage).list_documents(business.id)
    existing = [
        (d.document_type, getattr(d.verification_status, "value", d.verification_status))
        for d in documents
    ]
    return {
        "data": DocumentListResponse(
            documents=[DocumentResponse.model_validate(d) for d in documents],
            offered_types=offered_document_types(),
            required_types=required_document_types(business.business_type),
            missing_types=missing_required_documents(business.business_type, existing),
        )
    }


@router.post("/banking/link-token")
async def create_bank_link_token(
    ctx: Phase2Context = Depends(require_phase2_access),
    db: AsyncSession = Depends(get_db),
    plaid: PlaidClient = Depends(get_plaid_client),
):
    business = await OnboardingService(db).get_business(ctx.business_id)
    link_token = await plaid.create_link_token(ctx.user_id, business.business_name)
    return {"data": BankLinkTokenResponse(link_token=link_token)}


@router.post("/banking/exchange", status_code=status.HTTP_201_CREATED)
async def connect_bank_account(
    data: BankAccountConnect,
    ctx: Phase2Context = Depends(require_phase2_access),
    db: AsyncSession = Depends(get_db),
    plaid: PlaidClient = Depends(get_plaid_client),
):
    """Link the payout account chosen in Plaid Link."""
    business_id = ctx.ensure_business(data.business_id)
    connection = await BankingService(db, plaid).connect_account(
        business_id=business_id,
        user_id=ctx.user_id,
        public_token=data.public_token,
        account_id=data.account_id,
        institution_name=data.institution_name,
    )
    await db.commit()
    return {"data": BankConnectionResponse.model_validate(connection)}
