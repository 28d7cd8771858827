"""Business verification documents: upload policy, storage and verification.

There is exactly one document policy. Identity documents (driver's license,
proof of address) belong to the identity-verification provider and are never
offered, required or accepted here.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Union
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Conflict, NotFound, ValidationFailed, normalize_upstream_error
from app.models.document import BusinessDocument
from app.models.enums import AuditAction, BusinessType, DocumentStatus, DocumentType
from app.services.audit import AuditService
from app.services.storage import StorageService

logger = logging.getLogger(__name__)

MB = 1024 * 1024
ALLOWED_EXTENSIONS = (".pdf", ".jpg", ".jpeg", ".png")

# Entry states that no longer occupy a document slot
INACTIVE_STATUSES = frozenset({"error", DocumentStatus.REJECTED.value})


@dataclass(frozen=True)
class DocumentRequirement:
    document_type: DocumentType
    title: str
    max_size_mb: int
    allow_multiple: bool = False
    allowed_extensions: tuple[str, ...] = ALLOWED_EXTENSIONS

    @property
    def max_size_bytes(self) -> int:
        return self.max_size_mb * MB


DOCUMENT_REQUIREMENTS: dict[DocumentType, DocumentRequirement] = {
    DocumentType.PROFESSIONAL_LICENSE: DocumentRequirement(
        DocumentType.PROFESSIONAL_LICENSE, "Professional License", 5, allow_multiple=True
    ),
    DocumentType.PROFESSIONAL_CERTIFICATE: DocumentRequirement(
        DocumentType.PROFESSIONAL_CERTIFICATE, "Professional Certificate", 2
    ),
    DocumentType.LIABILITY_INSURANCE: DocumentRequirement(
        DocumentType.LIABILITY_INSURANCE, "Liability Insurance", 5
    ),
    DocumentType.BUSINESS_LICENSE: DocumentRequirement(
        DocumentType.BUSINESS_LICENSE, "Business License", 5
    ),
}

IDENTITY_DOCUMENT_TYPES = frozenset({DocumentType.DRIVERS_LICENSE, DocumentType.PROOF_OF_ADDRESS})


def offered_document_types() -> list[DocumentType]:
    return list(DOCUMENT_REQUIREMENTS)


def required_document_types(business_type: Union[BusinessType, str]) -> list[DocumentType]:
    """Required types; a business license is needed unless the business is independent."""
    required = [DocumentType.PROFESSIONAL_LICENSE, DocumentType.PROFESSIONAL_CERTIFICATE]
    if BusinessType(business_type) != BusinessType.INDEPENDENT:
        required.append(DocumentType.BUSINESS_LICENSE)
    return required


def _status_value(status) -> str:
    return getattr(status, "value", status)


def check_document(
    document_type: Union[DocumentType, str],
    file_name: str,
    file_size: int,
    existing: Iterable[tuple[Union[DocumentType, str], str]],
) -> Optional[tuple[str, str]]:
    """Return ``(code, message)`` for a rejected candidate upload, or None.

    ``existing`` holds ``(document_type, status)`` pairs for documents already
    uploaded or in flight.
    """
    try:
        doc_type = DocumentType(document_type)
    except ValueError:
        return "unknown_document_type", f"Unknown document type: {document_type}"

    requirement = DOCUMENT_REQUIREMENTS.get(doc_type)
    if requirement is None:
        return (
            "document_type_not_accepted",
            f"{doc_type.value} documents are not accepted for business verification",
        )

    if file_size <= 0:
        return "empty_file", "File is empty"
    if file_size > requirement.max_size_bytes:
        return "file_too_large", f"File size must be less than {requirement.max_size_mb}MB"

    if not file_name.lower().endswith(requirement.allowed_extensions):
        return "invalid_extension", f"File must be one of: {', '.join(requirement.allowed_extensions)}"

    if not requirement.allow_multiple:
        for existing_type, status in existing:
            if DocumentType(existing_type) == doc_type and _status_value(status) not in INACTIVE_STATUSES:
                return "duplicate_document", f"A {requirement.title.lower()} has already been uploaded"

    return None


def validate_document(
    document_type: Union[DocumentType, str],
    file_name: str,
    file_size: int,
    existing: Iterable[tuple[Union[DocumentType, str], str]],
) -> Optional[str]:
    """Error message for a candidate upload, or None if acceptable."""
    rejection = check_document(document_type, file_name, file_size, existing)
    return rejection[1] if rejection else None


def missing_required_documents(
    business_type: Union[BusinessType, str],
    documents: Iterable[tuple[Union[DocumentType, str], str]],
) -> list[DocumentType]:
    present = {
        DocumentType(doc_type)
        for doc_type, status in documents
        if _status_value(status) not in INACTIVE_STATUSES
    }
    return [t for t in required_document_types(business_type) if t not in present]


def decode_file_data(file_data: str) -> bytes:
    """Decode a base64 payload, accepting an optional ``data:`` URL prefix."""
    if file_data.startswith("data:") and "," in file_data:
        file_data = file_data.split(",", 1)[1]
    try:
        return base64.b64decode(file_data, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationFailed("File data is not valid base64", code="invalid_file_data")


@dataclass
class DocumentUpload:
    business_id: UUID
    user_id: str
    document_type: DocumentType
    file_name: str
    mime_type: str
    file_data: str
    file_size_bytes: int


class DocumentService:
    """Stores documents in object storage and tracks them in ``business_documents``."""

    def __init__(self, db: AsyncSession, storage: StorageService):
        self.db = db
        self.storage = storage
        self.audit = AuditService(db)

    async def list_documents(self, business_id: UUID) -> list[BusinessDocument]:
        result = await self.db.execute(
            select(BusinessDocument)
            .where(BusinessDocument.business_id == business_id)
            .order_by(BusinessDocument.created_at.desc())
        )
        return list(result.scalars().all())

    async def _existing_pairs(self, business_id: UUID) -> list[tuple[DocumentType, str]]:
        result = await self.db.execute(
            select(BusinessDocument.document_type, BusinessDocument.verification_status).where(
                BusinessDocument.business_id == business_id
            )
        )
        return [(row[0], _status_value(row[1])) for row in result.all()]

    async def upload(self, upload: DocumentUpload, ip_address: Optional[str] = None) -> BusinessDocument:
        """Validate, store and record one document.

        The storage object is removed again if the metadata row cannot be written.
        """
        if upload.mime_type not in StorageService.ALLOWED_MIME_TYPES:
            raise ValidationFailed(f"Unsupported file type: {upload.mime_type}", code="invalid_mime_type")

        content = decode_file_data(upload.file_data)
        if upload.file_size_bytes and upload.file_size_bytes != len(content):
            raise ValidationFailed("File size does not match uploaded data", code="size_mismatch")

        existing = await self._existing_pairs(upload.business_id)
        rejection = check_document(upload.document_type, upload.file_name, len(content), existing)
        if rejection:
            code, message = rejection
            if code == "duplicate_document":
                raise Conflict(message, code=code)
            raise ValidationFailed(message, code=code)

        try:
            stored = await self.storage.store_document(
                business_id=upload.business_id,
                document_type=upload.document_type.value,
                file_name=upload.file_name,
                data=content,
                mime_type=upload.mime_type,
            )
        except ValueError as e:
            raise ValidationFailed(str(e), code="invalid_mime_type")
        except Exception as e:
            logger.error(f"[DOCUMENTS] Storage upload failed for business {upload.business_id}: {e}")
            raise normalize_upstream_error(e)

        document = BusinessDocument(
            business_id=upload.business_id,
            user_id=upload.user_id,
            document_type=upload.document_type,
            document_name=upload.file_name,
            file_url=stored.url,
            storage_path=stored.path,
            file_size_bytes=len(content),
            mime_type=upload.mime_type,
            verification_status=DocumentStatus.PENDING,
        )
        try:
            self.db.add(document)
            await self.db.flush()
            await self.audit.log_document_uploaded(
                document_id=document.id,
                business_id=upload.business_id,
                actor_id=upload.user_id,
                document_type=upload.document_type.value,
                storage_path=stored.path,
                ip_address=ip_address,
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            removed = await self.storage.delete(stored.path)
            logger.error(
                f"[DOCUMENTS] Metadata insert failed, storage object "
                f"{'removed' if removed else 'left behind'}: {stored.path}"
            )
            raise normalize_upstream_error(e)

        await self.db.refresh(document)
        logger.info(f"[DOCUMENTS] Stored {upload.document_type.value} for business {upload.business_id}")
        return document

    async def set_verification_status(
        self,
        document_id: UUID,
        status: DocumentStatus,
        admin_id: UUID,
        actor_uid: str,
        rejection_reason: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> BusinessDocument:
        """Record an admin verification decision in a single UPDATE."""
        if status not in (DocumentStatus.APPROVED, DocumentStatus.REJECTED, DocumentStatus.UNDER_REVIEW):
            raise ValidationFailed("Documents can only be approved, rejected or put under review")
        if status == DocumentStatus.REJECTED and not rejection_reason:
            raise ValidationFailed("A rejection reason is required")

        result = await self.db.execute(
            update(BusinessDocument)
            .where(BusinessDocument.id == document_id)
            .values(
                verification_status=status,
                verified_by=admin_id,
                verified_at=datetime.utcnow(),
                rejection_reason=rejection_reason if status == DocumentStatus.REJECTED else None,
            )
            .returning(BusinessDocument)
        )
        document = result.scalar_one_or_none()
        if document is None:
            raise NotFound("Document not found")

        action = (
            AuditAction.DOCUMENT_REJECTED
            if status == DocumentStatus.REJECTED
            else AuditAction.DOCUMENT_VERIFIED
        )
        await self.audit.log_moderation(
            action=action,
            resource_type="business_document",
            resource_id=document.id,
            actor_id=actor_uid,
            business_id=document.business_id,
            notes=rejection_reason,
            ip_address=ip_address,
        )
        await self.db.commit()
        return document
