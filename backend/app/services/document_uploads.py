"""Client library for the document upload endpoint.

Files are checked against the document policy before any request is made;
accepted files upload concurrently and each entry tracks its own progress.
"""

import asyncio
import base64
import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional, Union
from uuid import UUID

import httpx

from app.core.errors import describe_upstream_error
from app.models.enums import DocumentType
from app.services.documents import validate_document

logger = logging.getLogger(__name__)

UPLOAD_ENDPOINT = "/api/onboarding/upload-documents"


class UploadRejected(Exception):
    """A file failed local validation and was not sent."""

    def __init__(self, file_name: str, message: str):
        super().__init__(message)
        self.file_name = file_name
        self.message = message


@dataclass
class UploadEntry:
    document_type: DocumentType
    file_name: str
    content: bytes
    mime_type: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: str = "pending"  # pending | uploading | uploaded | error
    progress: int = 0
    error: Optional[str] = None
    document: Optional[dict] = None


class DocumentUploadQueue:
    """Tracks a set of document uploads for one business."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        business_id: UUID,
        user_id: str,
        phase2_token: str,
        endpoint: str = UPLOAD_ENDPOINT,
    ):
        self.client = client
        self.business_id = business_id
        self.user_id = user_id
        self.phase2_token = phase2_token
        self.endpoint = endpoint
        self.entries: list[UploadEntry] = []

    def _existing(self) -> list[tuple[DocumentType, str]]:
        return [(e.document_type, e.status) for e in self.entries]

    def validate(self, document_type: Union[DocumentType, str], file_name: str, size: int) -> Optional[str]:
        return validate_document(document_type, file_name, size, self._existing())

    def get(self, entry_id: str) -> UploadEntry:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        raise KeyError(entry_id)

    def remove(self, entry_id: str) -> None:
        self.entries = [e for e in self.entries if e.id != entry_id]

    def _enqueue(self, document_type: DocumentType, file_name: str, content: bytes, mime_type: str) -> UploadEntry:
        error = self.validate(document_type, file_name, len(content))
        if error:
            raise UploadRejected(file_name, error)
        entry = UploadEntry(
            document_type=DocumentType(document_type),
            file_name=file_name,
            content=content,
            mime_type=mime_type,
        )
        self.entries.append(entry)
        return entry

    async def add_files(
        self,
        document_type: DocumentType,
        files: list[tuple[str, bytes, str]],
    ) -> tuple[list[UploadEntry], list[UploadRejected]]:
        """Validate and upload ``(file_name, content, mime_type)`` files.

        Returns the entries that were sent and the files rejected locally.
        """
        accepted: list[UploadEntry] = []
        rejected: list[UploadRejected] = []
        for file_name, content, mime_type in files:
            try:
                accepted.append(self._enqueue(document_type, file_name, content, mime_type))
            except UploadRejected as e:
                rejected.append(e)

        await asyncio.gather(*(self._upload(entry) for entry in accepted))
        return accepted, rejected

    async def retry(self, entry_id: str) -> UploadEntry:
        """Re-send a failed upload after re-validating it against the current entries."""
        entry = self.get(entry_id)
        if entry.status != "error":
            raise ValueError("Only failed uploads can be retried")

        self.remove(entry_id)
        new_entry = self._enqueue(entry.document_type, entry.file_name, entry.content, entry.mime_type)
        await self._upload(new_entry)
        return new_entry

    async def _upload(self, entry: UploadEntry) -> None:
        entry.status = "uploading"
        entry.progress = 10
        payload = {
            "file_data": base64.b64encode(entry.content).decode("ascii"),
            "file_name": entry.file_name,
            "mime_type": entry.mime_type,
            "business_id": str(self.business_id),
            "user_id": self.user_id,
            "document_type": entry.document_type.value,
            "file_size_bytes": len(entry.content),
        }
        entry.progress = 50
        try:
            response = await self.client.post(
                self.endpoint,
                json=payload,
                headers={"X-Phase2-Token": self.phase2_token},
                timeout=30.0,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            entry.status = "error"
            entry.progress = 0
            entry.error = describe_upstream_error(e)
            logger.warning(f"[DOCUMENTS] Upload of {entry.file_name} failed: {entry.error}")
            return

        entry.status = "uploaded"
        entry.progress = 100
        entry.error = None
        entry.document = response.json().get("data")
