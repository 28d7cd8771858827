"""Storage service with provider interface (GCS/S3)."""

import asyncio
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from app.core.config import get_settings, StorageProvider


class StorageProviderInterface(ABC):
    """Abstract interface for storage providers."""

    @abstractmethod
    async def upload_object(self, object_path: str, data: bytes, content_type: str) -> None:
        """Write bytes to ``object_path``, replacing any existing object."""
        pass

    @abstractmethod
    def public_url(self, object_path: str) -> str:
        """Stable URL of an object."""
        pass

    @abstractmethod
    async def generate_presigned_download_url(
        self,
        object_path: str,
        ttl_seconds: int,
    ) -> str:
        """Generate a presigned GET URL for download."""
        pass

    @abstractmethod
    async def delete_object(self, object_path: str) -> bool:
        """Delete an object from storage."""
        pass


class GCSStorageProvider(StorageProviderInterface):
    """Google Cloud Storage provider."""

    def __init__(self, bucket_name: str, project_id: Optional[str] = None):
        self.bucket_name = bucket_name
        self.project_id = project_id
        self._client = None

    @property
    def client(self):
        if self._client is None:
            from google.cloud import storage
            self._client = storage.Client(project=self.project_id)
        return self._client

    @property
    def bucket(self):
        return self.client.bucket(self.bucket_name)

    async def upload_object(self, object_path: str, data: bytes, content_type: str) -> None:
        blob = self.bucket.blob(object_path)
        await asyncio.to_thread(blob.upload_from_string, data, content_type=content_type)

    def public_url(self, object_path: str) -> str:
        return f"https://storage.googleapis.com/{self.bucket_name}/{object_path}"

    async def generate_presigned_download_url(
        self,
        object_path: str,
        ttl_seconds: int,
    ) -> str:
        blob = self.bucket.blob(object_path)
        return blob.generate_signed_url(
            version="v4",
            expiration=timedelta(seconds=ttl_seconds),
            method="GET",
        )

    async def delete_object(self, object_path: str) -> bool:
        blob = self.bucket.blob(object_path)
        if await asyncio.to_thread(blob.exists):
            await asyncio.to_thread(blob.delete)
            return True
        return False


class S3StorageProvider(StorageProviderInterface):
    """AWS S3 storage provider."""

    def __init__(
        self,
        bucket_name: str,
        region: str,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
    ):
        self.bucket_name = bucket_name
        self.region = region
        self._client = None
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key

    @property
    def client(self):
        if self._client is None:
            import boto3
            self._client = boto3.client(
                "s3",
                region_name=self.region,
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
            )
        return self._client

    async def upload_object(self, object_path: str, data: bytes, content_type: str) -> None:
        await asyncio.to_thread(
            self.client.put_object,
            Bucket=self.bucket_name,
            Key=object_path,
            Body=data,
            ContentType=content_type,
        )

    def public_url(self, object_path: str) -> str:
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{object_path}"

    async def generate_presigned_download_url(
        self,
        object_path: str,
        ttl_seconds: int,
    ) -> str:
        return self.client.generate_presigned_url(
            "get_object",
            Params={
                "Bucket": self.bucket_name,
                "Key": object_path,
            },
            ExpiresIn=ttl_seconds,
        )

    async def delete_object(self, object_path: str) -> bool:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            await asyncio.to_thread(
                self.client.delete_object, Bucket=self.bucket_name, Key=object_path
            )
            return True
        except (BotoCoreError, ClientError):
            return False


def sanitize_filename(file_name: str) -> str:
    """Replace anything but letters, digits, dots and dashes; collapse and trim underscores."""
    cleaned = re.sub(r"[^a-zA-Z0-9.-]", "_", file_name)
    cleaned = re.sub(r"_+", "_", cleaned)
    return cleaned.strip("_") or "document"


@dataclass
class StoredObject:
    path: str
    url: str


class StorageService:
    """High-level storage service wrapping provider interface."""

    ALLOWED_MIME_TYPES = {
        "image/jpeg",
        "image/png",
        "application/pdf",
    }

    def __init__(self, provider: StorageProviderInterface):
        self.provider = provider

    def generate_document_path(
        self,
        business_id,
        document_type: str,
        file_name: str,
        now: Optional[datetime] = None,
    ) -> str:
        """``provider-documents/{business}/{type}_{millis}_{sanitized name}``."""
        timestamp = int((now or datetime.utcnow()).timestamp() * 1000)
        return f"provider-documents/{business_id}/{document_type}_{timestamp}_{sanitize_filename(file_name)}"

    async def store_document(
        self,
        business_id,
        document_type: str,
        file_name: str,
        data: bytes,
        mime_type: str,
    ) -> StoredObject:
        """Validate the mime type and write the document bytes."""
        if mime_type not in self.ALLOWED_MIME_TYPES:
            raise ValueError(f"Unsupported mime type: {mime_type}")

        object_path = self.generate_document_path(business_id, document_type, file_name)
        await self.provider.upload_object(object_path, data, mime_type)
        return StoredObject(path=object_path, url=self.provider.public_url(object_path))

    async def delete(self, object_path: str) -> bool:
        return await self.provider.delete_object(object_path)

    async def get_download_url(self, object_path: str, ttl_seconds: int = 3600) -> str:
        """Get a presigned download URL."""
        return await self.provider.generate_presigned_download_url(object_path, ttl_seconds)


def get_storage_service() -> StorageService:
    """Factory function to get storage service based on config."""
    settings = get_settings()
    if settings.storage_provider == StorageProvider.GCS:
        provider = GCSStorageProvider(
            bucket_name=settings.bucket_name,
            project_id=settings.gcs_project_id,
        )
    else:
        provider = S3StorageProvider(
            bucket_name=settings.bucket_name,
            region=settings.aws_region or "us-east-1",
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
        )

    return StorageService(provider)
