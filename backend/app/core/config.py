"""Application configuration using Pydantic Settings."""

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageProvider(str, Enum):
    GCS = "gcs"
    S3 = "s3"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "ROAM Platform API"
    debug: bool = False
    log_level: str = "INFO"
    allowed_origins: str = "http://localhost:5173"
    provider_app_url: str = "http://localhost:5177"

    # Database
    database_url: str
    database_pool_size: int = 5
    database_echo: bool = False

    # Firebase Auth
    firebase_project_id: str
    google_application_credentials: Optional[str] = None

    # Onboarding links (phase 2 + staff invitations)
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "roam-admin"
    jwt_audience: str = "roam-provider-app"
    phase2_token_ttl_days: int = 7
    staff_invitation_ttl_days: int = 7

    # Storage
    storage_provider: StorageProvider = StorageProvider.GCS

    # GCS Config
    gcs_bucket_name: Optional[str] = None
    gcs_project_id: Optional[str] = None

    # S3 Config
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: Optional[str] = "us-east-1"
    s3_bucket_name: Optional[str] = None

    # Stripe (identity verification + payouts)
    stripe_secret_key: str
    stripe_api_base: str = "https://api.stripe.com/v1"

    # Plaid (bank account linking)
    plaid_client_id: str
    plaid_secret: str
    plaid_env: str = "sandbox"

    # Resend (transactional email)
    resend_api_key: str
    resend_api_base: str = "https://api.resend.com"
    email_from: str = "ROAM <onboarding@roamservices.app>"

    @property
    def bucket_name(self) -> str:
        """Get the appropriate bucket name based on storage provider."""
        if self.storage_provider == StorageProvider.GCS:
            if not self.gcs_bucket_name:
                raise ValueError("GCS_BUCKET_NAME required when STORAGE_PROVIDER=gcs")
            return self.gcs_bucket_name
        else:
            if not self.s3_bucket_name:
                raise ValueError("S3_BUCKET_NAME required when STORAGE_PROVIDER=s3")
            return self.s3_bucket_name


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
