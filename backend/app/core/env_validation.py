"""
Runtime Environment Validation Module

This module validates all required environment variables at application startup.
If validation fails, the application will refuse to start (hard fail) and prints
the names of every missing variable.
"""

import os
import sys
from typing import Optional

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProductionSettings(BaseSettings):
    """
    Strict validation schema for production environment variables.

    All required fields MUST be present and valid, or the application will not start.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="forbid",  # Fail on unknown keys in the .env file
    )

    # ========================================================================
    # CRITICAL: Database Configuration
    # ========================================================================
    database_url: str  # REQUIRED: PostgreSQL connection string
    database_pool_size: int = 5
    database_echo: bool = False

    # ========================================================================
    # CRITICAL: Firebase Authentication
    # ========================================================================
    firebase_project_id: str  # REQUIRED: Firebase project ID
    google_application_credentials: Optional[str] = None  # Path to service account JSON

    # ========================================================================
    # CRITICAL: Onboarding Link Signing
    # ========================================================================
    jwt_secret: str  # REQUIRED: HMAC secret for phase-2 and invitation links
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "roam-admin"
    jwt_audience: str = "roam-provider-app"
    phase2_token_ttl_days: int = 7
    staff_invitation_ttl_days: int = 7

    # ========================================================================
    # CRITICAL: Storage Provider
    # ========================================================================
    storage_provider: str  # REQUIRED: "gcs" or "s3"

    # GCS Configuration (required if storage_provider=gcs)
    gcs_bucket_name: Optional[str] = None
    gcs_project_id: Optional[str] = None

    # S3 Configuration (required if storage_provider=s3)
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: Optional[str] = None
    s3_bucket_name: Optional[str] = None

    # ========================================================================
    # CRITICAL: Third-party Integrations
    # ========================================================================
    stripe_secret_key: str  # REQUIRED: identity verification + payouts
    stripe_api_base: str = "https://api.stripe.com/v1"
    plaid_client_id: str  # REQUIRED: bank account linking
    plaid_secret: str
    plaid_env: str = "sandbox"
    resend_api_key: str  # REQUIRED: transactional email
    resend_api_base: str = "https://api.resend.com"
    email_from: str = "ROAM <onboarding@roamservices.app>"

    # ========================================================================
    # Application Configuration
    # ========================================================================
    app_name: str = "ROAM Platform API"
    debug: bool = False
    log_level: str = "INFO"
    provider_app_url: str = "http://localhost:5177"

    # ========================================================================
    # CRITICAL: CORS Configuration
    # ========================================================================
    allowed_origins: str  # REQUIRED: Comma-separated list of allowed origins


def missing_variable_names(error: ValidationError) -> list[str]:
    """Environment variable names reported as missing by a settings validation error."""
    names = []
    for item in error.errors():
        if item["type"] != "missing" or not item["loc"]:
            continue
        name = str(item["loc"][0]).upper()
        if name not in names:
            names.append(name)
    return names


def validate_environment() -> ProductionSettings:
    """
    Validate all required environment variables at startup.

    This function MUST be called before the FastAPI app starts.
    If validation fails, the application will exit with code 1.

    Returns:
        ProductionSettings: Validated settings object

    Raises:
        SystemExit: If validation fails (exit code 1)
    """

    try:
        settings = ProductionSettings()
    except ValidationError as e:
        print("❌ FATAL: Environment validation failed", file=sys.stderr)
        missing = missing_variable_names(e)
        if missing:
            print(
                f"Missing required environment variables: {', '.join(missing)}",
                file=sys.stderr,
            )
        invalid = [err for err in e.errors() if err["type"] != "missing"]
        if invalid:
            print("\nInvalid environment variables:", file=sys.stderr)
            for error in invalid:
                field = " -> ".join(str(loc) for loc in error["loc"])
                print(f"   • {field}: {error['msg']}", file=sys.stderr)

        print("\nThe application cannot start with invalid configuration.", file=sys.stderr)
        print("Please check your .env file or environment variables.", file=sys.stderr)
        sys.exit(1)

    # ====================================================================
    # Additional Production-Specific Validation
    # ====================================================================

    # 1. CORS: Ensure wildcard is not used in production
    if not settings.debug:
        origins = [o.strip() for o in settings.allowed_origins.split(",")]
        if "*" in origins:
            print(
                "❌ FATAL: Wildcard CORS origin (*) detected in production mode.",
                file=sys.stderr
            )
            print(
                "   Set ALLOWED_ORIGINS to specific domains (comma-separated).",
                file=sys.stderr
            )
            sys.exit(1)

    # 2. Storage Provider: Validate provider-specific configuration
    if settings.storage_provider == "gcs":
        if not settings.gcs_bucket_name or not settings.gcs_project_id:
            print(
                "Missing required environment variables: GCS_BUCKET_NAME, GCS_PROJECT_ID",
                file=sys.stderr
            )
            sys.exit(1)
    elif settings.storage_provider == "s3":
        missing = [
            name
            for name, value in (
                ("S3_BUCKET_NAME", settings.s3_bucket_name),
                ("AWS_ACCESS_KEY_ID", settings.aws_access_key_id),
                ("AWS_SECRET_ACCESS_KEY", settings.aws_secret_access_key),
            )
            if not value
        ]
        if missing:
            print(
                f"Missing required environment variables: {', '.join(missing)}",
                file=sys.stderr
            )
            sys.exit(1)
    else:
        print(
            f"❌ FATAL: Invalid STORAGE_PROVIDER '{settings.storage_provider}'. Must be 'gcs' or 's3'.",
            file=sys.stderr
        )
        sys.exit(1)

    # 3. Firebase: Validate credentials path exists (if provided)
    if settings.google_application_credentials:
        if not os.path.exists(settings.google_application_credentials):
            print(
                f"❌ FATAL: Firebase credentials file not found: {settings.google_application_credentials}",
                file=sys.stderr
            )
            sys.exit(1)

    # 4. Database URL: Basic format validation
    if not settings.database_url.startswith("postgresql"):
        print(
            "❌ FATAL: DATABASE_URL must be a PostgreSQL connection string (postgresql:// or postgresql+asyncpg://)",
            file=sys.stderr
        )
        sys.exit(1)

    # 5. Link signing secret must not be trivially guessable
    if len(settings.jwt_secret) < 32 and not settings.debug:
        print(
            "❌ FATAL: JWT_SECRET must be at least 32 characters in production mode.",
            file=sys.stderr
        )
        sys.exit(1)

    # ====================================================================
    # Success: Log validated configuration
    # ====================================================================
    print("✅ Environment validation passed")
    print(f"   App: {settings.app_name}")
    print(f"   Debug: {settings.debug}")
    print(f"   Storage: {settings.storage_provider}")
    print(f"   CORS Origins: {settings.allowed_origins}")

    return settings


if __name__ == "__main__":
    # Allow running this module directly to test validation
    validate_environment()
    print("\n✅ All environment variables are valid!")
