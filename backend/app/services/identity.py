"""Stripe Identity verification sessions."""

import logging
from typing import Optional
from uuid import UUID

import httpx

from app.core.config import get_settings

logger = logging.getLogger(__name__)


class IdentityVerificationClient:
    """Creates and polls Stripe Identity verification sessions."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.secret_key = secret_key or settings.stripe_secret_key
        self.base_url = base_url or settings.stripe_api_base
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            transport=self.transport,
            auth=(self.secret_key, ""),
            timeout=15.0,
        )

    async def create_session(self, business_id: UUID, user_id: str, return_url: str) -> dict:
        """Start a document + selfie verification for the business owner."""
        async with self._client() as client:
            response = await client.post(
                "/identity/verification_sessions",
                data={
                    "type": "document",
                    "options[document][require_matching_selfie]": "true",
                    "metadata[business_id]": str(business_id),
                    "metadata[user_id]": user_id,
                    "return_url": return_url,
                },
            )
            response.raise_for_status()
            session = response.json()
        logger.info(f"[IDENTITY] Session {session.get('id')} created for business {business_id}")
        return session

    async def get_session(self, session_id: str) -> dict:
        async with self._client() as client:
            response = await client.get(f"/identity/verification_sessions/{session_id}")
            response.raise_for_status()
            return response.json()


def get_identity_client() -> IdentityVerificationClient:
    return IdentityVerificationClient()
