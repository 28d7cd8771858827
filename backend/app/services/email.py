"""
Transactional email through the Resend HTTP API.

Emails are best-effort: a failed send is logged and reported as False,
never raised into the request that triggered it.
"""

import logging
from typing import Optional

import httpx

from app.core.config import get_settings

logger = logging.getLogger(__name__)


class EmailService:
    """Sends plain-text onboarding and moderation notifications."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        sender: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.api_key = api_key or settings.resend_api_key
        self.base_url = base_url or settings.resend_api_base
        self.sender = sender or settings.email_from
        self.transport = transport

    async def send(self, to: str, subject: str, text: str) -> bool:
        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/emails",
                    json={"from": self.sender, "to": [to], "subject": subject, "text": text},
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    timeout=10.0,
                )

                if response.status_code not in (200, 201):
                    logger.warning(f"[EMAIL] Send to {to} failed: {response.status_code}")
                    return False

                logger.info(f"[EMAIL] Sent '{subject}' to {to}")
                return True

        except httpx.HTTPError as e:
            logger.warning(f"[EMAIL] Send to {to} failed: {e}")
            return False

    async def send_application_received(self, to: str, business_name: str) -> bool:
        return await self.send(
            to,
            "We received your ROAM provider application",
            f"Thanks for applying to ROAM with {business_name}. "
            "Our team will review your application and get back to you.",
        )

    async def send_application_approved(self, to: str, business_name: str, phase2_url: str) -> bool:
        ttl_days = get_settings().phase2_token_ttl_days
        return await self.send(
            to,
            "Your ROAM application was approved",
            f"{business_name} has been approved to continue onboarding.\n\n"
            f"Finish setting up your business here: {phase2_url}\n\n"
            f"This link expires in {ttl_days} {'day' if ttl_days == 1 else 'days'}.",
        )

    async def send_application_rejected(self, to: str, business_name: str, reason: Optional[str]) -> bool:
        body = f"Unfortunately we could not approve the application for {business_name}."
        if reason:
            body += f"\n\nReason: {reason}"
        return await self.send(to, "Update on your ROAM application", body)

    async def send_business_status(self, to: str, business_name: str, status: str, notes: Optional[str]) -> bool:
        body = f"The verification status of {business_name} is now: {status}."
        if notes:
            body += f"\n\n{notes}"
        return await self.send(to, f"ROAM business {status}", body)

    async def send_staff_invitation(self, to: str, business_name: str, role: str, invite_url: str) -> bool:
        return await self.send(
            to,
            f"You're invited to join {business_name} on ROAM",
            f"You've been invited to join {business_name} as a {role}.\n\n"
            f"Accept the invitation here: {invite_url}",
        )


def get_email_service() -> EmailService:
    return EmailService()
