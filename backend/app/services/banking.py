"""Plaid bank account linking for business payouts."""

import logging
from typing import Optional
from uuid import UUID

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import ValidationFailed
from app.models.banking import BankConnection

logger = logging.getLogger(__name__)

PLAID_HOSTS = {
    "sandbox": "https://sandbox.plaid.com",
    "development": "https://development.plaid.com",
    "production": "https://production.plaid.com",
}


class PlaidClient:
    """Minimal Plaid API client covering Link and the token exchange."""

    def __init__(
        self,
        client_id: Optional[str] = None,
        secret: Optional[str] = None,
        environment: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.client_id = client_id or settings.plaid_client_id
        self.secret = secret or settings.plaid_secret
        self.base_url = PLAID_HOSTS.get(environment or settings.plaid_env, PLAID_HOSTS["sandbox"])
        self.transport = transport

    async def _post(self, path: str, payload: dict) -> dict:
        async with httpx.AsyncClient(base_url=self.base_url, transport=self.transport, timeout=15.0) as client:
            response = await client.post(
                path,
                json={"client_id": self.client_id, "secret": self.secret, **payload},
            )
            response.raise_for_status()
            return response.json()

    async def create_link_token(self, user_id: str, business_name: str) -> str:
        data = await self._post(
            "/link/token/create",
            {
                "user": {"client_user_id": user_id},
                "client_name": business_name[:30],
                "products": ["auth"],
                "country_codes": ["US"],
                "language": "en",
            },
        )
        return data["link_token"]

    async def exchange_public_token(self, public_token: str) -> tuple[str, str]:
        """Returns (access_token, item_id)."""
        data = await self._post("/item/public_token/exchange", {"public_token": public_token})
        return data["access_token"], data["item_id"]

    async def get_accounts(self, access_token: str) -> list[dict]:
        data = await self._post("/accounts/get", {"access_token": access_token})
        return data.get("accounts", [])


class BankingService:
    def __init__(self, db: AsyncSession, plaid: PlaidClient):
        self.db = db
        self.plaid = plaid

    async def connect_account(
        self,
        business_id: UUID,
        user_id: str,
        public_token: str,
        account_id: str,
        institution_name: Optional[str] = None,
    ) -> BankConnection:
        """Exchange a Link public token and store the chosen account as the payout account."""
        access_token, item_id = await self.plaid.exchange_public_token(public_token)
        accounts = await self.plaid.get_accounts(access_token)
        account = next((a for a in accounts if a.get("account_id") == account_id), None)
        if account is None:
            raise ValidationFailed("Selected account not found", code="account_not_found")

        result = await self.db.execute(
            select(BankConnection).where(BankConnection.business_id == business_id)
        )
        connection = result.scalar_one_or_none()
        if connection is None:
            connection = BankConnection(business_id=business_id)
            self.db.add(connection)

        connection.user_id = user_id
        connection.plaid_access_token = access_token
        connection.plaid_item_id = item_id
        connection.plaid_account_id = account_id
        connection.institution_name = institution_name
        connection.account_name = account.get("name")
        connection.account_mask = account.get("mask")
        connection.account_type = account.get("type")
        connection.account_subtype = account.get("subtype")
        connection.is_active = True

        await self.db.flush()
        logger.info(f"[BANKING] Payout account linked for business {business_id}")
        return connection


def get_plaid_client() -> PlaidClient:
    return PlaidClient()
