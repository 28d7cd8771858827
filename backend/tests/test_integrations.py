import json
import unittest
import uuid
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs

import httpx

from app.core.errors import ValidationFailed
from app.services.banking import BankingService, PlaidClient
from app.services.identity import IdentityVerificationClient


class TestIdentityVerificationClient(unittest.IsolatedAsyncioTestCase):
    async def test_create_session_sends_business_metadata(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"id": "vs_123", "url": "https://verify.test/vs_123", "status": "requires_input"})

        client = IdentityVerificationClient(
            secret_key="sk_test", base_url="https://stripe.test/v1", transport=httpx.MockTransport(handler)
        )
        business_id = uuid.uuid4()
        session = await client.create_session(business_id, "owner-uid", "https://provider.test/done")

        self.assertEqual(session["id"], "vs_123")
        request = requests[0]
        self.assertEqual(request.url.path, "/v1/identity/verification_sessions")
        form = parse_qs(request.content.decode())
        self.assertEqual(form["metadata[business_id]"], [str(business_id)])
        self.assertEqual(form["return_url"], ["https://provider.test/done"])
        self.assertTrue(request.headers["Authorization"].startswith("Basic "))

    async def test_upstream_failure_raises(self):
        client = IdentityVerificationClient(
            secret_key="sk_test",
            base_url="https://stripe.test/v1",
            transport=httpx.MockTransport(lambda r: httpx.Response(404, json={"error": {"message": "No such session"}})),
        )
        with self.assertRaises(httpx.HTTPStatusError):
            await client.get_session("vs_missing")


def _plaid(accounts):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        calls.append((request.url.path, payload))
        if request.url.path == "/item/public_token/exchange":
            return httpx.Response(200, json={"access_token": "access-sandbox-1", "item_id": "item-1"})
        if request.url.path == "/accounts/get":
            return httpx.Response(200, json={"accounts": accounts})
        return httpx.Response(200, json={"link_token": "link-sandbox-1"})

    client = PlaidClient(client_id="cid", secret="sec", environment="sandbox", transport=httpx.MockTransport(handler))
    return client, calls


class TestBanking(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.db = MagicMock()
        self.db.flush = AsyncMock()
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        self.db.execute = AsyncMock(return_value=result)

    async def test_link_token_carries_credentials(self):
        client, calls = _plaid([])
        token = await client.create_link_token("owner-uid", "A Very Long Business Name That Exceeds Thirty")

        self.assertEqual(token, "link-sandbox-1")
        path, payload = calls[0]
        self.assertEqual(path, "/link/token/create")
        self.assertEqual(payload["client_id"], "cid")
        self.assertEqual(len(payload["client_name"]), 30)

    async def test_connect_stores_selected_account(self):
        client, _ = _plaid([
            {"account_id": "acc-1", "name": "Checking", "mask": "0000", "type": "depository", "subtype": "checking"},
        ])
        business_id = uuid.uuid4()

        connection = await BankingService(self.db, client).connect_account(
            business_id, "owner-uid", "public-sandbox-1", "acc-1", institution_name="First Platypus Bank"
        )

        self.assertEqual(connection.business_id, business_id)
        self.assertEqual(connection.plaid_item_id, "item-1")
        self.assertEqual(connection.account_mask, "0000")
        self.assertTrue(connection.is_active)
        self.db.add.assert_called_once_with(connection)
        self.db.flush.assert_awaited_once()

    async def test_unknown_account_is_rejected(self):
        client, _ = _plaid([{"account_id": "acc-1"}])
        with self.assertRaises(ValidationFailed) as ctx:
            await BankingService(self.db, client).connect_account(
                uuid.uuid4(), "owner-uid", "public-sandbox-1", "acc-2"
            )
        self.assertEqual(ctx.exception.code, "account_not_found")
        self.db.add.assert_not_called()


if __name__ == "__main__":
    unittest.main()
