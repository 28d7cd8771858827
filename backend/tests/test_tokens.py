import unittest
import uuid
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

from jose import jwt

from app.core.config import get_settings
from app.core.errors import Forbidden
from app.core.phase_gate import Phase2Context, resolve_phase2_token
from app.core.tokens import (
    INVALID_LINK_MESSAGE,
    PHASE2_PURPOSE,
    STAFF_INVITATION_PURPOSE,
    InvalidLinkError,
    decode_link_token,
    issue_phase2_token,
    issue_staff_invitation_token,
)


class TestLinkTokens(unittest.TestCase):
    def setUp(self):
        self.business_id = uuid.uuid4()
        self.application_id = uuid.uuid4()

    def test_phase2_round_trip_claims(self):
        token, expires_at = issue_phase2_token(self.business_id, "firebase-uid", self.application_id)
        claims = decode_link_token(token, PHASE2_PURPOSE)

        self.assertEqual(claims["business_id"], str(self.business_id))
        self.assertEqual(claims["application_id"], str(self.application_id))
        self.assertEqual(claims["user_id"], "firebase-uid")
        self.assertEqual(claims["iss"], "roam-admin")
        self.assertEqual(claims["aud"], "roam-provider-app")
        remaining = expires_at - datetime.utcnow()
        self.assertTrue(timedelta(days=6) < remaining <= timedelta(days=7))

    def test_missing_token(self):
        with self.assertRaises(InvalidLinkError) as ctx:
            decode_link_token(None, PHASE2_PURPOSE)
        self.assertEqual(ctx.exception.message, INVALID_LINK_MESSAGE)
        self.assertEqual(ctx.exception.status_code, 401)

    def test_expired_token(self):
        token, _ = issue_phase2_token(
            self.business_id, "firebase-uid", self.application_id, ttl=timedelta(seconds=-60)
        )
        with self.assertRaises(InvalidLinkError):
            decode_link_token(token, PHASE2_PURPOSE)

    def test_tampered_token(self):
        token, _ = issue_phase2_token(self.business_id, "firebase-uid", self.application_id)
        with self.assertRaises(InvalidLinkError):
            decode_link_token(token[:-4] + "abcd", PHASE2_PURPOSE)

    def test_wrong_secret(self):
        settings = get_settings()
        forged = jwt.encode(
            {
                "purpose": PHASE2_PURPOSE,
                "business_id": str(self.business_id),
                "iss": settings.jwt_issuer,
                "aud": settings.jwt_audience,
            },
            "some-other-secret",
            algorithm="HS256",
        )
        with self.assertRaises(InvalidLinkError):
            decode_link_token(forged, PHASE2_PURPOSE)

    def test_staff_invitation_is_not_a_phase2_link(self):
        token, _ = issue_staff_invitation_token(self.business_id, "New@Example.com", "dispatcher", "owner-uid")
        with self.assertRaises(InvalidLinkError):
            decode_link_token(token, PHASE2_PURPOSE)

        claims = decode_link_token(token, STAFF_INVITATION_PURPOSE)
        self.assertEqual(claims["email"], "new@example.com")
        self.assertEqual(claims["role"], "dispatcher")


def _db_returning(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    db = MagicMock()
    db.execute = AsyncMock(return_value=result)
    return db


class TestPhaseGate(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.business_id = uuid.uuid4()
        self.application_id = uuid.uuid4()
        self.token, _ = issue_phase2_token(self.business_id, "firebase-uid", self.application_id)

    async def test_live_approval_grants_access(self):
        db = _db_returning(uuid.uuid4())
        ctx = await resolve_phase2_token(db, self.token)

        self.assertEqual(ctx, Phase2Context(self.business_id, "firebase-uid", self.application_id))
        db.execute.assert_awaited_once()

    async def test_revoked_or_unknown_approval_is_rejected(self):
        db = _db_returning(None)
        with self.assertRaises(InvalidLinkError) as ctx:
            await resolve_phase2_token(db, self.token)
        self.assertEqual(ctx.exception.to_dict(), {"error": "Invalid or expired link", "code": "invalid_link"})

    async def test_bad_signature_rejected_before_database(self):
        db = _db_returning(uuid.uuid4())
        with self.assertRaises(InvalidLinkError):
            await resolve_phase2_token(db, "not-a-jwt")
        db.execute.assert_not_called()

    def test_context_is_scoped_to_its_business(self):
        ctx = Phase2Context(self.business_id, "firebase-uid", self.application_id)
        self.assertEqual(ctx.ensure_business(None), self.business_id)
        self.assertEqual(ctx.ensure_business(self.business_id), self.business_id)
        with self.assertRaises(Forbidden):
            ctx.ensure_business(uuid.uuid4())


if __name__ == "__main__":
    unittest.main()
