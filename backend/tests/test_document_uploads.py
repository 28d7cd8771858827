import base64
import json
import unittest
import uuid

import httpx

from app.models.enums import DocumentType
from app.services.document_uploads import DocumentUploadQueue, UploadRejected


class UploadServer:
    """Stands in for the upload endpoint and records every request."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.fail = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail:
            return httpx.Response(500, json={"error": "Storage unavailable"})
        body = json.loads(request.content)
        return httpx.Response(
            201,
            json={
                "data": {
                    "id": str(uuid.uuid4()),
                    "document_type": body["document_type"],
                    "document_name": body["file_name"],
                }
            },
        )


class TestDocumentUploadQueue(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.server = UploadServer()
        self.client = httpx.AsyncClient(
            transport=httpx.MockTransport(self.server),
            base_url="https://api.roam.test",
        )
        self.business_id = uuid.uuid4()
        self.queue = DocumentUploadQueue(self.client, self.business_id, "firebase-uid", "phase2-token")

    async def asyncTearDown(self):
        await self.client.aclose()

    async def test_invalid_file_never_reaches_the_network(self):
        accepted, rejected = await self.queue.add_files(
            DocumentType.PROFESSIONAL_CERTIFICATE,
            [("cert.gif", b"GIF89a", "image/gif")],
        )
        self.assertEqual(accepted, [])
        self.assertEqual(len(rejected), 1)
        self.assertEqual(rejected[0].file_name, "cert.gif")
        self.assertEqual(self.server.requests, [])

    async def test_uploads_each_file_with_phase2_header(self):
        accepted, rejected = await self.queue.add_files(
            DocumentType.PROFESSIONAL_LICENSE,
            [
                ("license-front.pdf", b"%PDF-front", "application/pdf"),
                ("license-back.png", b"\x89PNG-back", "image/png"),
            ],
        )
        self.assertEqual(rejected, [])
        self.assertEqual(len(self.server.requests), 2)
        for entry in accepted:
            self.assertEqual(entry.status, "uploaded")
            self.assertEqual(entry.progress, 100)

        request = self.server.requests[0]
        self.assertEqual(request.url.path, "/api/onboarding/upload-documents")
        self.assertEqual(request.headers["X-Phase2-Token"], "phase2-token")
        body = json.loads(request.content)
        self.assertEqual(body["business_id"], str(self.business_id))
        self.assertEqual(body["document_type"], "professional_license")
        self.assertEqual(base64.b64decode(body["file_data"]), b"%PDF-front")
        self.assertEqual(body["file_size_bytes"], len(b"%PDF-front"))

    async def test_second_file_for_single_slot_type_is_rejected_locally(self):
        accepted, rejected = await self.queue.add_files(
            DocumentType.BUSINESS_LICENSE,
            [("a.pdf", b"%PDF-a", "application/pdf"), ("b.pdf", b"%PDF-b", "application/pdf")],
        )
        self.assertEqual([e.file_name for e in accepted], ["a.pdf"])
        self.assertEqual([r.file_name for r in rejected], ["b.pdf"])
        self.assertEqual(len(self.server.requests), 1)

    async def test_failed_upload_is_marked_with_server_message(self):
        self.server.fail = True
        accepted, _ = await self.queue.add_files(
            DocumentType.LIABILITY_INSURANCE,
            [("insurance.pdf", b"%PDF-ins", "application/pdf")],
        )
        entry = accepted[0]
        self.assertEqual(entry.status, "error")
        self.assertEqual(entry.progress, 0)
        self.assertEqual(entry.error, "Storage unavailable")

    async def test_retry_resubmits_same_content(self):
        self.server.fail = True
        accepted, _ = await self.queue.add_files(
            DocumentType.PROFESSIONAL_CERTIFICATE,
            [("cert.pdf", b"%PDF-cert", "application/pdf")],
        )
        self.server.fail = False

        retried = await self.queue.retry(accepted[0].id)

        self.assertEqual(retried.status, "uploaded")
        self.assertEqual([e.id for e in self.queue.entries], [retried.id])
        first, second = (json.loads(r.content) for r in self.server.requests)
        self.assertEqual(first["file_data"], second["file_data"])

    async def test_retry_is_revalidated_against_current_entries(self):
        """A failed certificate cannot be retried once another certificate uploaded."""
        self.server.fail = True
        failed, _ = await self.queue.add_files(
            DocumentType.PROFESSIONAL_CERTIFICATE,
            [("first.pdf", b"%PDF-1", "application/pdf")],
        )
        self.server.fail = False
        replacement, rejected = await self.queue.add_files(
            DocumentType.PROFESSIONAL_CERTIFICATE,
            [("second.pdf", b"%PDF-2", "application/pdf")],
        )
        self.assertEqual(rejected, [])
        self.assertEqual(replacement[0].status, "uploaded")

        with self.assertRaises(UploadRejected):
            await self.queue.retry(failed[0].id)

        self.assertEqual([e.file_name for e in self.queue.entries], ["second.pdf"])
        self.assertEqual(len(self.server.requests), 2)

    async def test_only_failed_entries_can_be_retried(self):
        accepted, _ = await self.queue.add_files(
            DocumentType.PROFESSIONAL_LICENSE,
            [("lic.pdf", b"%PDF-lic", "application/pdf")],
        )
        with self.assertRaises(ValueError):
            await self.queue.retry(accepted[0].id)

    async def test_remove(self):
        accepted, _ = await self.queue.add_files(
            DocumentType.PROFESSIONAL_LICENSE,
            [("lic.pdf", b"%PDF-lic", "application/pdf")],
        )
        self.queue.remove(accepted[0].id)
        self.assertEqual(self.queue.entries, [])


if __name__ == "__main__":
    unittest.main()
