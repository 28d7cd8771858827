import unittest

import httpx
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError

from app.core.errors import (
    Conflict,
    UpstreamError,
    describe_upstream_error,
    normalize_upstream_error,
    register_exception_handlers,
)


class DriverError(Exception):
    def __init__(self, message, detail=None, hint=None):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.hint = hint


class TestDescribeUpstreamError(unittest.TestCase):
    def test_plain_values(self):
        self.assertEqual(describe_upstream_error(None), "Unknown error")
        self.assertEqual(describe_upstream_error("boom"), "boom")
        self.assertEqual(describe_upstream_error({"error": {"message": "card declined"}}), "card declined")
        self.assertEqual(describe_upstream_error({"status": 7}), '{"status": 7}')

    def test_http_status_error_prefers_json_message(self):
        request = httpx.Request("POST", "https://api.example.test/items")
        response = httpx.Response(402, json={"error": {"message": "No such customer"}}, request=request)
        exc = httpx.HTTPStatusError("402", request=request, response=response)
        self.assertEqual(describe_upstream_error(exc), "No such customer")

    def test_http_status_error_falls_back_to_text(self):
        request = httpx.Request("GET", "https://api.example.test/items")
        response = httpx.Response(503, text="Service Unavailable", request=request)
        exc = httpx.HTTPStatusError("503", request=request, response=response)
        self.assertEqual(describe_upstream_error(exc), "Service Unavailable")

    def test_sqlalchemy_error_uses_driver_message(self):
        exc = IntegrityError("INSERT ...", {}, DriverError("duplicate key value violates unique constraint"))
        self.assertEqual(describe_upstream_error(exc), "duplicate key value violates unique constraint")

    def test_normalize_keeps_detail_and_hint(self):
        exc = IntegrityError(
            "INSERT ...",
            {},
            DriverError("null value in column", detail="Failing row contains (...)", hint="Set a value"),
        )
        error = normalize_upstream_error(exc)
        self.assertIsInstance(error, UpstreamError)
        self.assertEqual(error.message, "null value in column")
        self.assertEqual(error.details, {"detail": "Failing row contains (...)", "hint": "Set a value"})

    def test_normalize_is_idempotent(self):
        error = UpstreamError("already wrapped")
        self.assertIs(normalize_upstream_error(error), error)


class Payload(BaseModel):
    name: str
    count: int


def _app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/conflict")
    async def conflict():
        raise Conflict("Already exists", code="duplicate", details={"id": "x"})

    @app.get("/http")
    async def http_error():
        raise HTTPException(status_code=401, detail="Authentication required")

    @app.post("/payload")
    async def payload(data: Payload):
        return data

    @app.get("/database")
    async def database():
        raise IntegrityError("INSERT ...", {}, DriverError("violates check constraint"))

    @app.get("/crash")
    async def crash():
        raise RuntimeError("secret internals")

    return app


class TestErrorHandlers(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(_app(), raise_server_exceptions=False)

    def test_app_error_envelope(self):
        response = self.client.get("/conflict")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json(), {"error": "Already exists", "code": "duplicate", "details": {"id": "x"}})

    def test_http_exception(self):
        response = self.client.get("/http")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Authentication required"})

    def test_unknown_route(self):
        response = self.client.get("/nope")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Resource not found", "code": "not_found"})

    def test_request_validation(self):
        response = self.client.post("/payload", json={"name": "x", "count": "many"})
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["error"], "Invalid request")
        self.assertEqual(body["details"][0]["field"], "count")

    def test_database_failure(self):
        response = self.client.get("/database")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "violates check constraint")

    def test_unhandled_error_hides_internals(self):
        response = self.client.get("/crash")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "Internal server error", "code": "internal_error"})


if __name__ == "__main__":
    unittest.main()
