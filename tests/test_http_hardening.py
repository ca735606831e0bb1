import os
import unittest

from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

from app.main import app
from app.core.http_hardening import content_security_policy


class HttpHardeningTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app)

    def tearDown(self):
        self.client.close()

    def test_health_has_security_headers_and_request_id(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)

        self.assertEqual(response.headers.get("x-content-type-options"), "nosniff")
        self.assertEqual(response.headers.get("x-frame-options"), "DENY")
        self.assertEqual(response.headers.get("referrer-policy"), "no-referrer")
        self.assertEqual(response.headers.get("cache-control"), "no-store")

        request_id = response.headers.get("x-request-id")
        self.assertIsNotNone(request_id)
        self.assertRegex(str(request_id), r"^[A-Za-z0-9._-]{1,128}$")

    def test_valid_request_id_is_preserved(self):
        external_request_id = "release-check-2026_10_19"
        response = self.client.get("/health", headers={"X-Request-ID": external_request_id})
        self.assertEqual(response.headers.get("x-request-id"), external_request_id)

    def test_invalid_request_id_is_replaced(self):
        bad_request_id = "bad id with spaces"
        response = self.client.get("/health", headers={"X-Request-ID": bad_request_id})
        response_request_id = response.headers.get("x-request-id")
        self.assertNotEqual(response_request_id, bad_request_id)
        self.assertRegex(str(response_request_id), r"^[A-Za-z0-9._-]{1,128}$")

    def test_each_response_gets_a_fresh_script_nonce(self):
        first = self.client.get("/health").headers.get("content-security-policy")
        second = self.client.get("/health").headers.get("content-security-policy")
        self.assertIn("script-src 'self' 'nonce-", first)
        self.assertIn("frame-ancestors 'none'", first)
        self.assertNotEqual(first, second)

    def test_policy_embeds_given_nonce(self):
        self.assertIn("'nonce-abc123'", content_security_policy("abc123"))

    def test_error_response_keeps_security_headers_and_request_id(self):
        response = self.client.get("/api/ccf/v1/fields")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.headers.get("x-content-type-options"), "nosniff")
        self.assertTrue(bool(response.headers.get("x-request-id")))

    def test_email_health_endpoint_reports_status(self):
        response = self.client.get("/health/email")
        self.assertEqual(response.status_code, 200)
        self.assertIn(response.json()["status"], {"ok", "degraded", "error"})
