import os
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

from app.core.config import settings
from app.email_main import app
from app.services.order_email import EmailDeliveryError


class EmailServiceAppTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app)
        self._token = settings.INTERNAL_SERVICE_TOKEN
        settings.INTERNAL_SERVICE_TOKEN = "token"

    def tearDown(self):
        settings.INTERNAL_SERVICE_TOKEN = self._token
        self.client.close()

    def test_rejects_wrong_token(self):
        response = self.client.post(
            "/internal/send",
            headers={"X-Internal-Token": "nope"},
            json={"email": "a@example.com", "subject": "s", "body": "b"},
        )
        self.assertEqual(response.status_code, 401)

    def test_forwards_to_smtp(self):
        with patch("app.email_main.send_email_via_smtp", return_value={"provider": "smtp", "sent": True}) as send:
            response = self.client.post(
                "/internal/send",
                headers={"X-Internal-Token": "token"},
                json={"email": "a@example.com", "subject": "s", "body": "b", "reply_to": "r@example.com"},
            )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "sent")
        self.assertEqual(send.call_args.kwargs["reply_to"], "r@example.com")

    def test_delivery_errors_are_502(self):
        with patch("app.email_main.send_email_via_smtp", side_effect=EmailDeliveryError("smtp down")):
            response = self.client.post(
                "/internal/send",
                headers={"X-Internal-Token": "token"},
                json={"email": "a@example.com", "subject": "s", "body": "b"},
            )
        self.assertEqual(response.status_code, 502)
