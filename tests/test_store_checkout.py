from tests.base import *  # noqa: F401,F403

from app.models.order import ORDER_STATUS_PROCESSING

STORE_PATH = "/api/public/store/checkout"


def _payload(**fields):
    return {
        "billing_address": {"first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.com"},
        "payment_method": "cod",
        **fields,
    }


class StoreCheckoutTests(CheckoutFieldsTestCase):
    def setUp(self):
        super().setUp()
        self._seed_fields(DIETARY_FIELD, {"id": "guests", "label": "Guests", "type": "number"})

    def test_merged_values_are_saved_with_the_order(self):
        response = self.client.post(STORE_PATH, json=_payload(dietary="vegan", guests="4"))
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], ORDER_STATUS_PROCESSING)
        self.assertEqual(
            [(item["key"], item["value"]) for item in body["custom_fields"]],
            [("_dietary", "vegan"), ("_guests", 4.0)],
        )

        with self.SessionLocal() as db:
            order = db.get(Order, body["order_id"])
            self.assertEqual(order.checkout_surface, "block")
            self.assertEqual(order.customer_email, "ada@example.com")

    def test_missing_required_value_rejects_whole_order(self):
        response = self.client.post(STORE_PATH, json=_payload(guests="4"))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["errors"], ["Dietary Requirements is a required field."])

        with self.SessionLocal() as db:
            self.assertEqual(db.query(Order).count(), 0)
            self.assertEqual(db.query(OrderFieldValue).count(), 0)

    def test_type_violation_is_reported(self):
        response = self.client.post(STORE_PATH, json=_payload(dietary="vegan", guests="12.5abc"))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["errors"], ["Guests must be a valid number."])

    def test_nested_values_are_rejected(self):
        response = self.client.post(STORE_PATH, json=_payload(dietary={"value": "vegan"}))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["errors"], ["Dietary Requirements has an invalid value."])

    def test_billing_email_is_required(self):
        payload = _payload(dietary="vegan")
        payload["billing_address"]["email"] = ""
        response = self.client.post(STORE_PATH, json=payload)
        self.assertEqual(response.status_code, 400)

    def test_billing_and_field_errors_are_reported_together(self):
        response = self.client.post(STORE_PATH, json={"billing_address": {}})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json()["errors"],
            ["Please provide a valid email address.", "Dietary Requirements is a required field."],
        )
        with self.SessionLocal() as db:
            self.assertEqual(db.query(Order).count(), 0)

    def test_customer_account_view_requires_order_key(self):
        placed = self.client.post(STORE_PATH, json=_payload(dietary="vegan")).json()
        url = f"/api/public/orders/{placed['order_id']}/custom-fields"

        self.assertEqual(self.client.get(url, params={"key": "wrong"}).status_code, 404)

        response = self.client.get(url, params={"key": placed["order_key"]})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["custom_fields"], [{"label": "Dietary Requirements", "value": "vegan", "type": "text"}])
        self.assertIn("woocommerce-table--custom-fields", body["html"])

    def test_rate_limit(self):
        with patch("app.services.rate_limit.settings.CHECKOUT_RATE_LIMIT", 1):
            self.assertEqual(self.client.post(STORE_PATH, json=_payload(dietary="vegan")).status_code, 200)
            limited = self.client.post(STORE_PATH, json=_payload(dietary="vegan"))
        self.assertEqual(limited.status_code, 429)
        self.assertIn("Too many checkout attempts", limited.json()["detail"])

    def test_order_email_is_queued_when_enabled(self):
        with (
            patch("app.workers.tasks.emails.settings.ORDER_EMAIL_ON_CHECKOUT", True),
            patch("app.workers.tasks.emails.send_order_email_task") as task,
        ):
            response = self.client.post(STORE_PATH, json=_payload(dietary="vegan"))
        self.assertEqual(response.status_code, 200)
        task.delay.assert_called_once_with(response.json()["order_id"])
