from tests.base import *  # noqa: F401,F403


class AdminOrderMetaApiTests(CheckoutFieldsTestCase):
    def setUp(self):
        super().setUp()
        self._seed_fields(DIETARY_FIELD, NOTES_FIELD)
        self.order = self._create_order()
        self._save_values(self.order.id, {"dietary": "vegan", "delivery_notes": "Back door"})

    def test_shop_manager_can_read_order_meta(self):
        response = self.client.get(f"/api/ccf/v1/order-meta/{self.order.id}", headers=self._auth_headers("SHOP_MANAGER"))
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["order_id"], self.order.id)
        self.assertEqual([item["key"] for item in body["custom_fields"]], ["_dietary", "_delivery_notes"])
        self.assertEqual(body["custom_fields"][0]["value"], "vegan")

    def test_capability_is_required(self):
        response = self.client.get(f"/api/ccf/v1/order-meta/{self.order.id}", headers=self._auth_headers("CUSTOMER"))
        self.assertEqual(response.status_code, 403)
        response = self.client.get(
            f"/api/ccf/v1/order-meta/{self.order.id}",
            headers=self._auth_headers("CUSTOMER", caps=["edit_shop_orders"]),
        )
        self.assertEqual(response.status_code, 200)

    def test_unknown_order_is_404(self):
        response = self.client.get("/api/ccf/v1/order-meta/999999", headers=self._auth_headers("ADMIN"))
        self.assertEqual(response.status_code, 404)

    def test_update_changes_one_key_and_adds_a_note(self):
        headers = self._auth_headers("SHOP_MANAGER", email="manager@example.com")
        response = self.client.post(
            f"/api/ccf/v1/order-meta/{self.order.id}",
            headers=headers,
            json={"fields": [{"key": "_dietary", "value": "vegetarian"}]},
        )
        self.assertEqual(response.status_code, 200)
        values = {item["key"]: item["value"] for item in response.json()["custom_fields"]}
        self.assertEqual(values, {"_dietary": "vegetarian", "_delivery_notes": "Back door"})

        with self.SessionLocal() as db:
            notes = db.query(OrderNote).all()
            self.assertEqual([note.note for note in notes], ["Custom fields updated: dietary"])
            self.assertEqual(notes[0].author, "manager@example.com")

    def test_update_validation_errors(self):
        response = self.client.post(
            f"/api/ccf/v1/order-meta/{self.order.id}",
            headers=self._auth_headers("ADMIN"),
            json={"fields": [{"key": "dietary", "value": "x"}]},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["errors"], ["Entry 1: invalid field key 'dietary'"])

    def test_delete_one_record(self):
        headers = self._auth_headers("ADMIN")
        response = self.client.delete(f"/api/ccf/v1/order-meta/{self.order.id}/_delivery_notes", headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"order_id": self.order.id, "deleted": "_delivery_notes"})

        remaining = self.client.get(f"/api/ccf/v1/order-meta/{self.order.id}", headers=headers).json()["custom_fields"]
        self.assertEqual([item["key"] for item in remaining], ["_dietary"])

        again = self.client.delete(f"/api/ccf/v1/order-meta/{self.order.id}/_delivery_notes", headers=headers)
        self.assertEqual(again.status_code, 404)

    def test_display_projection(self):
        response = self.client.get(f"/api/ccf/v1/order-meta/{self.order.id}/display", headers=self._auth_headers("ADMIN"))
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["rows"][0], {"label": "Dietary Requirements", "value": "vegan", "type": "text"})
        self.assertIn('class="ccf-admin-order-fields"', body["html"])
        self.assertIn("Delivery Notes: Back door", body["text"])
