from tests.base import *  # noqa: F401,F403

from app.services.checkout_renderer import CheckoutRenderer


class CheckoutRendererTests(CheckoutFieldsTestCase):
    def setUp(self):
        super().setUp()
        self.db = self.SessionLocal()
        self.registry = FieldRegistry(self.db)
        self.renderer = CheckoutRenderer(self.registry)

    def tearDown(self):
        self.db.close()
        super().tearDown()

    def test_legacy_field_renders_when_nothing_is_configured(self):
        html = str(self.renderer.render_classic_section("after_billing"))
        self.assertIn('class="ccf-custom-fields ccf-position-after_billing"', html)
        self.assertIn('id="ccf_field"', html)
        self.assertIn('placeholder="Enter Extra Information"', html)
        self.assertEqual(str(self.renderer.render_classic_section("after_shipping")), "")

    def test_fields_are_grouped_by_position(self):
        self.registry.replace_fields([dict(DIETARY_FIELD), dict(NOTES_FIELD)])
        sections = self.renderer.render_classic_sections()
        self.assertEqual(set(sections), {"after_billing", "after_shipping", "before_payment"})
        self.assertIn('name="dietary"', str(sections["after_billing"]))
        self.assertNotIn('name="delivery_notes"', str(sections["after_billing"]))
        self.assertIn("<textarea", str(sections["after_shipping"]))
        self.assertEqual(str(sections["before_payment"]), "")

    def test_required_marker_and_prefill_are_escaped(self):
        self.registry.create_field(dict(DIETARY_FIELD))
        html = str(self.renderer.render_classic_section("after_billing", {"dietary": '"><script>alert(1)</script>'}))
        self.assertIn('<abbr class="required" title="required">*</abbr>', html)
        self.assertNotIn("<script>", html)
        self.assertIn("&lt;script&gt;", html)

    def test_select_markup_marks_submitted_option(self):
        self.registry.create_field({"id": "size", "label": "Size", "type": "select", "options": ["S", "M"]})
        html = str(self.renderer.field_markup(self.registry.get_field("size"), "M"))
        self.assertIn('<option value="">Select...</option>', html)
        self.assertIn('<option value="M" selected>M</option>', html)
        self.assertIn('<option value="S">S</option>', html)

    def test_number_input_accepts_decimals(self):
        self.registry.create_field({"id": "guests", "label": "Guests", "type": "number"})
        html = str(self.renderer.field_markup(self.registry.get_field("guests")))
        self.assertIn('type="number"', html)
        self.assertIn('step="any"', html)

    def test_client_payload_carries_the_same_markup(self):
        self.registry.replace_fields(
            [dict(DIETARY_FIELD), {"id": "size", "label": "Size", "type": "select", "options": ["S", "M"]}]
        )
        payload = self.renderer.client_payload()
        self.assertEqual([item["id"] for item in payload], ["dietary", "size"])
        self.assertNotIn("options", payload[0])
        self.assertEqual(payload[1]["options"], ["S", "M"])
        self.assertEqual(payload[0]["html"], str(self.renderer.field_markup(self.registry.get_field("dietary"))))
        self.assertTrue(payload[0]["required"])

    def test_client_contract(self):
        contract = self.renderer.client_contract()
        self.assertEqual(contract["submitPath"], settings.CHECKOUT_SUBMIT_PATH)
        self.assertEqual(contract["retryDelays"], [500, 1500, 3000])
        self.assertEqual(contract["installFlag"], "ccfInterceptionSetup")
        self.assertEqual(contract["formSelector"], ".wc-block-checkout__form")

    def test_client_bootstrap_uses_nonce(self):
        self.registry.create_field(dict(DIETARY_FIELD))
        html = str(self.renderer.render_client_bootstrap("n0nce"))
        self.assertIn('<script nonce="n0nce">', html)
        self.assertIn("window.ccfBlockFields = ", html)
        self.assertIn("window.ccfBlockContract = ", html)
        self.assertIn('src="/static/checkout_agent.js"', html)

    def test_client_bootstrap_is_empty_without_fields(self):
        self.registry.set_legacy_label("")
        self.assertEqual(str(self.renderer.render_client_bootstrap("n0nce")), "")
