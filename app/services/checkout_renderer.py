from __future__ import annotations

from typing import Any, Mapping

from jinja2 import Environment
from markupsafe import Markup

from app.core.config import settings
from app.core.templating import templates
from app.services.field_registry import FieldRegistry
from app.services.field_types import FIELD_POSITIONS, get_field_type

CLIENT_FORM_SELECTOR = ".wc-block-checkout__form"
CLIENT_BILLING_SELECTOR = ".wc-block-checkout__billing-fields"
CLIENT_CONTAINER_CLASS = "ccf-custom-fields-container"
CLIENT_FIELD_WRAPPER_CLASS = "ccf-field-wrapper"
CLIENT_INSTALL_FLAG = "ccfInterceptionSetup"
AGENT_SRC = "/static/checkout_agent.js"

_CLIENT_KEYS = ("id", "label", "type", "required", "placeholder", "position")


def _prefill(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


class CheckoutRenderer:
    """Turns ``FieldRegistry.enabled_for_render()`` into output for both checkout surfaces.

    The classic surface gets server-rendered controls grouped by position. The
    client-rendered surface cannot be injected into server-side, so it gets the
    same controls serialized as data together with the contract the browser
    agent follows to insert them and merge their values into the submission.
    """

    def __init__(self, registry: FieldRegistry, env: Environment = templates):
        self.registry = registry
        self.env = env

    def field_markup(self, field: dict[str, Any], value: Any = None) -> Markup:
        macros = self.env.get_template("fields/_macros.html").module
        control = get_field_type(field.get("type")).control
        return Markup(macros.field_row(field, _prefill(value), control))

    def render_classic_section(
        self,
        position: str,
        values: Mapping[str, Any] | None = None,
        *,
        fields: list[dict[str, Any]] | None = None,
    ) -> Markup:
        if fields is None:
            fields = self.registry.enabled_for_render()
        values = values or {}
        items = [
            {
                "field": field,
                "value": _prefill(values.get(field["id"])),
                "control": get_field_type(field.get("type")).control,
            }
            for field in fields
            if field.get("position", "after_billing") == position
        ]
        if not items:
            return Markup("")
        template = self.env.get_template("checkout/classic_section.html")
        return Markup(template.render(position=position, items=items))

    def render_classic_sections(self, values: Mapping[str, Any] | None = None) -> dict[str, Markup]:
        fields = self.registry.enabled_for_render()
        return {position: self.render_classic_section(position, values, fields=fields) for position in FIELD_POSITIONS}

    def client_payload(self) -> list[dict[str, Any]]:
        payload = []
        for field in self.registry.enabled_for_render():
            item = {key: field.get(key) for key in _CLIENT_KEYS}
            if field.get("type") == "select":
                item["options"] = list(field.get("options") or [])
            item["html"] = str(self.field_markup(field))
            payload.append(item)
        return payload

    def client_contract(self) -> dict[str, Any]:
        return {
            "formSelector": CLIENT_FORM_SELECTOR,
            "billingSelector": CLIENT_BILLING_SELECTOR,
            "containerClass": CLIENT_CONTAINER_CLASS,
            "fieldWrapperClass": CLIENT_FIELD_WRAPPER_CLASS,
            "submitPath": settings.CHECKOUT_SUBMIT_PATH,
            "retryDelays": settings.agent_retry_delays,
            "installFlag": CLIENT_INSTALL_FLAG,
        }

    def render_client_bootstrap(self, nonce: str, agent_src: str = AGENT_SRC) -> Markup:
        fields = self.client_payload()
        if not fields:
            return Markup("")
        template = self.env.get_template("checkout/client_bootstrap.html")
        return Markup(
            template.render(nonce=nonce, fields=fields, contract=self.client_contract(), agent_src=agent_src)
        )
