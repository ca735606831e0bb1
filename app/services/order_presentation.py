from __future__ import annotations

from typing import Any

from jinja2 import Environment
from markupsafe import Markup, escape

from app.core.templating import templates
from app.services.field_types import is_email, is_url
from app.services.order_fields import OrderFieldStore

SURFACES = ("admin", "email", "account")
SECTION_HEADING = "Custom Information"
PRIORITY_LABEL = "Priority"


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class OrderFieldPresenter:
    """Read-only views of an order's custom fields for admin, email and account pages."""

    def __init__(self, store: OrderFieldStore, env: Environment = templates):
        self.store = store
        self.env = env

    def get(self, order_id: int) -> list[dict[str, Any]]:
        return [
            {"label": record["label"] or record["id"], "value": record["value"], "type": record["type"] or "text"}
            for record in self.store.get(order_id)
        ]

    @staticmethod
    def format_value_html(value: Any, field_type: str) -> Markup:
        text = _as_text(value)
        if field_type == "email" and is_email(text):
            return Markup('<a href="mailto:{0}">{0}</a>').format(text)
        if field_type == "tel":
            return Markup('<a href="tel:{0}">{0}</a>').format(text)
        if field_type == "url" and is_url(text):
            return Markup('<a href="{0}" target="_blank" rel="noopener noreferrer">{0}</a>').format(text)
        if field_type == "textarea":
            return Markup("<br>\n").join(escape(line) for line in text.split("\n"))
        return escape(text)

    @staticmethod
    def format_value_text(value: Any, field_type: str) -> str:
        text = _as_text(value)
        if field_type == "textarea":
            return " ".join(line.strip() for line in text.split("\n") if line.strip())
        return text

    def render(self, order_id: int, surface: str = "account", *, plain_text: bool = False) -> str:
        if surface not in SURFACES:
            raise ValueError(f"Unknown surface '{surface}'")
        rows = [
            {
                "label": item["label"],
                "html": self.format_value_html(item["value"], item["type"]),
                "text": self.format_value_text(item["value"], item["type"]),
            }
            for item in self.get(order_id)
        ]
        if not rows:
            return ""
        name = "orders/custom_fields.txt" if plain_text else "orders/custom_fields.html"
        return self.env.get_template(name).render(rows=rows, surface=surface, heading=SECTION_HEADING)

    def reply_to(self, order_id: int) -> str | None:
        for item in self.get(order_id):
            if item["type"] == "email" and is_email(_as_text(item["value"])):
                return _as_text(item["value"])
        return None

    def subject_prefix(self, order_id: int) -> str:
        for item in self.get(order_id):
            if item["label"] == PRIORITY_LABEL and _as_text(item["value"]).strip():
                return f"[{_as_text(item['value']).strip()}] "
        return ""
