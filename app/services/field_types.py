"""Per-type behavior of checkout fields.

Every field type is one entry of ``FIELD_TYPES``. The entry owns how a
submitted value is validated, how it is sanitized before storage and which
template macro renders its control, so no other module branches on the type
string.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Callable

from pydantic import AnyUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

_TAG_BLOCK_RE = re.compile(r"<(script|style)[^>]*?>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"[\r\n\t ]+")
_INLINE_WS_RE = re.compile(r"[\t ]+")
_KEY_RE = re.compile(r"[^a-z0-9_\-]")
_EMAIL_RE = re.compile(r"^[A-Za-z0-9!#$%&'*+/=?^_`{|}~.\-]+@[A-Za-z0-9\-]+(?:\.[A-Za-z0-9\-]+)+$")
_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_URL_SCHEMES = {"http", "https", "ftp", "ftps"}
_URL_ADAPTER = TypeAdapter(AnyUrl)

FIELD_POSITIONS = {
    "after_billing": "After Billing Fields",
    "after_shipping": "After Shipping Fields",
    "before_payment": "Before Payment Methods",
}
DEFAULT_POSITION = "after_billing"
_TRUE_STRINGS = {"1", "true", "yes", "on"}


def as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def strip_tags(value: str) -> str:
    return _TAG_RE.sub("", _TAG_BLOCK_RE.sub("", value))


def sanitize_text(value: Any) -> str:
    if value is None:
        return ""
    return _WS_RE.sub(" ", strip_tags(str(value))).strip()


def sanitize_textarea(value: Any) -> str:
    if value is None:
        return ""
    text = strip_tags(str(value)).replace("\r\n", "\n").replace("\r", "\n")
    lines = [_INLINE_WS_RE.sub(" ", line).strip() for line in text.split("\n")]
    return "\n".join(lines).strip()


def sanitize_key(value: Any) -> str:
    return _KEY_RE.sub("", str(value or "").strip().lower())


def is_email(value: str) -> bool:
    return len(value) >= 6 and _EMAIL_RE.fullmatch(value) is not None


def is_url(value: str) -> bool:
    try:
        url = _URL_ADAPTER.validate_python(value)
    except PydanticValidationError:
        return False
    return url.scheme in _URL_SCHEMES and bool(url.host)


def is_number(value: str) -> bool:
    text = value.strip()
    return _NUMBER_RE.fullmatch(text) is not None and math.isfinite(float(text))


def _to_number(value: Any) -> float:
    return float(str(value).strip())


def _accept(field: dict, value: str, strict_select: bool) -> str | None:
    return None


def _check_email(field: dict, value: str, strict_select: bool) -> str | None:
    return None if is_email(value) else "{label} must be a valid email address."


def _check_url(field: dict, value: str, strict_select: bool) -> str | None:
    return None if is_url(value) else "{label} must be a valid URL."


def _check_number(field: dict, value: str, strict_select: bool) -> str | None:
    return None if is_number(value) else "{label} must be a valid number."


def _check_select(field: dict, value: str, strict_select: bool) -> str | None:
    if not strict_select:
        return None
    options = [str(option) for option in field.get("options") or []]
    if options and value not in options:
        return "{label} must be one of the available options."
    return None


@dataclass(frozen=True)
class FieldType:
    name: str
    label: str
    control: str
    sanitize: Callable[[Any], Any]
    check: Callable[[dict, str, bool], str | None] = _accept
    max_length: int | None = None

    @property
    def input_type(self) -> str:
        return self.name

    def validate(self, field: dict, value: str, *, strict_select: bool = False) -> list[str]:
        label = field.get("label") or field.get("id") or "Field"
        errors = []
        if self.max_length is not None and len(value) > self.max_length:
            errors.append(f"{label} must be at most {self.max_length} characters.")
        problem = self.check(field, value, strict_select)
        if problem:
            errors.append(problem.format(label=label))
        return errors


FIELD_TYPES: dict[str, FieldType] = {
    "text": FieldType("text", "Text Input", "input", sanitize_text, max_length=255),
    "textarea": FieldType("textarea", "Textarea", "textarea", sanitize_textarea, max_length=1000),
    "select": FieldType("select", "Select Dropdown", "select", sanitize_text, _check_select, max_length=255),
    "email": FieldType("email", "Email", "input", sanitize_text, _check_email, max_length=255),
    "tel": FieldType("tel", "Phone", "input", sanitize_text, max_length=20),
    "number": FieldType("number", "Number", "input", _to_number, _check_number),
    "url": FieldType("url", "URL", "input", sanitize_text, _check_url, max_length=255),
}


def get_field_type(name: str | None) -> FieldType:
    return FIELD_TYPES.get(str(name or ""), FIELD_TYPES["text"])
