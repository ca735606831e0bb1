from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.models.order_field_value import OrderFieldValue
from app.services.audit import append_audit
from app.services.field_types import (
    DEFAULT_POSITION,
    FIELD_POSITIONS,
    FIELD_TYPES,
    as_bool,
    sanitize_key,
    sanitize_text,
)
from app.services.options import OptionStore

FIELDS_OPTION = "ccf_fields"
LEGACY_LABEL_OPTION = "ccf_label"
LEGACY_FIELD_ID = "ccf_field"
AUDIT_ENTITY = "checkout_field"

_LOG = logging.getLogger("app.fields")


def _clean_options(raw: Any) -> list[str]:
    if not isinstance(raw, (list, tuple)):
        return []
    cleaned = [sanitize_text(item) for item in raw]
    return [item for item in cleaned if item]


class FieldRegistry:
    """Checkout field schema: the admin-configured list plus the legacy fallback.

    The list lives in a single option and every write replaces it whole, so
    concurrent admin saves resolve as last-write-wins.
    """

    def __init__(self, db: Session, options: OptionStore | None = None):
        self.db = db
        self.options = options or OptionStore(db)

    # reads

    def list_fields(self) -> list[dict[str, Any]]:
        raw = self.options.get(FIELDS_OPTION, [])
        if not isinstance(raw, list):
            return []
        return [field for field in raw if isinstance(field, dict)]

    def get_field(self, field_id: str) -> dict[str, Any]:
        for field in self.list_fields():
            if field.get("id") == field_id:
                return field
        raise NotFoundError(f"Field '{field_id}' not found")

    def enabled_for_render(self) -> list[dict[str, Any]]:
        enabled = [
            field
            for field in self.list_fields()
            if as_bool(field.get("enabled")) and str(field.get("id") or "").strip()
        ]
        if enabled:
            return enabled
        legacy = self.legacy_field()
        return [legacy] if legacy else []

    def legacy_label(self) -> str:
        raw = self.options.get(LEGACY_LABEL_OPTION)
        if raw is None:
            raw = settings.LEGACY_FIELD_LABEL
        return sanitize_text(raw)

    def legacy_field(self) -> dict[str, Any] | None:
        label = self.legacy_label()
        if not label:
            return None
        return {
            "id": LEGACY_FIELD_ID,
            "label": label,
            "type": "text",
            "required": False,
            "enabled": True,
            "placeholder": f"Enter {label}",
            "position": DEFAULT_POSITION,
        }

    def field_types(self) -> dict[str, str]:
        return {name: field_type.label for name, field_type in FIELD_TYPES.items()}

    def field_positions(self) -> dict[str, str]:
        return dict(FIELD_POSITIONS)

    # validation

    def validate_field(self, field: Any, *, taken_ids: set[str]) -> list[str]:
        if not isinstance(field, dict):
            return ["Field definition must be an object"]
        errors: list[str] = []

        field_id = sanitize_key(field.get("id"))
        if not field_id:
            errors.append("Field ID is required")
        elif field_id == LEGACY_FIELD_ID:
            errors.append(f"Field ID '{LEGACY_FIELD_ID}' is reserved for the legacy field")
        elif field_id in taken_ids:
            errors.append(f"Field ID '{field_id}' is already in use")

        if not sanitize_text(field.get("label")):
            errors.append("Field label is required")

        field_type = field.get("type")
        if not field_type:
            errors.append("Field type is required")
        elif not isinstance(field_type, str) or field_type not in FIELD_TYPES:
            errors.append(f"Invalid field type '{sanitize_text(field_type)}'")

        position = field.get("position")
        if position and (not isinstance(position, str) or position not in FIELD_POSITIONS):
            errors.append(f"Invalid field position '{sanitize_text(position)}'")

        if field_type == "select" and not _clean_options(field.get("options")):
            errors.append("Select fields require at least one option")
        return errors

    def sanitize_field(self, field: dict[str, Any]) -> dict[str, Any]:
        field_type = field.get("type")
        if not isinstance(field_type, str) or field_type not in FIELD_TYPES:
            field_type = "text"
        position = field.get("position")
        if not isinstance(position, str) or position not in FIELD_POSITIONS:
            position = DEFAULT_POSITION
        sanitized = {
            "id": sanitize_key(field.get("id")),
            "label": sanitize_text(field.get("label")),
            "type": field_type,
            "required": as_bool(field.get("required")),
            "enabled": as_bool(field.get("enabled", True)),
            "placeholder": sanitize_text(field.get("placeholder")),
            "position": position,
        }
        if field_type == "select":
            sanitized["options"] = _clean_options(field.get("options"))
        return sanitized

    # writes

    def create_field(self, field: Any, *, actor: str | None = None) -> dict[str, Any]:
        fields = self.list_fields()
        errors = self.validate_field(field, taken_ids={str(item.get("id")) for item in fields})
        if errors:
            raise ValidationError(errors)
        clean = self.sanitize_field(field)
        fields.append(clean)
        self._store(fields, actor, clean["id"], "CREATE", {"after": clean})
        return clean

    def update_field(self, field_id: str, field: Any, *, actor: str | None = None) -> dict[str, Any]:
        fields = self.list_fields()
        index = next((i for i, item in enumerate(fields) if item.get("id") == field_id), None)
        if index is None:
            raise NotFoundError(f"Field '{field_id}' not found")
        if isinstance(field, dict) and not field.get("id"):
            field = {**field, "id": field_id}

        taken = {str(item.get("id")) for i, item in enumerate(fields) if i != index}
        errors = self.validate_field(field, taken_ids=taken)
        if isinstance(field, dict):
            new_id = sanitize_key(field.get("id"))
            if new_id and new_id != field_id and self._is_referenced(field_id):
                errors.append(f"Field ID '{field_id}' is used by existing orders and cannot be changed")
        if errors:
            raise ValidationError(errors)

        before = fields[index]
        clean = self.sanitize_field(field)
        fields[index] = clean
        self._store(fields, actor, field_id, "UPDATE", {"before": before, "after": clean})
        return clean

    def replace_fields(self, fields: Any, *, actor: str | None = None) -> list[dict[str, Any]]:
        if not isinstance(fields, list):
            raise ValidationError(["fields must be a list"])
        errors: list[str] = []
        taken: set[str] = set()
        cleaned: list[dict[str, Any]] = []
        for position, field in enumerate(fields, start=1):
            problems = self.validate_field(field, taken_ids=taken)
            if problems:
                errors.extend(f"Field {position}: {problem}" for problem in problems)
                continue
            clean = self.sanitize_field(field)
            taken.add(clean["id"])
            cleaned.append(clean)
        if errors:
            raise ValidationError(errors)
        self._store(cleaned, actor, "*", "REPLACE", {"ids": [item["id"] for item in cleaned]})
        return cleaned

    def delete_field(self, field_id: str, *, actor: str | None = None) -> dict[str, Any]:
        fields = self.list_fields()
        remaining = [item for item in fields if item.get("id") != field_id]
        if len(remaining) == len(fields):
            raise NotFoundError(f"Field '{field_id}' not found")
        removed = next(item for item in fields if item.get("id") == field_id)
        # Stored order values keep their own snapshot and are left untouched.
        self._store(remaining, actor, field_id, "DELETE", {"before": removed})
        return removed

    def set_legacy_label(self, label: Any, *, actor: str | None = None) -> str:
        before = self.legacy_label()
        clean = sanitize_text(label)
        self.options.set(LEGACY_LABEL_OPTION, clean, commit=False)
        append_audit(self.db, actor, AUDIT_ENTITY, LEGACY_FIELD_ID, "UPDATE", {"before": before, "after": clean})
        self.options.commit()
        return clean

    def generate_unique_id(self, base: str = LEGACY_FIELD_ID) -> str:
        base_id = sanitize_key(base) or LEGACY_FIELD_ID
        existing = {str(item.get("id")) for item in self.list_fields()}
        existing.add(LEGACY_FIELD_ID)
        candidate = base_id
        counter = 1
        while candidate in existing:
            candidate = f"{base_id}_{counter}"
            counter += 1
        return candidate

    def _is_referenced(self, field_id: str) -> bool:
        row = self.db.query(OrderFieldValue.id).filter(OrderFieldValue.field_id == field_id).first()
        return row is not None

    def _store(self, fields: list[dict[str, Any]], actor: str | None, entity_id: str, action: str, diff: dict) -> None:
        self.options.set(FIELDS_OPTION, fields, commit=False)
        append_audit(self.db, actor, AUDIT_ENTITY, entity_id, action, diff)
        self.options.commit()
        _LOG.info("checkout fields %s id=%s count=%s actor=%s", action.lower(), entity_id, len(fields), actor or "-")
