from __future__ import annotations

import logging
import re
from typing import Any, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import NotFoundError, PersistenceError, ValidationError
from app.models.order import Order
from app.models.order_field_value import OrderFieldValue
from app.models.order_note import OrderNote
from app.services.audit import SYSTEM_ACTOR
from app.services.field_registry import LEGACY_FIELD_ID, FieldRegistry
from app.services.field_types import as_bool, get_field_type, sanitize_text

LEGACY_META_KEY = f"_{LEGACY_FIELD_ID}"
_META_KEY_RE = re.compile(r"^_[a-z0-9_\-]+$")
_LOG = logging.getLogger("app.checkout")


def meta_key_for(field_id: str) -> str:
    return f"_{field_id}"


def humanize_meta_key(key: str) -> str:
    return key.replace("_ccf_", "").replace("_", " ").strip()


def _is_missing_value(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def _is_empty_stored(value) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def _record(row: OrderFieldValue) -> dict[str, Any]:
    return {
        "id": row.field_id,
        "key": row.meta_key,
        "value": row.value,
        "label": row.label,
        "type": row.type,
        "config": row.config,
    }


class OrderFieldStore:
    """Per-order custom field values.

    Values are written with a snapshot of the definition they were submitted
    against, so renaming or deleting a field later never changes what an
    existing order shows.
    """

    def __init__(self, db: Session, registry: FieldRegistry | None = None, *, strict_select: bool | None = None):
        self.db = db
        self.registry = registry or FieldRegistry(db)
        self.strict_select = settings.SELECT_STRICT_OPTIONS if strict_select is None else strict_select

    # submission paths

    def validate_submission(self, data: Any) -> list[str]:
        _, errors = self._collect(data)
        return errors

    def save_from_classic_submission(self, order_id: int, posted: Mapping[str, Any], *, commit: bool = True) -> list[dict[str, Any]]:
        order = self._order_or_404(order_id)
        accepted, errors = self._collect(posted)
        if errors:
            raise ValidationError(errors)
        for field, value in accepted:
            self._put(order, field, value)
        self._finish(commit)
        _LOG.info("classic checkout fields saved order=%s count=%s", order.id, len(accepted))
        return [{"id": field["id"], "value": value} for field, value in accepted]

    def save_from_block_submission(self, order: Order, payload: Any, *, commit: bool = False) -> list[dict[str, Any]]:
        # The browser merge is best-effort; this is where required/type rules are enforced.
        if not isinstance(payload, Mapping):
            raise ValidationError(["Checkout payload must be a JSON object"])
        accepted, errors = self._collect(payload)
        if errors:
            _LOG.info("block checkout rejected order=%s errors=%s", order.id, len(errors))
            raise ValidationError(errors)
        for field, value in accepted:
            self._put(order, field, value)
        self._finish(commit)
        _LOG.info("block checkout fields saved order=%s count=%s", order.id, len(accepted))
        return [{"id": field["id"], "value": value} for field, value in accepted]

    # reads

    def get(self, order_id: int) -> list[dict[str, Any]]:
        order = self._order_or_404(order_id)
        rows = (
            self.db.query(OrderFieldValue)
            .filter(OrderFieldValue.order_id == order.id)
            .order_by(OrderFieldValue.id.asc())
            .all()
        )
        by_key = {row.meta_key: row for row in rows}
        ordered: list[OrderFieldValue] = []
        legacy = by_key.pop(LEGACY_META_KEY, None)
        if legacy is not None:
            ordered.append(legacy)
        for field in self.registry.list_fields():
            row = by_key.pop(meta_key_for(str(field.get("id"))), None)
            if row is not None:
                ordered.append(row)
        # Values whose definition was deleted since checkout.
        ordered.extend(row for row in rows if row.meta_key in by_key)
        return [_record(row) for row in ordered if not _is_empty_stored(row.value)]

    def has_custom_fields(self, order_id: int) -> bool:
        return bool(self.get(order_id))

    # admin corrections

    def update(self, order_id: int, items: Any, *, actor: str | None = None) -> list[dict[str, Any]]:
        order = self._order_or_404(order_id)
        if not isinstance(items, list):
            raise ValidationError(["fields must be a list"])
        errors: list[str] = []
        for position, item in enumerate(items, start=1):
            if not isinstance(item, Mapping):
                errors.append(f"Entry {position}: must be an object with key and value")
                continue
            key = str(item.get("key") or "")
            if not _META_KEY_RE.fullmatch(key):
                errors.append(f"Entry {position}: invalid field key '{sanitize_text(key)}'")
            if item.get("value") is None:
                errors.append(f"Entry {position}: value is required")
        if errors:
            raise ValidationError(errors)

        updated: list[dict[str, Any]] = []
        # A key repeated in one call keeps its last value.
        latest = {str(item["key"]): item["value"] for item in items}
        for key, raw in latest.items():
            value = sanitize_text(raw)
            row = self._row(order.id, key)
            if row is None:
                definition = self._definition_for_key(key)
                row = OrderFieldValue(
                    order_id=order.id,
                    meta_key=key,
                    field_id=definition["id"],
                    label=definition["label"],
                    type=definition.get("type") or "text",
                    config=definition,
                )
            row.value = value
            self.db.add(row)
            updated.append({"key": key, "value": value})

        if updated:
            names = ", ".join(humanize_meta_key(entry["key"]) for entry in updated)
            self._note(order, f"Custom fields updated: {names}", actor)
        self._finish(True)
        return updated

    def delete(self, order_id: int, key: str, *, actor: str | None = None) -> None:
        order = self._order_or_404(order_id)
        row = self._row(order.id, key)
        if row is None:
            raise NotFoundError(f"Field '{key}' not found on order {order.id}")
        self.db.delete(row)
        self._note(order, f"Custom field '{humanize_meta_key(key)}' removed", actor)
        self._finish(True)

    # helpers

    def _collect(self, data: Any) -> tuple[list[tuple[dict[str, Any], Any]], list[str]]:
        if not isinstance(data, Mapping):
            data = {}
        accepted: list[tuple[dict[str, Any], Any]] = []
        errors: list[str] = []
        for field in self.registry.enabled_for_render():
            label = field.get("label") or field["id"]
            required = as_bool(field.get("required"))
            raw = data.get(field["id"])
            if _is_missing_value(raw):
                if required:
                    errors.append(f"{label} is a required field.")
                continue
            if isinstance(raw, (dict, list, tuple, set)):
                errors.append(f"{label} has an invalid value.")
                continue
            text = str(raw).strip()
            field_type = get_field_type(field.get("type"))
            problems = field_type.validate(field, text, strict_select=self.strict_select)
            if problems:
                errors.extend(problems)
                continue
            value = field_type.sanitize(text)
            if _is_empty_stored(value):
                if required:
                    errors.append(f"{label} is a required field.")
                continue
            accepted.append((field, value))
        return accepted, errors

    def _put(self, order: Order, field: dict[str, Any], value: Any) -> None:
        key = meta_key_for(field["id"])
        row = self._row(order.id, key)
        if row is None:
            row = OrderFieldValue(order_id=order.id, meta_key=key, field_id=field["id"])
        row.value = value
        row.label = field.get("label") or field["id"]
        row.type = field.get("type") or "text"
        row.config = dict(field)
        self.db.add(row)

    def _row(self, order_id: int, key: str) -> OrderFieldValue | None:
        return (
            self.db.query(OrderFieldValue)
            .filter(OrderFieldValue.order_id == order_id, OrderFieldValue.meta_key == key)
            .first()
        )

    def _definition_for_key(self, key: str) -> dict[str, Any]:
        field_id = key[1:]
        if field_id == LEGACY_FIELD_ID:
            legacy = self.registry.legacy_field()
            if legacy:
                return legacy
        for field in self.registry.list_fields():
            if field.get("id") == field_id:
                return dict(field)
        return {"id": field_id, "label": humanize_meta_key(key) or field_id, "type": "text"}

    def _note(self, order: Order, text: str, actor: str | None) -> None:
        self.db.add(OrderNote(order_id=order.id, note=text, author=actor or SYSTEM_ACTOR))

    def _order_or_404(self, order_id: int) -> Order:
        order = self.db.get(Order, order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    def _finish(self, commit: bool) -> None:
        try:
            if commit:
                self.db.commit()
            else:
                self.db.flush()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Order field write failed: {exc.__class__.__name__}") from exc
