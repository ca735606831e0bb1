from __future__ import annotations

from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.services.field_registry import FieldRegistry

SAMPLE_FIELDS = [
    {
        "id": "dietary",
        "label": "Dietary requirements",
        "type": "select",
        "required": False,
        "options": ["None", "Vegetarian", "Vegan", "Gluten free"],
        "position": "after_billing",
    },
    {
        "id": "delivery_instructions",
        "label": "Delivery instructions",
        "type": "textarea",
        "placeholder": "Gate code, preferred drop-off spot...",
        "position": "after_shipping",
    },
    {
        "id": "gift_recipient_email",
        "label": "Gift recipient email",
        "type": "email",
        "position": "before_payment",
    },
]


def upsert_fields(db: Session, fields: list[dict], *, actor: str = "seed") -> tuple[int, int]:
    registry = FieldRegistry(db)
    existing = {str(item.get("id")) for item in registry.list_fields()}
    created = 0
    updated = 0
    for item in fields:
        if item["id"] in existing:
            registry.update_field(item["id"], item, actor=actor)
            updated += 1
        else:
            registry.create_field(item, actor=actor)
            created += 1
    return created, updated


def main() -> None:
    db = SessionLocal()
    try:
        created, updated = upsert_fields(db, SAMPLE_FIELDS)
        print(f"Checkout fields upsert complete: created={created}, updated={updated}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
