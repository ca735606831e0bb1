from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from app.models.audit_log import AuditLog

SYSTEM_ACTOR = "system"


def resolve_actor(admin: dict | None) -> str:
    if not admin:
        return SYSTEM_ACTOR
    email = str(admin.get("email") or "").strip()
    return email or str(admin.get("sub") or "").strip() or SYSTEM_ACTOR


def append_audit(db: Session, actor: str | None, entity: str, entity_id: str, action: str, diff: dict[str, Any]) -> None:
    # Flushed together with the change it describes; callers own the commit.
    db.add(
        AuditLog(
            actor_subject=actor or SYSTEM_ACTOR,
            entity=entity,
            entity_id=str(entity_id),
            action=action,
            diff=diff,
        )
    )
