from __future__ import annotations

import logging

from kombu.exceptions import OperationalError

from app.core.config import settings
from app.db.session import SessionLocal
from app.services.order_email import send_order_email
from app.workers.celery_app import celery_app

_LOG = logging.getLogger("app.checkout")


@celery_app.task(name="app.workers.tasks.emails.send_order_email_task")
def send_order_email_task(order_id: int, to: str | None = None):
    db = SessionLocal()
    try:
        return send_order_email(db, int(order_id), to)
    finally:
        db.close()


def dispatch_order_email(order_id: int) -> bool:
    """Queue the order notification once the order is committed."""
    if not settings.ORDER_EMAIL_ON_CHECKOUT:
        return False
    try:
        send_order_email_task.delay(order_id)
    except OperationalError as exc:
        _LOG.warning("order email not queued order=%s: %s", order_id, exc)
        return False
    return True
