from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.deps import get_order_field_store
from app.core.errors import CheckoutFieldsError, PersistenceError, ValidationError
from app.db.session import get_db
from app.models.order import ORDER_STATUS_DRAFT, ORDER_STATUS_PROCESSING, Order, new_order_key
from app.schemas.public import StoreCheckoutIn
from app.services.field_types import is_email, sanitize_text
from app.services.order_fields import OrderFieldStore
from app.services.rate_limit import checkout_rate_limit_or_raise, client_ip
from app.workers.tasks.emails import dispatch_order_email

router = APIRouter()
_LOG = logging.getLogger("app.checkout")


def _billing(payload: StoreCheckoutIn) -> dict:
    return {str(key): sanitize_text(value) for key, value in payload.billing_address.items() if not isinstance(value, (dict, list))}


@router.post("/checkout")
def store_checkout(
    payload: StoreCheckoutIn,
    request: Request,
    db: Session = Depends(get_db),
    store: OrderFieldStore = Depends(get_order_field_store),
):
    checkout_rate_limit_or_raise(client_ip(request), "block")
    billing = _billing(payload)
    email = billing.get("email") or ""
    errors: list[str] = []
    if not email or not is_email(email):
        errors.append("Please provide a valid email address.")
    errors.extend(store.validate_submission(payload.model_dump()))
    if errors:
        raise ValidationError(errors)

    order = Order(
        order_key=new_order_key(),
        status=ORDER_STATUS_DRAFT,
        checkout_surface="block",
        customer_email=email,
        billing={**billing, "customer_note": sanitize_text(payload.customer_note)},
    )
    try:
        db.add(order)
        db.flush()
        saved = store.save_from_block_submission(order, payload.model_dump())
        order.status = ORDER_STATUS_PROCESSING
        db.commit()
    except CheckoutFieldsError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(f"Checkout failed: {exc.__class__.__name__}") from exc

    _LOG.info("store checkout placed order=%s fields=%s", order.id, len(saved))
    dispatch_order_email(order.id)
    return {
        "order_id": order.id,
        "order_key": order.order_key,
        "status": order.status,
        "custom_fields": store.get(order.id),
    }
