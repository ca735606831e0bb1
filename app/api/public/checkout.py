from __future__ import annotations

import logging
import secrets
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_checkout_renderer, get_order_field_store, get_presenter
from app.core.errors import NotFoundError, ValidationError
from app.core.http_hardening import csp_nonce
from app.core.templating import templates
from app.db.session import get_db
from app.models.order import ORDER_STATUS_PROCESSING, Order, new_order_key
from app.services.checkout_renderer import CheckoutRenderer
from app.services.field_types import is_email, sanitize_text, sanitize_textarea
from app.services.order_fields import OrderFieldStore
from app.services.order_presentation import OrderFieldPresenter
from app.services.rate_limit import checkout_rate_limit_or_raise, client_ip
from app.workers.tasks.emails import dispatch_order_email

router = APIRouter()
_LOG = logging.getLogger("app.checkout")

CHECKOUT_ACTION = "/checkout"


async def posted_form(request: Request) -> dict[str, Any]:
    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


def _billing_errors(posted: dict[str, Any]) -> list[str]:
    errors = []
    if not sanitize_text(posted.get("billing_first_name")):
        errors.append("Billing First name is a required field.")
    if not sanitize_text(posted.get("billing_last_name")):
        errors.append("Billing Last name is a required field.")
    email = sanitize_text(posted.get("billing_email"))
    if not email:
        errors.append("Billing Email address is a required field.")
    elif not is_email(email):
        errors.append("Billing Email address is not a valid email address.")
    return errors


def _page(renderer: CheckoutRenderer, *, values: dict[str, Any], notices: list[str], status_code: int = 200) -> HTMLResponse:
    html = templates.get_template("checkout/classic.html").render(
        store_name=settings.STORE_NAME,
        action=CHECKOUT_ACTION,
        notices=notices,
        values=values,
        sections=renderer.render_classic_sections(values),
    )
    return HTMLResponse(html, status_code=status_code)


@router.get("/checkout", response_class=HTMLResponse)
def classic_checkout(renderer: CheckoutRenderer = Depends(get_checkout_renderer)):
    return _page(renderer, values={}, notices=[])


@router.post("/checkout", response_class=HTMLResponse)
def place_classic_order(
    request: Request,
    posted: dict[str, Any] = Depends(posted_form),
    db: Session = Depends(get_db),
    renderer: CheckoutRenderer = Depends(get_checkout_renderer),
    store: OrderFieldStore = Depends(get_order_field_store),
):
    checkout_rate_limit_or_raise(client_ip(request), "classic")
    notices = _billing_errors(posted) + store.validate_submission(posted)
    if notices:
        _LOG.info("classic checkout rejected errors=%s", len(notices))
        return _page(renderer, values=posted, notices=notices, status_code=400)

    email = sanitize_text(posted.get("billing_email"))
    order = Order(
        order_key=new_order_key(),
        status=ORDER_STATUS_PROCESSING,
        checkout_surface="classic",
        customer_email=email,
        billing={
            "first_name": sanitize_text(posted.get("billing_first_name")),
            "last_name": sanitize_text(posted.get("billing_last_name")),
            "email": email,
            "order_comments": sanitize_textarea(posted.get("order_comments")),
        },
    )
    db.add(order)
    db.flush()
    try:
        store.save_from_classic_submission(order.id, posted)
    except ValidationError as exc:
        # Definitions changed between validation and save.
        db.rollback()
        return _page(renderer, values=posted, notices=exc.errors, status_code=400)
    dispatch_order_email(order.id)
    return RedirectResponse(f"/checkout/order-received/{order.id}?key={order.order_key}", status_code=303)


@router.get("/checkout/order-received/{order_id}", response_class=HTMLResponse)
def order_received(
    order_id: int,
    key: str = Query(...),
    db: Session = Depends(get_db),
    presenter: OrderFieldPresenter = Depends(get_presenter),
):
    order = db.get(Order, order_id)
    if order is None or not secrets.compare_digest(order.order_key.encode(), key.encode()):
        raise NotFoundError(f"Order {order_id} not found")
    html = templates.get_template("checkout/received.html").render(
        store_name=settings.STORE_NAME,
        order=order,
        custom_fields=presenter.render(order.id, "account"),
    )
    return HTMLResponse(html)


@router.get("/checkout/block", response_class=HTMLResponse)
def block_checkout(request: Request, renderer: CheckoutRenderer = Depends(get_checkout_renderer)):
    html = templates.get_template("checkout/block.html").render(
        store_name=settings.STORE_NAME,
        submit_path=settings.CHECKOUT_SUBMIT_PATH,
        bootstrap=renderer.render_client_bootstrap(csp_nonce(request)),
    )
    return HTMLResponse(html)


@router.get("/api/public/checkout/fields")
def checkout_fields(renderer: CheckoutRenderer = Depends(get_checkout_renderer)):
    return {"fields": renderer.client_payload(), "contract": renderer.client_contract()}
