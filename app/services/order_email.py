from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Any

import httpx
from markupsafe import escape
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import NotFoundError
from app.models.order import Order
from app.services.order_fields import OrderFieldStore
from app.services.order_presentation import OrderFieldPresenter


class EmailDeliveryError(Exception):
    pass


logger = logging.getLogger("uvicorn.error")

_MOCK_PROVIDERS = {"", "dummy", "mock", "console"}
_SERVICE_PROVIDERS = {"service", "email_service"}
_SMTP_SETTINGS = ("SMTP_HOST", "SMTP_PORT", "SMTP_FROM")
_SERVICE_SETTINGS = ("EMAIL_SERVICE_URL", "INTERNAL_SERVICE_TOKEN")


def _normalize_email(value: str | None) -> str:
    return str(value or "").strip().lower()


def _provider() -> str:
    return str(settings.EMAIL_PROVIDER or "dummy").strip().lower()


def build_order_email(db: Session, order_id: int) -> dict[str, Any]:
    """Compose the order notification with the order's custom fields appended.

    The subject carries the "Priority" field value as a prefix and the first
    email-type field becomes the Reply-To address.
    """
    order = db.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    presenter = OrderFieldPresenter(OrderFieldStore(db))

    store_name = settings.STORE_NAME
    subject = f"{presenter.subject_prefix(order.id)}[{store_name}] Order #{order.id}"
    intro = f"Thank you for your order #{order.id} at {store_name}."
    fields_text = presenter.render(order.id, "email", plain_text=True)
    fields_html = presenter.render(order.id, "email")

    text = intro if not fields_text.strip() else f"{intro}\n\n{fields_text.strip()}\n"
    html = f"<p>{escape(intro)}</p>\n{fields_html}" if fields_html.strip() else f"<p>{escape(intro)}</p>"
    return {
        "to": order.customer_email,
        "subject": subject,
        "text": text,
        "html": html,
        "reply_to": presenter.reply_to(order.id),
    }


def _missing_settings(names: tuple[str, ...]) -> list[str]:
    return [name for name in names if not str(getattr(settings, name) or "").strip()]


def _mock_send(*, email: str, message: dict[str, Any]) -> dict[str, Any]:
    logger.warning(
        "[ORDER EMAIL MOCK] email=%s subject=%s reply_to=%s",
        email,
        message["subject"],
        message.get("reply_to") or "-",
    )
    return {"provider": "mock_email", "status": "accepted", "sent": False, "mocked": True}


def _compose(*, email: str, subject: str, body: str, html: str | None, reply_to: str | None) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = str(settings.SMTP_FROM).strip()
    msg["To"] = email
    msg["Subject"] = subject
    if reply_to:
        msg["Reply-To"] = reply_to
    msg.set_content(body)
    if html:
        msg.add_alternative(html, subtype="html")
    return msg


def _smtp_connection() -> smtplib.SMTP:
    host = str(settings.SMTP_HOST).strip()
    port = int(settings.SMTP_PORT)
    if settings.SMTP_USE_SSL:
        return smtplib.SMTP_SSL(host=host, port=port, timeout=15)
    return smtplib.SMTP(host=host, port=port, timeout=15)


def send_email_via_smtp(
    *, email: str, subject: str, body: str, html: str | None = None, reply_to: str | None = None
) -> dict[str, Any]:
    recipient = _normalize_email(email)
    if not recipient:
        raise EmailDeliveryError("Invalid email address")
    missing = _missing_settings(_SMTP_SETTINGS)
    if missing:
        raise EmailDeliveryError(f"{'/'.join(missing)} not configured")
    if settings.SMTP_USE_TLS and settings.SMTP_USE_SSL:
        raise EmailDeliveryError("SMTP_USE_TLS and SMTP_USE_SSL cannot both be enabled")

    msg = _compose(email=recipient, subject=subject, body=body, html=html, reply_to=reply_to)
    username = str(settings.SMTP_USER or "").strip()
    try:
        with _smtp_connection() as client:
            if settings.SMTP_USE_TLS:
                client.starttls()
            if username:
                client.login(username, str(settings.SMTP_PASSWORD or ""))
            client.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        raise EmailDeliveryError(f"Order email delivery failed: {exc}") from exc
    return {"provider": "smtp", "status": "accepted", "sent": True}


def _service_url(path: str) -> str:
    return f"{str(settings.EMAIL_SERVICE_URL).strip().rstrip('/')}{path}"


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json() if response.content else {}
    except ValueError:
        payload = {}
    if isinstance(payload, dict) and (payload.get("detail") or payload.get("error")):
        return str(payload.get("detail") or payload.get("error"))
    return response.text or str(response.status_code)


def _send_via_email_service(*, email: str, message: dict[str, Any]) -> dict[str, Any]:
    missing = _missing_settings(_SERVICE_SETTINGS)
    if missing:
        raise EmailDeliveryError(f"{'/'.join(missing)} not configured")
    try:
        with httpx.Client(timeout=15.0) as client:
            response = client.post(
                _service_url("/internal/send"),
                headers={"X-Internal-Token": str(settings.INTERNAL_SERVICE_TOKEN).strip()},
                json={
                    "email": email,
                    "subject": message["subject"],
                    "body": message["text"],
                    "html": message.get("html"),
                    "reply_to": message.get("reply_to"),
                },
            )
    except httpx.HTTPError as exc:
        raise EmailDeliveryError(f"email-service request failed: {exc}") from exc
    if response.status_code >= 400:
        raise EmailDeliveryError(f"email-service error: {_error_detail(response)}")
    return {"provider": "email-service", "status": "accepted", "sent": True}


def send_order_email(db: Session, order_id: int, to: str | None = None) -> dict[str, Any]:
    message = build_order_email(db, order_id)
    email = _normalize_email(to or message["to"])
    if not email:
        raise EmailDeliveryError(f"Order {order_id} has no recipient address")

    provider = _provider()
    if provider in _MOCK_PROVIDERS:
        return _mock_send(email=email, message=message)
    if provider in _SERVICE_PROVIDERS:
        return _send_via_email_service(email=email, message=message)
    if provider == "smtp":
        return send_email_via_smtp(
            email=email,
            subject=message["subject"],
            body=message["text"],
            html=message["html"],
            reply_to=message["reply_to"],
        )
    raise EmailDeliveryError(f"Unknown EMAIL_PROVIDER: {provider}")


def _ping_email_service() -> list[str]:
    try:
        with httpx.Client(timeout=5.0) as client:
            response = client.get(_service_url("/health"))
    except httpx.HTTPError as exc:
        return [f"email-service unavailable: {exc}"]
    if response.status_code >= 400:
        return [f"email-service unavailable: HTTP {response.status_code}"]
    return []


def _health(provider: str, mode: str, issues: list[str]) -> dict[str, Any]:
    return {
        "provider": provider,
        "status": "degraded" if issues else "ok",
        "mode": mode,
        "can_send": not issues,
        "issues": issues,
    }


def email_provider_health() -> dict[str, Any]:
    provider = _provider()
    if provider in _MOCK_PROVIDERS:
        return _health("dummy", "mock", [])
    if provider in _SERVICE_PROVIDERS:
        issues = [f"{name} is not configured" for name in _missing_settings(_SERVICE_SETTINGS)]
        return _health("email-service", "service", issues or _ping_email_service())
    if provider == "smtp":
        issues = [f"{name} is not configured" for name in _missing_settings(("SMTP_HOST", "SMTP_FROM"))]
        return _health("smtp", "real", issues)
    return {
        "provider": provider,
        "status": "error",
        "mode": "unknown",
        "can_send": False,
        "issues": [f"Unknown EMAIL_PROVIDER: {provider}"],
    }
