import secrets

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column
from app.db.session import Base
from app.models.common import SerialIdMixin, TimestampMixin

ORDER_STATUS_DRAFT = "checkout-draft"
ORDER_STATUS_PROCESSING = "processing"


def new_order_key() -> str:
    return f"wc_order_{secrets.token_urlsafe(12)}"


class Order(Base, SerialIdMixin, TimestampMixin):
    __tablename__ = "orders"
    order_key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True, default=new_order_key)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default=ORDER_STATUS_DRAFT, index=True)
    checkout_surface: Mapped[str] = mapped_column(String(20), nullable=False, default="classic")
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    billing: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
