from sqlalchemy import ForeignKey, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from app.db.session import Base
from app.models.common import SerialIdMixin, TimestampMixin

class OrderFieldValue(Base, SerialIdMixin, TimestampMixin):
    __tablename__ = "order_field_values"
    __table_args__ = (UniqueConstraint("order_id", "meta_key", name="uq_order_field_values_order_key"),)
    order_id: Mapped[int] = mapped_column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    meta_key: Mapped[str] = mapped_column(String(120), nullable=False)
    field_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    value: Mapped[str | float | None] = mapped_column(JSON, nullable=True)
    # Snapshot of the definition at submission time; schema edits never rewrite it.
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False, default="text")
    config: Mapped[dict | None] = mapped_column(JSON, nullable=True)
