import secrets

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_presenter
from app.core.errors import NotFoundError
from app.db.session import get_db
from app.models.order import Order
from app.services.order_presentation import OrderFieldPresenter

router = APIRouter()


@router.get("/{order_id}/custom-fields")
def order_custom_fields(
    order_id: int,
    key: str = Query(...),
    db: Session = Depends(get_db),
    presenter: OrderFieldPresenter = Depends(get_presenter),
):
    order = db.get(Order, order_id)
    # The order key is the customer's proof of ownership; mismatches look like a missing order.
    if order is None or not secrets.compare_digest(order.order_key.encode(), key.encode()):
        raise NotFoundError(f"Order {order_id} not found")
    return {
        "order_id": order.id,
        "custom_fields": presenter.get(order.id),
        "html": presenter.render(order.id, "account"),
    }
