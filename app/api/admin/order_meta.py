from fastapi import APIRouter, Depends

from app.core.deps import CAP_EDIT_ORDERS, CAP_MANAGE_SHOP, get_order_field_store, get_presenter, require_capability
from app.schemas.admin import OrderMetaUpdateIn
from app.services.audit import resolve_actor
from app.services.order_fields import OrderFieldStore
from app.services.order_presentation import OrderFieldPresenter

router = APIRouter()

can_edit_orders = require_capability(CAP_EDIT_ORDERS, CAP_MANAGE_SHOP)


@router.get("/{order_id}")
def get_order_meta(order_id: int, store: OrderFieldStore = Depends(get_order_field_store), admin=Depends(can_edit_orders)):
    return {"order_id": order_id, "custom_fields": store.get(order_id)}


@router.post("/{order_id}")
def update_order_meta(
    order_id: int,
    payload: OrderMetaUpdateIn,
    store: OrderFieldStore = Depends(get_order_field_store),
    admin=Depends(can_edit_orders),
):
    updated = store.update(order_id, payload.fields, actor=resolve_actor(admin))
    return {"order_id": order_id, "updated": updated, "custom_fields": store.get(order_id)}


@router.get("/{order_id}/display")
def display_order_meta(
    order_id: int,
    presenter: OrderFieldPresenter = Depends(get_presenter),
    admin=Depends(can_edit_orders),
):
    return {
        "order_id": order_id,
        "rows": presenter.get(order_id),
        "html": presenter.render(order_id, "admin"),
        "text": presenter.render(order_id, "admin", plain_text=True),
    }


@router.delete("/{order_id}/{key}")
def delete_order_meta(
    order_id: int,
    key: str,
    store: OrderFieldStore = Depends(get_order_field_store),
    admin=Depends(can_edit_orders),
):
    store.delete(order_id, key, actor=resolve_actor(admin))
    return {"order_id": order_id, "deleted": key}
