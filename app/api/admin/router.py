from fastapi import APIRouter
from app.api.admin import fields, order_meta

router = APIRouter()
router.include_router(fields.router, prefix="/fields", tags=["CheckoutFields"])
router.include_router(order_meta.router, prefix="/order-meta", tags=["OrderMeta"])
