from fastapi import APIRouter
from app.api.public import orders, store

router = APIRouter()
router.include_router(store.router, prefix="/store", tags=["Public"])
router.include_router(orders.router, prefix="/orders", tags=["Public"])
