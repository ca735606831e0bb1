from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import decode_jwt
from app.db.session import get_db
from app.services.checkout_renderer import CheckoutRenderer
from app.services.field_registry import FieldRegistry
from app.services.order_fields import OrderFieldStore
from app.services.order_presentation import OrderFieldPresenter

bearer = HTTPBearer(auto_error=False)

CAP_MANAGE_OPTIONS = "manage_options"
CAP_MANAGE_SHOP = "manage_woocommerce"
CAP_EDIT_ORDERS = "edit_shop_orders"

ROLE_CAPABILITIES = {
    "ADMIN": {CAP_MANAGE_OPTIONS, CAP_MANAGE_SHOP, CAP_EDIT_ORDERS},
    "SHOP_MANAGER": {CAP_MANAGE_SHOP, CAP_EDIT_ORDERS},
}

def get_current_admin(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> dict:
    if not creds:
        raise HTTPException(status_code=401, detail="Missing authorization token")
    try:
        return decode_jwt(creds.credentials, settings.ADMIN_JWT_SECRET)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")

def capabilities_for(admin: dict) -> set[str]:
    caps = set(ROLE_CAPABILITIES.get(str(admin.get("role") or ""), set()))
    extra = admin.get("caps")
    if isinstance(extra, (list, tuple)):
        caps.update(str(item) for item in extra)
    return caps

def require_capability(*caps: str):
    def _inner(admin: dict = Depends(get_current_admin)) -> dict:
        if not capabilities_for(admin) & set(caps):
            raise HTTPException(status_code=403, detail="Sorry, you are not allowed to do that.")
        return admin
    return _inner

def get_field_registry(db: Session = Depends(get_db)) -> FieldRegistry:
    return FieldRegistry(db)

def get_order_field_store(
    db: Session = Depends(get_db), registry: FieldRegistry = Depends(get_field_registry)
) -> OrderFieldStore:
    return OrderFieldStore(db, registry)

def get_checkout_renderer(registry: FieldRegistry = Depends(get_field_registry)) -> CheckoutRenderer:
    return CheckoutRenderer(registry)

def get_presenter(store: OrderFieldStore = Depends(get_order_field_store)) -> OrderFieldPresenter:
    return OrderFieldPresenter(store)
