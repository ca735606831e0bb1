import os
import unittest
from datetime import timedelta
from unittest.mock import patch
from uuid import uuid4

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, delete
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure settings can be initialized in test environments
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

from app.core.config import settings
from app.core.security import create_jwt
from app.db.session import get_db
from app.main import app
from app.models.audit_log import AuditLog
from app.models.option import Option
from app.models.order import ORDER_STATUS_PROCESSING, Order, new_order_key
from app.models.order_field_value import OrderFieldValue
from app.models.order_note import OrderNote
from app.services.field_registry import FieldRegistry
from app.services.order_fields import OrderFieldStore
from app.services.rate_limit import InMemoryRateLimiter

DIETARY_FIELD = {
    "id": "dietary",
    "label": "Dietary Requirements",
    "type": "text",
    "required": True,
    "enabled": True,
    "placeholder": "",
    "position": "after_billing",
}

NOTES_FIELD = {
    "id": "delivery_notes",
    "label": "Delivery Notes",
    "type": "textarea",
    "required": False,
    "enabled": True,
    "placeholder": "Anything we should know?",
    "position": "after_shipping",
}


class CheckoutFieldsTestCase(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autocommit=False, autoflush=False)
        Option.__table__.create(bind=cls.engine)
        Order.__table__.create(bind=cls.engine)
        OrderNote.__table__.create(bind=cls.engine)
        OrderFieldValue.__table__.create(bind=cls.engine)
        AuditLog.__table__.create(bind=cls.engine)

    @classmethod
    def tearDownClass(cls):
        AuditLog.__table__.drop(bind=cls.engine)
        OrderFieldValue.__table__.drop(bind=cls.engine)
        OrderNote.__table__.drop(bind=cls.engine)
        Order.__table__.drop(bind=cls.engine)
        Option.__table__.drop(bind=cls.engine)
        cls.engine.dispose()

    def setUp(self):
        with self.SessionLocal() as db:
            db.execute(delete(AuditLog))
            db.execute(delete(OrderFieldValue))
            db.execute(delete(OrderNote))
            db.execute(delete(Order))
            db.execute(delete(Option))
            db.commit()

        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)
        self.limiter = InMemoryRateLimiter()
        self._limiter_patch = patch("app.services.rate_limit.get_rate_limiter", return_value=self.limiter)
        self._limiter_patch.start()

    def tearDown(self):
        self._limiter_patch.stop()
        self.client.close()
        app.dependency_overrides.clear()

    @staticmethod
    def _auth_headers(role: str, email: str | None = None, caps: list[str] | None = None) -> dict[str, str]:
        claims = {"sub": str(uuid4()), "email": email or f"{role.lower()}@example.com", "role": role}
        if caps is not None:
            claims["caps"] = caps
        token = create_jwt(claims, settings.ADMIN_JWT_SECRET, timedelta(minutes=30))
        return {"Authorization": f"Bearer {token}"}

    def _seed_fields(self, *fields: dict) -> None:
        with self.SessionLocal() as db:
            FieldRegistry(db).replace_fields([dict(field) for field in fields], actor="test")

    def _create_order(self, email: str = "buyer@example.com") -> Order:
        with self.SessionLocal() as db:
            order = Order(
                order_key=new_order_key(),
                status=ORDER_STATUS_PROCESSING,
                customer_email=email,
                billing={"email": email},
            )
            db.add(order)
            db.commit()
            db.refresh(order)
            db.expunge(order)
            return order

    def _save_values(self, order_id: int, posted: dict) -> None:
        with self.SessionLocal() as db:
            OrderFieldStore(db).save_from_classic_submission(order_id, posted)
