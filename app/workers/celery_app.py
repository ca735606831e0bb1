from celery import Celery
from app.core.config import settings

celery_app = Celery(
    "checkout_fields",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["app.workers.tasks.emails"],
)
celery_app.conf.timezone = "UTC"
celery_app.conf.task_acks_late = True
