"""
Fairway Orders: Celery application

Redis is both broker and result backend. Payment tasks get their own queue so
a worker can be dedicated to webhook follow-up:
    celery -A fairway.core.celery_app worker -Q payments
"""
from celery import Celery

from fairway.core.config import get_settings

settings = get_settings()

PAYMENTS_QUEUE = "payments"

celery_app = Celery(
    "fairway_orders",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["fairway.tasks.payment_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_routes={
        "finalize_order": {"queue": PAYMENTS_QUEUE},
        "expire_order": {"queue": PAYMENTS_QUEUE},
    },
    # Stripe retries webhooks for days; a lost task must be redelivered, not dropped
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    result_expires=24 * 3600,
    broker_connection_retry_on_startup=True,
)
