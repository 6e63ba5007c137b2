"""
Fairway Orders: Celery tasks (payment finalization)

checkout.session.completed → order marked paid, fulfilment status new,
INSERT event pushed to the course channel through the notification hook.
Tasks are idempotent: Stripe may deliver the same event more than once.
"""
import logging

import httpx
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from fairway.core.celery_app import celery_app
from fairway.core.config import get_settings
from fairway.core.security import PUBLISH_TOKEN_HEADER
from fairway.models.order import Order
from fairway.models.status import FulfillmentStatus, PaymentStatus
from fairway.services.events import INSERT, build_event

settings = get_settings()
logger = logging.getLogger(__name__)

# Sync engine for Celery (Celery tasks are not async-native)
sync_engine = create_engine(settings.sync_database_url, pool_pre_ping=True)


def _load_order(session: Session, order_id: str, session_id: str) -> Order | None:
    order = session.execute(select(Order).where(Order.id == order_id)).scalar_one_or_none()
    if order is None:
        logger.warning("Order %s not found for Stripe session %s", order_id, session_id)
        return None
    if order.stripe_session_id and order.stripe_session_id != session_id:
        logger.warning(
            "Order %s belongs to session %s, not %s; ignoring",
            order_id, order.stripe_session_id, session_id,
        )
        return None
    return order


def mark_order_paid(
    session: Session,
    order_id: str,
    session_id: str,
    customer_name: str | None = None,
    customer_email: str | None = None,
) -> Order | None:
    """Finalize a pending order. Returns the order only when this call changed it."""
    order = _load_order(session, order_id, session_id)
    if order is None:
        return None
    if order.payment_status == PaymentStatus.PAID:
        logger.info("Order %s already finalized", order_id)
        return None

    order.payment_status = PaymentStatus.PAID
    order.fulfillment_status = FulfillmentStatus.NEW
    # Recovers a session id the checkout endpoint failed to back-fill
    order.stripe_session_id = session_id
    order.customer_name = customer_name
    order.customer_email = customer_email
    session.commit()
    session.refresh(order)
    return order


def _notify_hub(event: dict):
    """Push the INSERT event to the realtime notification hook."""
    try:
        with httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
            response = client.post(
                f"{settings.NOTIFICATION_HUB_URL}/notifications/publish",
                json=event,
                headers={PUBLISH_TOKEN_HEADER: settings.PUBLISH_HOOK_TOKEN},
            )
            response.raise_for_status()
    except Exception as exc:
        # Staff recover missed events with a manual refresh
        logger.warning("Notification hook failed: %s", exc)


@celery_app.task(
    name="finalize_order",
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    acks_late=True,
)
def finalize_order(
    self,
    order_id: str,
    session_id: str,
    customer_name: str | None = None,
    customer_email: str | None = None,
):
    try:
        with Session(sync_engine) as session:
            order = mark_order_paid(session, order_id, session_id, customer_name, customer_email)
            event = build_event(INSERT, order) if order is not None else None
    except Exception as exc:
        logger.exception("Order %s finalization failed", order_id)
        raise self.retry(exc=exc)

    if event is not None:
        logger.info("Order %s paid; notifying staff of course %s", order_id, event["record"]["course_id"])
        _notify_hub(event)
    return {"order_id": order_id, "finalized": event is not None}


@celery_app.task(name="expire_order", acks_late=True)
def expire_order(order_id: str, session_id: str):
    """Mark an abandoned checkout's order expired. Paid orders are never touched."""
    with Session(sync_engine) as session:
        order = _load_order(session, order_id, session_id)
        if order is None or order.payment_status != PaymentStatus.PENDING:
            return {"order_id": order_id, "expired": False}
        order.payment_status = PaymentStatus.EXPIRED
        session.commit()
    logger.info("Order %s expired (session %s)", order_id, session_id)
    return {"order_id": order_id, "expired": True}
