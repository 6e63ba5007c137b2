"""
Fairway Orders: Stripe webhook

Verifies the signature, then hands finalization to the Celery worker so the
webhook acknowledges quickly. Stripe retries any non-2xx response.
"""
import logging

import stripe
from fastapi import APIRouter, HTTPException, Request, status

from fairway.services import payments
from fairway.tasks.payment_tasks import expire_order, finalize_order

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["webhooks"])

PAID_EVENTS = {"checkout.session.completed", "checkout.session.async_payment_succeeded"}
EXPIRED_EVENTS = {"checkout.session.expired", "checkout.session.async_payment_failed"}


def _order_id(session_obj) -> str | None:
    metadata = session_obj.get("metadata") or {}
    return session_obj.get("client_reference_id") or metadata.get("order_id")


@router.post("/stripe")
async def stripe_webhook(request: Request):
    payload = await request.body()
    sig_header = request.headers.get("Stripe-Signature")
    try:
        event = payments.construct_event(payload, sig_header)
    except (ValueError, stripe.SignatureVerificationError) as exc:
        logger.warning("Rejected Stripe webhook: %s", exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload or signature.")

    event_type = event["type"]
    session_obj = event["data"]["object"]
    order_id = _order_id(session_obj)

    if event_type in PAID_EVENTS and session_obj.get("payment_status") == "paid":
        if not order_id:
            logger.warning("Stripe session %s carries no order id", session_obj.get("id"))
            return {"received": True, "queued": False}
        details = session_obj.get("customer_details") or {}
        finalize_order.delay(
            order_id=order_id,
            session_id=session_obj["id"],
            customer_name=details.get("name"),
            customer_email=details.get("email"),
        )
        return {"received": True, "queued": True}

    if event_type in EXPIRED_EVENTS and order_id:
        expire_order.delay(order_id=order_id, session_id=session_obj["id"])
        return {"received": True, "queued": True}

    logger.debug("Ignoring Stripe event %s", event_type)
    return {"received": True, "queued": False}
