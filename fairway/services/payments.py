"""
Fairway Orders: Stripe Checkout integration

Thin wrappers over the Stripe SDK so routes and tasks never talk to the SDK
directly. All calls are blocking; async callers run them in the threadpool.
"""
import logging

import stripe

from fairway.core.config import get_settings
from fairway.models.order import Order
from fairway.schemas.checkout import CheckoutRequest

settings = get_settings()
logger = logging.getLogger(__name__)
stripe.api_key = settings.STRIPE_SECRET_KEY

# Stripe rejects metadata values longer than this
METADATA_VALUE_LIMIT = 500


def _metadata(order: Order) -> dict[str, str]:
    return {
        "order_id": order.id,
        "course_id": order.course_id,
        "hole_number": str(order.hole_number) if order.hole_number is not None else "",
        "notes": (order.notes or "")[:METADATA_VALUE_LIMIT],
    }


def create_checkout_session(order: Order, payload: CheckoutRequest):
    """Open a hosted checkout session for a pending order.

    The order id is carried twice (client_reference_id and metadata) so the
    webhook can finalize the right row without re-deriving anything.
    """
    return stripe.checkout.Session.create(
        mode=payload.mode,
        payment_method_types=["card"],
        line_items=[li.model_dump(exclude_none=True) for li in payload.line_items],
        success_url=payload.success_url,
        cancel_url=payload.cancel_url,
        client_reference_id=order.id,
        customer_creation="always",
        billing_address_collection="auto",
        metadata=_metadata(order),
    )


def construct_event(payload: bytes, sig_header: str | None):
    """Verify the Stripe-Signature header and parse the event.

    Raises ValueError for a malformed body and
    stripe.error.SignatureVerificationError for a bad signature.
    """
    return stripe.Webhook.construct_event(payload, sig_header, settings.STRIPE_WEBHOOK_SECRET)
