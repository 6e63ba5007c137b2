"""
Fairway Orders: checkout reconciliation endpoint

Flow:
  1. Insert a pending order with the computed total (id needed before Stripe)
  2. Open a Stripe Checkout session carrying the order id as metadata
  3. Back-fill stripe_session_id on the order (non-fatal)
  4. Return the hosted checkout URL
The payment webhook later marks the order paid (see api/webhooks.py).
"""
import logging

from fastapi import APIRouter, Depends, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from fairway.db.database import get_db
from fairway.db.order_ops import attach_session_id, create_pending_order
from fairway.schemas.checkout import CheckoutErrorResponse, CheckoutRequest, CheckoutResponse
from fairway.services import payments

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/checkout", tags=["checkout"])


def _error(message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post(
    "/sessions",
    response_model=CheckoutResponse,
    responses={500: {"model": CheckoutErrorResponse}, 502: {"model": CheckoutErrorResponse}},
)
async def create_checkout_session(payload: CheckoutRequest, db: AsyncSession = Depends(get_db)):
    """Turn a submitted cart into a pending order plus a hosted checkout session."""
    # ── Step 1: Pending order ─────────────────────────────────────────────────
    try:
        order = await create_pending_order(db, payload)
    except Exception:
        logger.exception("Insert order failed for course %s", payload.course_id)
        await db.rollback()
        return _error("Could not create order")

    # ── Step 2: Stripe Checkout session ───────────────────────────────────────
    try:
        session = await run_in_threadpool(payments.create_checkout_session, order, payload)
    except Exception as exc:
        logger.exception("Checkout session creation failed for order %s", order.id)
        return _error(f"Payment provider error: {exc}", status.HTTP_502_BAD_GATEWAY)

    # ── Step 3: Correlate order and session ───────────────────────────────────
    try:
        await attach_session_id(db, order.id, session["id"])
    except Exception as exc:
        # Thank-you lookup retries, so a late or missing back-fill is tolerated
        await db.rollback()
        logger.warning("Order %s: failed to save session id %s: %s", order.id, session["id"], exc)

    logger.info("Order %s pending payment (session %s)", order.id, session["id"])
    return CheckoutResponse(url=session["url"])
