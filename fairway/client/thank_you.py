"""
Fairway client: thank-you page reconciliation

After Stripe redirects back, the order may not be finalized yet (the webhook
runs asynchronously), so absence is retried with capped exponential backoff.
A redirect without a session id is a terminal error.
"""
import asyncio
import logging
from dataclasses import dataclass
from urllib.parse import parse_qs, urlsplit

from fairway.client.cart import CartStore
from fairway.client.checkout import CHECKOUT_SESSION_PLACEHOLDER
from fairway.client.errors import ApiError, MissingSessionId, OrderNotFound
from fairway.client.http import FairwayClient
from fairway.schemas.order import OrderOut

logger = logging.getLogger(__name__)

LOOKUP_MAX_ATTEMPTS = 5
LOOKUP_INITIAL_DELAY_SECONDS = 2.0
LOOKUP_MAX_DELAY_SECONDS = 8.0


def session_id_from_url(url: str) -> str | None:
    values = parse_qs(urlsplit(url).query).get("session_id") or [""]
    session_id = values[0].strip()
    if not session_id or session_id == CHECKOUT_SESSION_PLACEHOLDER:
        return None
    return session_id


@dataclass(frozen=True)
class ThankYouSummary:
    order_id: str
    course_id: str
    items: str
    hole_number: int | None

    @classmethod
    def from_order(cls, order: OrderOut) -> "ThankYouSummary":
        items = ", ".join(f"{i.quantity} × {i.item_name}" for i in order.ordered_items)
        return cls(order_id=order.id, course_id=order.course_id, items=items, hole_number=order.hole_number)


class OrderLookup:

    def __init__(
        self,
        client: FairwayClient,
        cart: CartStore | None = None,
        max_attempts: int = LOOKUP_MAX_ATTEMPTS,
        initial_delay: float = LOOKUP_INITIAL_DELAY_SECONDS,
        max_delay: float = LOOKUP_MAX_DELAY_SECONDS,
        sleep=asyncio.sleep,
    ):
        self.client = client
        self.cart = cart
        self.max_attempts = max(1, max_attempts)
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self._sleep = sleep

    def _delay(self, attempt: int) -> float:
        return min(self.initial_delay * (2 ** (attempt - 1)), self.max_delay)

    async def resolve_url(self, redirect_url: str) -> ThankYouSummary:
        return await self.resolve(session_id_from_url(redirect_url))

    async def resolve(self, session_id: str | None) -> ThankYouSummary:
        if not session_id:
            raise MissingSessionId("Missing checkout session id in the redirect.")

        for attempt in range(1, self.max_attempts + 1):
            try:
                order = await self.client.order_by_session(session_id)
            except ApiError as exc:
                if not exc.retryable:
                    raise
                logger.warning("Lookup for session %s failed (attempt %d): %s", session_id, attempt, exc.message)
                order = None

            if order is not None:
                if self.cart is not None:
                    self.cart.clear()
                return ThankYouSummary.from_order(order)

            if attempt < self.max_attempts:
                delay = self._delay(attempt)
                logger.info(
                    "Order for session %s not finalized yet; retrying in %.1fs (%d/%d)",
                    session_id, delay, attempt, self.max_attempts,
                )
                await self._sleep(delay)

        raise OrderNotFound(
            "We received your payment but could not load the order yet. Please refresh in a moment.",
            retryable=True,
        )
