"""
Fairway client: checkout session initiator

Flow per submission (strictly sequential):
  1. Resolve the delivery hole (given, or geolocation → nearest hole)
  2. Build Stripe-shaped line items and the combined notes
  3. POST /checkout/sessions and hand back the hosted checkout URL
The cart is never cleared here; a failed submission leaves it intact.
"""
import logging
import uuid
from dataclasses import dataclass

from fairway.client.cart import CartStore, to_minor_units
from fairway.client.errors import (
    ApiError,
    CheckoutError,
    EmptyCartError,
    HoleSelectionError,
    HoleSelectionRequired,
)
from fairway.client.geolocation import (
    GEOLOCATION_TIMEOUT_SECONDS,
    Coordinates,
    GeolocationError,
    GeolocationErrorCode,
    Geolocator,
    request_geolocation,
)
from fairway.client.http import FairwayClient
from fairway.client.notes import render_notes

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "cad"
HOLE_NUMBERS = range(1, 19)
# Substituted by Stripe on redirect, never by us
CHECKOUT_SESSION_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"


@dataclass(frozen=True)
class CheckoutRedirect:
    url: str
    hole_number: int | None


def success_url(origin: str) -> str:
    return f"{origin.rstrip('/')}/thank-you?session_id={CHECKOUT_SESSION_PLACEHOLDER}"


def cancel_url(origin: str, course_id: str) -> str:
    return f"{origin.rstrip('/')}/checkout/{course_id}"


def build_line_items(cart: CartStore, currency: str = DEFAULT_CURRENCY) -> list[dict]:
    line_items = []
    for item in cart.items:
        product_data: dict = {"name": item.item_name}
        if item.image_url:
            product_data["images"] = [item.image_url]
        line_items.append({
            "price_data": {
                "currency": currency,
                "product_data": product_data,
                "unit_amount": to_minor_units(item.price),
            },
            "quantity": item.quantity,
        })
    return line_items


class CheckoutSessionInitiator:

    def __init__(
        self,
        client: FairwayClient,
        origin: str,
        geolocator: Geolocator | None = None,
        currency: str = DEFAULT_CURRENCY,
        geolocation_timeout: float = GEOLOCATION_TIMEOUT_SECONDS,
    ):
        self.client = client
        self.origin = origin
        self.geolocator = geolocator
        self.currency = currency
        self.geolocation_timeout = geolocation_timeout

    async def submit(
        self,
        cart: CartStore,
        notes: str = "",
        hole_number: int | None = None,
        location: Coordinates | None = None,
    ) -> CheckoutRedirect:
        """
        Start checkout for the cart.

        Raises HoleSelectionRequired when location permission is denied; the
        caller then asks for the hole and uses submit_with_hole().
        """
        if cart.is_empty():
            raise EmptyCartError("Your cart is empty.")
        if hole_number is None:
            hole_number = await self._resolve_hole(cart.course_id, location)
        return await self._submit(cart, notes, hole_number)

    async def submit_with_hole(self, cart: CartStore, hole_number: int | None, notes: str = "") -> CheckoutRedirect:
        """Manual fallback after a denied location request. Geolocation is not retried."""
        if cart.is_empty():
            raise EmptyCartError("Your cart is empty.")
        if hole_number not in HOLE_NUMBERS:
            raise HoleSelectionError("Please select a hole number")
        return await self._submit(cart, notes, hole_number)

    async def _resolve_hole(self, course_id: str, location: Coordinates | None) -> int | None:
        if location is None:
            try:
                location = await request_geolocation(self.geolocator, self.geolocation_timeout)
            except GeolocationError as exc:
                if exc.code == GeolocationErrorCode.PERMISSION_DENIED:
                    raise HoleSelectionRequired(
                        "Location permission denied. Please select your hole."
                    ) from exc
                logger.info("Checkout continues without a hole number: %s", exc.message)
                return None

        try:
            holes = await self.client.nearest_hole(course_id, location.latitude, location.longitude)
        except ApiError as exc:
            raise CheckoutError(exc.message, status_code=exc.status_code) from exc
        if not holes:
            raise CheckoutError("No hole returned")
        return holes[0].hole_number

    async def _submit(self, cart: CartStore, notes: str, hole_number: int | None) -> CheckoutRedirect:
        body = {
            "line_items": build_line_items(cart, self.currency),
            "success_url": success_url(self.origin),
            "cancel_url": cancel_url(self.origin, cart.course_id),
            "course_id": cart.course_id,
            "hole_number": hole_number,
            "notes": render_notes(cart.note_entries(notes)),
            "mode": "payment",
        }
        try:
            url = await self.client.create_checkout_session(body, idempotency_key=str(uuid.uuid4()))
        except ApiError as exc:
            raise CheckoutError(exc.message, status_code=exc.status_code) from exc
        if not url:
            raise CheckoutError("Failed to create checkout session.")
        return CheckoutRedirect(url=url, hole_number=hole_number)
