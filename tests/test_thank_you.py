"""
Thank-you page reconciliation (OrderLookup)

  - no session id → terminal error, zero lookups
  - absent order retried with capped exponential backoff
  - cart cleared only once the order is found
"""
import httpx
import pytest

from conftest import COURSE_ID
from fairway.client import CartStore, FairwayClient, MemoryCartStorage, OrderLookup
from fairway.client.errors import ApiError, MissingSessionId, OrderNotFound
from fairway.client.thank_you import session_id_from_url

ORDER_JSON = {
    "id": "order-1",
    "course_id": COURSE_ID,
    "created_at": "2026-10-19T14:05:00Z",
    "ordered_items": [
        {"item_name": "Burger", "quantity": 2, "price": "12.00"},
        {"item_name": "Iced Tea", "quantity": 1, "price": "3.50"},
    ],
    "total_price": "27.50",
    "hole_number": 7,
    "notes": None,
    "payment_status": "paid",
    "fulfillment_status": "new",
    "stripe_session_id": "cs_test_1",
}


class SessionApi:
    """Answers /orders/by-session with the scripted status codes, then 200."""

    def __init__(self, *statuses):
        self.statuses = list(statuses)
        self.paths: list[str] = []

    def __call__(self, request):
        self.paths.append(request.url.path)
        if self.statuses:
            code = self.statuses.pop(0)
            return httpx.Response(code, json={"detail": "Order not found for this session."})
        return httpx.Response(200, json=ORDER_JSON)


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay):
        self.delays.append(delay)


def cart_with_item():
    cart = CartStore(COURSE_ID, MemoryCartStorage())
    cart.add({"id": "m-burger", "item_name": "Burger", "price": "12.00"})
    return cart


def lookup_for(api, cart=None, **kwargs):
    sleep = RecordingSleep()
    client = FairwayClient("http://api.test", transport=httpx.MockTransport(api))
    return OrderLookup(client, cart=cart, sleep=sleep, **kwargs), sleep


@pytest.mark.asyncio
@pytest.mark.parametrize("session_id", [None, ""])
async def test_missing_session_id_makes_no_requests(session_id):
    api = SessionApi()
    cart = cart_with_item()
    lookup, sleep = lookup_for(api, cart)

    with pytest.raises(MissingSessionId):
        await lookup.resolve(session_id)

    assert api.paths == []
    assert sleep.delays == []
    assert len(cart) == 1


def test_unsubstituted_placeholder_counts_as_missing():
    assert session_id_from_url("https://shop.test/thank-you?session_id={CHECKOUT_SESSION_ID}") is None
    assert session_id_from_url("https://shop.test/thank-you") is None
    assert session_id_from_url("https://shop.test/thank-you?session_id=cs_test_1") == "cs_test_1"


@pytest.mark.asyncio
async def test_found_immediately_clears_cart():
    api = SessionApi()
    cart = cart_with_item()
    lookup, sleep = lookup_for(api, cart)

    summary = await lookup.resolve("cs_test_1")

    assert summary.order_id == "order-1"
    assert summary.items == "2 × Burger, 1 × Iced Tea"
    assert summary.hole_number == 7
    assert api.paths == ["/orders/by-session/cs_test_1"]
    assert sleep.delays == []
    assert cart.is_empty()


@pytest.mark.asyncio
async def test_late_webhook_is_retried_with_backoff():
    api = SessionApi(404, 404, 404)
    lookup, sleep = lookup_for(api)

    summary = await lookup.resolve("cs_test_1")

    assert summary.order_id == "order-1"
    assert len(api.paths) == 4
    assert sleep.delays == [2.0, 4.0, 8.0]


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts():
    api = SessionApi(*[404] * 10)
    cart = cart_with_item()
    lookup, sleep = lookup_for(api, cart)

    with pytest.raises(OrderNotFound) as exc_info:
        await lookup.resolve("cs_test_1")

    assert exc_info.value.retryable
    assert len(api.paths) == 5
    assert sleep.delays == [2.0, 4.0, 8.0, 8.0]
    # Cart kept: the order was never confirmed
    assert len(cart) == 1


@pytest.mark.asyncio
async def test_server_errors_are_retried():
    api = SessionApi(503, 404)
    lookup, sleep = lookup_for(api, max_attempts=3, initial_delay=0.5)

    summary = await lookup.resolve("cs_test_1")

    assert summary.order_id == "order-1"
    assert sleep.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    api = SessionApi(400)
    lookup, sleep = lookup_for(api)

    with pytest.raises(ApiError) as exc_info:
        await lookup.resolve("cs_test_1")

    assert exc_info.value.status_code == 400
    assert len(api.paths) == 1
    assert sleep.delays == []
