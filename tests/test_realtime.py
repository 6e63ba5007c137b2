"""
Realtime subscription (client side): SSE decoding, reconnects, refusal
"""
import json

import httpx
import pytest

from conftest import COURSE_ID
from fairway.client import EventKind, FairwayClient, OrderSubscription
from fairway.client.errors import ApiError
from fairway.client.realtime import SSEDecoder, to_order_event
from fairway.api.notifications import format_sse


def order_record(order_id="order-1", status="new", course_id=COURSE_ID):
    return {
        "id": order_id,
        "course_id": course_id,
        "created_at": "2026-10-19T14:05:00Z",
        "ordered_items": [{"item_name": "Hot Dog", "quantity": 1, "price": "6.50"}],
        "total_price": "6.50",
        "hole_number": 3,
        "fulfillment_status": status,
    }


def frames(*events, retry=None) -> bytes:
    body = ": connected\n\n"
    if retry is not None:
        body += f"retry: {retry}\n\n"
    body += "".join(format_sse({"type": kind, "record": record}) for kind, record in events)
    return body.encode()


class StreamApi:
    """Serves one scripted response per connection; afterwards every stream is empty."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.connections = 0

    def __call__(self, request):
        self.connections += 1
        assert request.headers["Accept"] == "text/event-stream"
        if self.responses:
            return self.responses.pop(0)
        return httpx.Response(200, content=b": keepalive\n\n")


def sse_response(body: bytes, status=200):
    return httpx.Response(status, content=body, headers={"Content-Type": "text/event-stream"})


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


async def collect(api, max_reconnects, reconnect_delay=1.0):
    sleep = RecordingSleep()
    async with FairwayClient("http://api.test", token="t", transport=httpx.MockTransport(api)) as client:
        async with OrderSubscription(
            client, COURSE_ID, reconnect_delay=reconnect_delay, max_reconnects=max_reconnects, sleep=sleep
        ) as subscription:
            events = [event async for event in subscription.events()]
    return events, sleep


def test_decoder_joins_multiline_data_and_skips_comments():
    decoder = SSEDecoder()
    lines = [": keepalive", "", "event: order_update", "data: {\"a\":", "data: 1}", "retry: 2500", ""]
    decoded = [sse for sse in map(decoder.feed, lines) if sse is not None]

    assert len(decoded) == 1
    assert decoded[0].event == "order_update"
    assert decoded[0].data == "{\"a\":\n1}"
    assert decoded[0].retry == 2500


def test_malformed_event_is_dropped():
    decoder = SSEDecoder()
    decoder.feed("data: {not json")
    assert to_order_event(decoder.feed("")) is None

    decoder.feed('data: {"type": "DELETE", "record": {}}')
    assert to_order_event(decoder.feed("")) is None


@pytest.mark.asyncio
async def test_events_arrive_in_channel_order():
    api = StreamApi(sse_response(frames(
        ("INSERT", order_record("order-1")),
        ("UPDATE", order_record("order-1", status="preparing")),
        ("INSERT", order_record("order-2")),
    )))

    events, _ = await collect(api, max_reconnects=0)

    assert [(e.kind, e.order.id) for e in events] == [
        (EventKind.INSERT, "order-1"),
        (EventKind.UPDATE, "order-1"),
        (EventKind.INSERT, "order-2"),
    ]
    assert events[1].order.fulfillment_status == "preparing"
    assert api.connections == 1


@pytest.mark.asyncio
async def test_reconnect_yields_marker_and_honours_retry_hint():
    api = StreamApi(
        sse_response(frames(("INSERT", order_record("order-1")), retry=3000)),
        sse_response(frames(("INSERT", order_record("order-2")))),
    )

    events, sleep = await collect(api, max_reconnects=1)

    assert [e.kind for e in events] == [EventKind.INSERT, EventKind.RECONNECTED, EventKind.INSERT]
    assert events[2].order.id == "order-2"
    assert sleep.delays == [3.0]
    assert api.connections == 2


@pytest.mark.asyncio
async def test_server_errors_are_treated_as_drops():
    api = StreamApi(
        httpx.Response(503, json={"detail": "redis down"}),
        sse_response(frames(("INSERT", order_record("order-1")))),
    )

    events, sleep = await collect(api, max_reconnects=1, reconnect_delay=0.25)

    # The first successful connection is not a reconnection
    assert [e.kind for e in events] == [EventKind.INSERT]
    assert sleep.delays == [0.25]


@pytest.mark.asyncio
async def test_refused_stream_raises():
    api = StreamApi(httpx.Response(403, json={"detail": "Not allowed to watch this course."}))

    with pytest.raises(ApiError) as exc_info:
        await collect(api, max_reconnects=3)

    assert exc_info.value.status_code == 403
    assert api.connections == 1


@pytest.mark.asyncio
async def test_events_require_open_subscription():
    client = FairwayClient("http://api.test", transport=httpx.MockTransport(StreamApi()))
    subscription = OrderSubscription(client, COURSE_ID)
    with pytest.raises(RuntimeError):
        async for _ in subscription.events():
            pass
    await client.aclose()


def test_event_payload_round_trips_through_sse_frame():
    payload = {"type": "INSERT", "record": order_record()}
    decoder = SSEDecoder()
    decoded = None
    for line in format_sse(payload).split("\n"):
        decoded = decoder.feed(line) or decoded

    assert json.loads(decoded.data) == payload
    event = to_order_event(decoded)
    assert event.kind is EventKind.INSERT
    assert event.order.course_id == COURSE_ID
