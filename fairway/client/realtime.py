"""
Fairway client: realtime order subscription

An OrderSubscription is opened when the dashboard mounts and closed when it
unmounts. Events arrive in channel order. If the stream drops, the
subscription reconnects and yields a RECONNECTED marker: anything published
during the gap is lost and the dashboard must re-fetch.
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator

import httpx
from pydantic import ValidationError

from fairway.client.errors import ApiError
from fairway.client.http import FairwayClient
from fairway.schemas.order import OrderEventMessage, OrderOut

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY_SECONDS = 3.0


class EventKind(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    RECONNECTED = "RECONNECTED"


@dataclass(frozen=True)
class OrderEvent:
    kind: EventKind
    order: OrderOut | None = None


@dataclass
class ServerSentEvent:
    event: str = "message"
    data: str = ""
    retry: int | None = None


class SSEDecoder:
    """Line-oriented text/event-stream decoder. A blank line ends a frame."""

    def __init__(self):
        self._event = ""
        self._data: list[str] = []
        self._retry: int | None = None

    def feed(self, line: str) -> ServerSentEvent | None:
        if line == "":
            if not self._data and self._retry is None:
                self._event = ""
                return None
            sse = ServerSentEvent(event=self._event or "message", data="\n".join(self._data), retry=self._retry)
            self._event, self._data, self._retry = "", [], None
            return sse

        if line.startswith(":"):
            return None

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        elif name == "retry" and value.isdigit():
            self._retry = int(value)
        return None


def to_order_event(sse: ServerSentEvent) -> OrderEvent | None:
    if not sse.data:
        return None
    try:
        message = OrderEventMessage.model_validate(json.loads(sse.data))
    except (ValueError, ValidationError):
        logger.warning("Ignoring malformed order event: %.200s", sse.data)
        return None
    return OrderEvent(kind=EventKind(message.type), order=message.record)


class OrderSubscription:

    def __init__(
        self,
        client: FairwayClient,
        course_id: str,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY_SECONDS,
        max_reconnects: int | None = None,
        sleep=asyncio.sleep,
    ):
        self.client = client
        self.course_id = course_id
        self.reconnect_delay = reconnect_delay
        self.max_reconnects = max_reconnects
        self._sleep = sleep
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    async def __aenter__(self):
        self._open = True
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def close(self):
        self._open = False

    async def events(self) -> AsyncIterator[OrderEvent]:
        if not self._open:
            raise RuntimeError("Subscription is not open; use `async with OrderSubscription(...)`.")

        connected_before = False
        reconnects = 0
        while self._open:
            try:
                async with self.client.stream_order_events(self.course_id) as response:
                    if response.status_code >= 500:
                        raise httpx.RemoteProtocolError(f"stream answered {response.status_code}")
                    if not response.is_success:
                        await response.aread()
                        raise ApiError(f"Order stream refused: HTTP {response.status_code}", response.status_code)

                    if connected_before:
                        yield OrderEvent(kind=EventKind.RECONNECTED)
                    connected_before = True

                    decoder = SSEDecoder()
                    async for line in response.aiter_lines():
                        if not self._open:
                            return
                        sse = decoder.feed(line)
                        if sse is None:
                            continue
                        if sse.retry is not None:
                            self.reconnect_delay = sse.retry / 1000
                        event = to_order_event(sse)
                        if event is not None:
                            yield event
            except httpx.TransportError as exc:
                logger.warning("Order stream for course %s dropped: %s", self.course_id, exc)

            if not self._open:
                break
            reconnects += 1
            if self.max_reconnects is not None and reconnects > self.max_reconnects:
                logger.warning("Giving up on order stream for course %s", self.course_id)
                break
            await self._sleep(self.reconnect_delay)
