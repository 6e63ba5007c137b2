"""
Fairway Orders: realtime order channel (SSE over Redis pub/sub)

Architecture:
  - Checkout finalization and status transitions publish to orders:{course_id}
  - Staff dashboards hold one SSE stream per course for as long as they are open
  - No replay: a client that reconnects must re-fetch GET /orders
"""
import json
import logging
import time
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from fairway.api.orders import staff_course_id
from fairway.core.config import get_settings
from fairway.core.redis_client import get_redis, order_channel
from fairway.schemas.order import OrderEventMessage
from fairway.services.events import publish_event

settings = get_settings()
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/notifications", tags=["notifications"])

SSE_EVENT_NAMES = {"INSERT": "order_insert", "UPDATE": "order_update"}


def format_sse(payload: dict) -> str:
    event_name = SSE_EVENT_NAMES.get(payload.get("type"), "order_event")
    return f"event: {event_name}\ndata: {json.dumps(payload)}\n\n"


async def _sse_generator(course_id: str, request: Request) -> AsyncGenerator[str, None]:
    """Subscribe to the course channel and yield SSE frames until the client leaves."""
    redis = get_redis()
    channel_name = order_channel(course_id)
    pubsub = redis.pubsub()
    await pubsub.subscribe(channel_name)

    try:
        yield f": connected to course {course_id}\n\n"
        yield f"retry: {settings.SSE_RETRY_MILLISECONDS}\n\n"

        last_frame = time.monotonic()
        while True:
            if await request.is_disconnected():
                break

            # get_message blocks for up to a second, so published events go out as they arrive
            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            if message and message["type"] == "message":
                try:
                    payload = json.loads(message["data"])
                except ValueError:
                    logger.warning("Dropping malformed message on %s", channel_name)
                    continue
                yield format_sse(payload)
                last_frame = time.monotonic()
            elif time.monotonic() - last_frame >= settings.SSE_KEEPALIVE_INTERVAL_SECONDS:
                yield ": keepalive\n\n"
                last_frame = time.monotonic()

    finally:
        await pubsub.unsubscribe(channel_name)
        await pubsub.aclose()


@router.get("/stream/{course_id}")
async def stream_order_events(
    course_id: str,
    request: Request,
    staff_course: str = Depends(staff_course_id),
):
    """SSE stream of INSERT/UPDATE events for one course's orders."""
    if course_id != staff_course:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to watch this course.")

    return StreamingResponse(
        _sse_generator(course_id, request),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",  # Disable Nginx buffering
            "Connection": "keep-alive",
        },
    )


@router.post("/publish")
async def publish_notification(payload: OrderEventMessage):
    """
    Internal hook called by the payment worker to push order events.
    Publishes to the Redis channel of the order's course.
    """
    body = payload.model_dump(mode="json")
    receivers = await publish_event(body)
    return {"published": True, "channel": order_channel(payload.record.course_id), "receivers": receivers}
