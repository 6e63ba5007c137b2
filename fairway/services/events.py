"""
Fairway Orders: realtime order events

Every message on orders:{course_id} is {"type": "INSERT" | "UPDATE", "record": <order row>}.
"""
import json
import logging

from fairway.core.redis_client import get_redis, order_channel
from fairway.models.order import Order
from fairway.schemas.order import OrderEventMessage, OrderOut

logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"


def build_event(event_type: str, order: Order) -> dict:
    message = OrderEventMessage(type=event_type, record=OrderOut.model_validate(order))
    return message.model_dump(mode="json")


async def publish_event(payload: dict) -> int:
    """Publish a prepared event on its course channel. Returns the subscriber count."""
    redis = get_redis()
    channel = order_channel(payload["record"]["course_id"])
    return await redis.publish(channel, json.dumps(payload))


async def publish_order_event(event_type: str, order: Order) -> None:
    """Best-effort publish; the store stays authoritative if this fails."""
    try:
        await publish_event(build_event(event_type, order))
    except Exception as exc:
        logger.warning("Order %s: %s event not published: %s", order.id, event_type, exc)
