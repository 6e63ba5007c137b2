"""
Shared fixtures: SQLite database, in-memory Redis double, ASGI client, staff tokens.
"""
import os
import tempfile
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# Settings are read at import time, so point them at test resources first
_DB_PATH = os.path.join(tempfile.mkdtemp(prefix="fairway-tests-"), "orders.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["SYNC_DATABASE_URL"] = f"sqlite:///{_DB_PATH}"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["METRICS_ENABLED"] = "false"
os.environ["PUBLISH_HOOK_TOKEN"] = "hook-secret"

import httpx
import pytest
import pytest_asyncio

from fairway.core import redis_client
from fairway.core.security import create_access_token
from fairway.db.database import Base, SessionLocal, engine
from fairway.main import app
from fairway.models.course import Hole
from fairway.models.order import Order
from fairway.models.status import FulfillmentStatus, PaymentStatus
from fairway.services import payments

COURSE_ID = "pine-valley"
OTHER_COURSE_ID = "augusta"
HOOK_HEADERS = {"X-Publish-Token": "hook-secret"}


class FakePubSub:
    """Replays scripted channel messages, then reports an idle channel."""

    def __init__(self, messages=None):
        self.messages = list(messages or [])
        self.channels: set[str] = set()
        self.closed = False

    async def subscribe(self, *channels):
        self.channels.update(channels)

    async def get_message(self, ignore_subscribe_messages=False, timeout=0.0):
        if self.messages:
            return {"type": "message", "channel": next(iter(self.channels), None), "data": self.messages.pop(0)}
        return None

    async def unsubscribe(self, *channels):
        self.channels.difference_update(channels or set(self.channels))

    async def aclose(self):
        self.closed = True


class FakeRedis:
    """The subset of redis.asyncio.Redis the service uses."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.published: list[tuple[str, str]] = []
        self.channel = FakePubSub()

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    async def setex(self, key, ttl, value):
        self.store[key] = value

    async def delete(self, *keys):
        return sum(self.store.pop(key, None) is not None for key in keys)

    async def publish(self, channel, message):
        self.published.append((channel, message))
        return 1

    def pubsub(self):
        return self.channel

    async def ping(self):
        return True

    async def aclose(self):
        pass


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(redis_client, "_redis_client", fake)
    return fake


@pytest_asyncio.fixture
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    # Pooled aiosqlite connections are tied to this test's event loop
    await engine.dispose()


@pytest_asyncio.fixture
async def api(database):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def staff_token(course_id: str = COURSE_ID) -> str:
    return create_access_token({"sub": "staff-1", "course_id": course_id, "role": "employee"})


@pytest.fixture
def staff_headers():
    return {"Authorization": f"Bearer {staff_token()}"}


@pytest.fixture
def stripe_sessions(monkeypatch):
    """Replaces Stripe Checkout with a recorder; returns the list of created sessions."""
    created = []

    def fake_create(order, payload):
        session_id = f"cs_test_{len(created) + 1}"
        session = {
            "id": session_id,
            "url": f"https://checkout.stripe.test/c/pay/{session_id}",
            "order_id": order.id,
            "line_items": [li.model_dump(exclude_none=True) for li in payload.line_items],
            "metadata": payments._metadata(order),
        }
        created.append(session)
        return session

    monkeypatch.setattr(payments, "create_checkout_session", fake_create)
    return created


async def add_order(
    course_id: str = COURSE_ID,
    status: FulfillmentStatus = FulfillmentStatus.NEW,
    payment_status: PaymentStatus = PaymentStatus.PAID,
    session_id: str | None = None,
    minutes_ago: int = 0,
    items: list[dict] | None = None,
    hole_number: int | None = 3,
    customer_name: str | None = None,
    customer_email: str | None = None,
) -> Order:
    items = items or [{"item_name": "Hot Dog", "price": "6.50", "quantity": 2}]
    order = Order(
        course_id=course_id,
        customer_name=customer_name,
        customer_email=customer_email,
        ordered_items=items,
        total_price=sum(Decimal(i["price"]) * i["quantity"] for i in items),
        hole_number=hole_number,
        payment_status=payment_status,
        fulfillment_status=status,
        stripe_session_id=session_id,
        created_at=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
    )
    async with SessionLocal() as db:
        db.add(order)
        await db.commit()
        await db.refresh(order)
    return order


async def add_holes(course_id: str = COURSE_ID, holes: dict[int, tuple[float, float]] | None = None):
    holes = holes or {
        1: (43.6500, -79.3800),
        7: (43.6550, -79.3900),
        12: (43.6600, -79.4000),
    }
    async with SessionLocal() as db:
        for number, (lat, lng) in holes.items():
            db.add(Hole(course_id=course_id, hole_number=number, latitude=lat, longitude=lng))
        await db.commit()


async def load_order(order_id: str) -> Order | None:
    async with SessionLocal() as db:
        return await db.get(Order, order_id)
