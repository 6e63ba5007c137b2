"""
Fairway Orders: order persistence (checkout insert, scoped status transitions, lookups)
"""
import logging
import math
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fairway.models.course import Hole
from fairway.models.order import Order
from fairway.models.status import FulfillmentStatus, PaymentStatus, check_transition
from fairway.schemas.checkout import CheckoutRequest
from fairway.schemas.order import NearestHole

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6_371_000.0
CENTS = Decimal("0.01")


class TransitionConflict(Exception):
    """Raised when the order's status changed between our read and our write:
    another staff session moved it first.
    """
    pass


def _minor_to_major(amount: int) -> Decimal:
    return (Decimal(amount) / 100).quantize(CENTS)


def checkout_total(payload: CheckoutRequest) -> Decimal:
    """sum(unit_amount × quantity) over the line items, in major units."""
    return _minor_to_major(sum(li.price_data.unit_amount * li.quantity for li in payload.line_items))


async def create_pending_order(db: AsyncSession, payload: CheckoutRequest) -> Order:
    """Insert the pending order for a checkout request and return it with its generated id."""
    order = Order(
        course_id=payload.course_id,
        ordered_items=[
            {
                "item_name": li.price_data.product_data.name,
                "price": str(_minor_to_major(li.price_data.unit_amount)),
                "quantity": li.quantity,
            }
            for li in payload.line_items
        ],
        total_price=checkout_total(payload),
        hole_number=payload.hole_number,
        notes=(payload.notes or "").strip() or None,
        payment_status=PaymentStatus.PENDING,
        fulfillment_status=FulfillmentStatus.NEW,
    )
    db.add(order)
    await db.commit()
    await db.refresh(order)
    return order


async def attach_session_id(db: AsyncSession, order_id: str, session_id: str) -> None:
    await db.execute(
        update(Order)
        .where(Order.id == order_id)
        .values(stripe_session_id=session_id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()


async def get_order_for_course(db: AsyncSession, order_id: str, course_id: str) -> Order | None:
    """Paid order scoped by id and owning course. Other courses' orders read as absent."""
    result = await db.execute(
        select(Order).where(
            Order.id == order_id,
            Order.course_id == course_id,
            Order.payment_status == PaymentStatus.PAID,
        )
    )
    return result.scalar_one_or_none()


async def transition_status(
    db: AsyncSession,
    order_id: str,
    course_id: str,
    target: FulfillmentStatus,
) -> Order | None:
    """
    Move an order along the fulfilment graph.

    Returns None when the order does not exist for this course.
    Raises InvalidTransition for an edge outside the graph and
    TransitionConflict when the compare-and-set on the current status misses.
    """
    target = FulfillmentStatus(target)
    order = await get_order_for_course(db, order_id, course_id)
    if order is None:
        return None

    current = order.fulfillment_status
    check_transition(current, target)

    # Compare-and-set: WHERE fulfillment_status = <status we validated against>
    result = await db.execute(
        update(Order)
        .where(
            Order.id == order_id,
            Order.course_id == course_id,
            Order.fulfillment_status == current,
        )
        .values(fulfillment_status=target)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise TransitionConflict(
            f"Order {order_id} changed while updating; reload and try again."
        )

    await db.commit()
    await db.refresh(order)
    logger.info("Order %s: %s -> %s", order_id, current.value, target.value)
    return order


ORDER_SORT_COLUMNS = {
    "created_at": Order.created_at,
    "customer_name": Order.customer_name,
    "total_price": Order.total_price,
    "status": Order.fulfillment_status,
}


def as_utc(value: datetime) -> datetime:
    # Naive bounds are taken as UTC, matching how created_at is written
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def list_course_orders(
    db: AsyncSession,
    course_id: str,
    status: FulfillmentStatus | None = None,
    limit: int = 100,
    created_from: datetime | None = None,
    created_to: datetime | None = None,
    q: str | None = None,
    sort: str = "created_at",
    direction: str = "desc",
) -> list[Order]:
    """
    Paid orders for a course, newest first unless another sort is asked for.

    created_from / created_to bound created_at inclusively. q matches the
    customer's name or email, case-insensitively. Rows that tie on the sort
    column come back in id order so pages are stable.
    """
    column = ORDER_SORT_COLUMNS[sort]
    ordering = column.asc() if direction == "asc" else column.desc()
    query = (
        select(Order)
        .where(Order.course_id == course_id, Order.payment_status == PaymentStatus.PAID)
        .order_by(ordering, Order.id)
        .limit(limit)
    )
    if status:
        query = query.where(Order.fulfillment_status == status)
    if created_from is not None:
        query = query.where(Order.created_at >= as_utc(created_from))
    if created_to is not None:
        query = query.where(Order.created_at <= as_utc(created_to))
    if q and q.strip():
        term = q.strip()
        query = query.where(or_(
            Order.customer_name.icontains(term, autoescape=True),
            Order.customer_email.icontains(term, autoescape=True),
        ))
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_paid_order_by_session(db: AsyncSession, session_id: str) -> Order | None:
    result = await db.execute(
        select(Order).where(
            Order.stripe_session_id == session_id,
            Order.payment_status == PaymentStatus.PAID,
        )
    )
    return result.scalar_one_or_none()


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


async def nearest_holes(
    db: AsyncSession, course_id: str, lat: float, lng: float, limit: int = 1
) -> list[NearestHole]:
    result = await db.execute(select(Hole).where(Hole.course_id == course_id))
    ranked = sorted(
        (
            NearestHole(
                hole_id=h.id,
                hole_number=h.hole_number,
                latitude=h.latitude,
                longitude=h.longitude,
                distance=haversine_m(lat, lng, h.latitude, h.longitude),
            )
            for h in result.scalars().all()
        ),
        key=lambda hole: hole.distance,
    )
    return ranked[:limit]
