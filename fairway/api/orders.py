"""
Fairway Orders: orders API

Staff routes (JWT required, scoped to the token's course):
  GET   /orders                      dashboard list: status, date range, customer search, sort
  PATCH /orders/{order_id}/status    fulfilment transition
Customer route (public):
  GET   /orders/by-session/{id}      thank-you page reconciliation lookup
"""
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from fairway.db.database import get_db
from fairway.db.order_ops import (
    TransitionConflict,
    as_utc,
    get_paid_order_by_session,
    list_course_orders,
    transition_status,
)
from fairway.models.status import FulfillmentStatus, InvalidTransition
from fairway.schemas.order import OrderOut, StatusUpdateRequest
from fairway.services.events import UPDATE, publish_order_event

router = APIRouter(prefix="/orders", tags=["orders"])


def staff_course_id(request: Request) -> str:
    """Course the authenticated staff member works for."""
    staff = getattr(request.state, "staff", None)
    if staff is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Token is not bound to a course.")
    return staff.course_id


@router.get("", response_model=list[OrderOut])
async def list_orders(
    status_filter: FulfillmentStatus | None = Query(None, alias="status"),
    created_from: datetime | None = Query(None, description="Earliest created_at, inclusive"),
    created_to: datetime | None = Query(None, description="Latest created_at, inclusive"),
    q: str | None = Query(None, max_length=255, description="Customer name or email contains"),
    sort: Literal["created_at", "customer_name", "total_price", "status"] = Query("created_at"),
    direction: Literal["asc", "desc"] = Query("desc"),
    limit: int = Query(100, ge=1, le=500),
    course_id: str = Depends(staff_course_id),
    db: AsyncSession = Depends(get_db),
):
    """Paid orders for the staff member's course, newest first by default."""
    if created_from and created_to and as_utc(created_from) > as_utc(created_to):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="created_from is after created_to.")
    return await list_course_orders(
        db,
        course_id,
        status=status_filter,
        limit=limit,
        created_from=created_from,
        created_to=created_to,
        q=q,
        sort=sort,
        direction=direction,
    )


@router.get("/by-session/{session_id}", response_model=OrderOut)
async def get_order_by_session(session_id: str, db: AsyncSession = Depends(get_db)):
    """
    Resolve a Stripe session id to its finalized order.
    404 until the payment webhook has run; callers are expected to retry.
    """
    order = await get_paid_order_by_session(db, session_id)
    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found for this session.")
    return order


@router.patch("/{order_id}/status", response_model=OrderOut)
async def update_order_status(
    order_id: str,
    payload: StatusUpdateRequest,
    course_id: str = Depends(staff_course_id),
    db: AsyncSession = Depends(get_db),
):
    """Operator-initiated fulfilment transition. Terminal orders reject every change."""
    try:
        order = await transition_status(db, order_id, course_id, payload.fulfillment_status)
    except InvalidTransition as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except TransitionConflict as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found.")

    await publish_order_event(UPDATE, order)
    return order
