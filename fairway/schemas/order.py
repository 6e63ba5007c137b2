"""
Fairway Orders: order schemas shared by the API, the realtime channel and the client
"""
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from fairway.models.status import FulfillmentStatus, PaymentStatus


class OrderedItem(BaseModel):
    item_name: str
    quantity: int = Field(..., ge=1)
    price: Decimal


class OrderOut(BaseModel):
    id: str
    course_id: str
    created_at: datetime | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    # An order that reaches the feed always has something in it
    ordered_items: list[OrderedItem] = Field(..., min_length=1)
    total_price: Decimal
    hole_number: int | None = None
    notes: str | None = None
    payment_status: PaymentStatus = PaymentStatus.PAID
    fulfillment_status: FulfillmentStatus
    stripe_session_id: str | None = None

    model_config = {"from_attributes": True}


class StatusUpdateRequest(BaseModel):
    fulfillment_status: FulfillmentStatus


class OrderEventMessage(BaseModel):
    """Payload published on the course channel: the raw order row plus the change type."""
    type: Literal["INSERT", "UPDATE"]
    record: OrderOut


class NearestHole(BaseModel):
    hole_id: str
    hole_number: int
    latitude: float
    longitude: float
    distance: float = Field(..., description="Metres from the requested point")
