"""
Fairway Orders: order DB model

An order is inserted as payment_status=pending by the checkout endpoint and
becomes visible to staff once the payment webhook marks it paid. From then on
only fulfillment_status changes (see fairway.models.status).
"""
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, DateTime, Enum, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from fairway.db.database import Base
from fairway.models.status import FulfillmentStatus, PaymentStatus


def _enum_values(enum_cls):
    # Store the literal lower-case values, not the member names
    return [m.value for m in enum_cls]


class Order(Base):
    """
    One customer order for a course.
    ordered_items and total_price are fixed at checkout time.
    """
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    course_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ordered_items: Mapped[list[dict]] = mapped_column(JSON, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    hole_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="payment_status", native_enum=False, length=16,
             values_callable=_enum_values),
        default=PaymentStatus.PENDING, nullable=False,
    )
    fulfillment_status: Mapped[FulfillmentStatus] = mapped_column(
        Enum(FulfillmentStatus, name="fulfillment_status", native_enum=False, length=16,
             values_callable=_enum_values),
        default=FulfillmentStatus.NEW, nullable=False,
    )
    stripe_session_id: Mapped[str | None] = mapped_column(String(255), unique=True, index=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} course={self.course_id} status={self.fulfillment_status}>"
