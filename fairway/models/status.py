"""
Fairway Orders: order statuses and the fulfilment state machine

Forward path: new → preparing → on_the_way → delivered.
cancelled is reachable from any non-terminal status.
delivered and cancelled are terminal.
"""
from enum import Enum as PyEnum


class FulfillmentStatus(str, PyEnum):
    NEW = "new"
    PREPARING = "preparing"
    ON_THE_WAY = "on_the_way"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, PyEnum):
    PENDING = "pending"
    PAID = "paid"
    EXPIRED = "expired"


ALLOWED_TRANSITIONS: dict[FulfillmentStatus, frozenset[FulfillmentStatus]] = {
    FulfillmentStatus.NEW: frozenset({FulfillmentStatus.PREPARING, FulfillmentStatus.CANCELLED}),
    FulfillmentStatus.PREPARING: frozenset({FulfillmentStatus.ON_THE_WAY, FulfillmentStatus.CANCELLED}),
    FulfillmentStatus.ON_THE_WAY: frozenset({FulfillmentStatus.DELIVERED, FulfillmentStatus.CANCELLED}),
    FulfillmentStatus.DELIVERED: frozenset(),
    FulfillmentStatus.CANCELLED: frozenset(),
}


class InvalidTransition(Exception):
    """Raised when a status change is not an edge of the fulfilment graph."""

    def __init__(self, current: FulfillmentStatus | str, target: FulfillmentStatus | str):
        self.current = FulfillmentStatus(current)
        self.target = FulfillmentStatus(target)
        if is_terminal(self.current):
            message = f"Order is already {self.current.value}; no further changes allowed."
        else:
            message = f"Cannot move order from '{self.current.value}' to '{self.target.value}'."
        super().__init__(message)


def is_terminal(status: FulfillmentStatus | str) -> bool:
    return not ALLOWED_TRANSITIONS[FulfillmentStatus(status)]


def next_statuses(status: FulfillmentStatus | str) -> frozenset[FulfillmentStatus]:
    """Statuses an operator may pick next; empty for delivered and cancelled."""
    return ALLOWED_TRANSITIONS[FulfillmentStatus(status)]


def check_transition(current: FulfillmentStatus | str, target: FulfillmentStatus | str) -> None:
    if FulfillmentStatus(target) not in ALLOWED_TRANSITIONS[FulfillmentStatus(current)]:
        raise InvalidTransition(current, target)
