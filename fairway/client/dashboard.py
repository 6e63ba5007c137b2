"""
Fairway client: staff order board

Holds the course's orders most-recent-first, the new-order overlay with its
FIFO queue, and the unread notification counter. Status changes go through
the API and are applied locally only once the store confirms them.
"""
import logging
from collections import deque

from fairway.client.errors import ApiError, TransitionFailed
from fairway.client.http import FairwayClient
from fairway.client.realtime import EventKind, OrderEvent, OrderSubscription
from fairway.models.status import FulfillmentStatus, check_transition, next_statuses
from fairway.schemas.order import OrderOut

logger = logging.getLogger(__name__)


class NotificationCounter:
    """Unread new-order count. Only an explicit 'viewed' action resets it."""

    def __init__(self):
        self.count = 0

    def increment(self) -> int:
        self.count += 1
        return self.count

    def mark_viewed(self) -> None:
        self.count = 0


class OrderBoard:

    def __init__(self, client: FairwayClient, course_id: str):
        self.client = client
        self.course_id = course_id
        self.orders: list[OrderOut] = []
        self.counter = NotificationCounter()
        self.overlay: OrderOut | None = None
        self._overlay_queue: deque[OrderOut] = deque()
        # order id → target status of a write still in flight
        self.in_flight: dict[str, FulfillmentStatus] = {}
        self.needs_refresh = False

    # ── Queries ───────────────────────────────────────────────────────────────

    def get(self, order_id: str) -> OrderOut | None:
        return next((o for o in self.orders if o.id == order_id), None)

    @property
    def unread_count(self) -> int:
        return self.counter.count

    @property
    def queued_alerts(self) -> list[OrderOut]:
        return list(self._overlay_queue)

    def allowed_actions(self, order_id: str) -> frozenset[FulfillmentStatus]:
        """Statuses the dropdown may offer. Empty for terminal orders and for writes in flight."""
        order = self.get(order_id)
        if order is None or order_id in self.in_flight:
            return frozenset()
        return next_statuses(order.fulfillment_status)

    # ── Realtime events ───────────────────────────────────────────────────────

    def apply(self, event: OrderEvent) -> None:
        if event.kind is EventKind.RECONNECTED:
            self.needs_refresh = True
            return

        order = event.order
        if order is None or order.course_id != self.course_id:
            return

        if event.kind is EventKind.INSERT:
            if self._replace(order):
                # Duplicate delivery of an order we already hold
                return
            self.orders.insert(0, order)
            self.counter.increment()
            self._announce(order)
        elif event.kind is EventKind.UPDATE:
            if not self._replace(order):
                logger.debug("Update for unknown order %s; a refresh will pick it up", order.id)

    def _replace(self, order: OrderOut) -> bool:
        for index, existing in enumerate(self.orders):
            if existing.id == order.id:
                self.orders[index] = order
                if self.overlay is not None and self.overlay.id == order.id:
                    self.overlay = order
                return True
        return False

    def _announce(self, order: OrderOut) -> None:
        if self.overlay is None:
            self.overlay = order
        else:
            self._overlay_queue.append(order)

    def dismiss_overlay(self) -> OrderOut | None:
        """Close the current alert and show the next queued one, if any."""
        self.overlay = self._overlay_queue.popleft() if self._overlay_queue else None
        return self.overlay

    def mark_notifications_viewed(self) -> None:
        self.counter.mark_viewed()

    async def run(self, subscription: OrderSubscription) -> None:
        """Apply events from an open subscription until it closes."""
        async for event in subscription.events():
            self.apply(event)

    # ── Store round-trips ─────────────────────────────────────────────────────

    async def refresh(self, status: FulfillmentStatus | None = None) -> list[OrderOut]:
        """Re-fetch the order list; the only way to recover events missed while disconnected."""
        self.orders = await self.client.list_orders(status=status)
        self.needs_refresh = False
        return self.orders

    async def transition(self, order_id: str, target: FulfillmentStatus) -> OrderOut:
        """
        Ask the store to move an order to `target`.

        Raises InvalidTransition (never sent) for edges outside the graph and
        TransitionFailed when the write fails. On failure the displayed status
        stays the last persisted value.
        """
        target = FulfillmentStatus(target)
        order = self.get(order_id)
        if order is None:
            raise TransitionFailed("Order is not on this board; refresh and try again.")
        check_transition(order.fulfillment_status, target)
        if order_id in self.in_flight:
            raise TransitionFailed("This order is already being updated.")

        self.in_flight[order_id] = target
        try:
            updated = await self.client.update_status(order_id, target)
        except ApiError as exc:
            if exc.status_code in (404, 409):
                # Someone else changed or removed it; our copy is stale
                self.needs_refresh = True
            raise TransitionFailed(exc.message, retryable=exc.retryable) from exc
        finally:
            self.in_flight.pop(order_id, None)

        held = self.get(order_id)
        # A realtime update that landed while the PATCH was in flight is newer
        if held is not None and held.fulfillment_status == order.fulfillment_status:
            self._replace(updated)
        return updated
