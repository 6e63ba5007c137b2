"""
Fairway client: HTTP access to the Fairway Orders API
"""
from datetime import datetime

import httpx

from fairway.client.errors import ApiError
from fairway.models.status import FulfillmentStatus
from fairway.schemas.order import NearestHole, OrderOut

DEFAULT_TIMEOUT_SECONDS = 10.0


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        message = body.get("error") or body.get("detail")
        if isinstance(message, list) and message:
            # FastAPI validation errors
            message = message[0].get("msg", str(message[0]))
        if message:
            return str(message)
    return f"HTTP {response.status_code}"


class FairwayClient:
    """Async client used by the customer checkout flow and the staff dashboard.

    Staff calls need a Bearer token whose claims carry the staff member's course.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url, headers=headers, timeout=timeout, transport=transport
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise ApiError(f"Fairway API unreachable: {exc}") from exc
        if not response.is_success:
            raise ApiError(_error_message(response), status_code=response.status_code)
        return response

    # ── Customer ──────────────────────────────────────────────────────────────

    async def create_checkout_session(self, body: dict, idempotency_key: str | None = None) -> str | None:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else {}
        response = await self._request("POST", "/checkout/sessions", json=body, headers=headers)
        return response.json().get("url")

    async def nearest_hole(self, course_id: str, lat: float, lng: float) -> list[NearestHole]:
        response = await self._request(
            "GET", "/holes/nearest", params={"course_id": course_id, "p_lat": lat, "p_lng": lng}
        )
        return [NearestHole.model_validate(h) for h in response.json()]

    async def order_by_session(self, session_id: str) -> OrderOut | None:
        """Finalized order for a checkout session, or None while the webhook has not run."""
        try:
            response = await self._request("GET", f"/orders/by-session/{session_id}")
        except ApiError as exc:
            if exc.status_code == 404:
                return None
            raise
        return OrderOut.model_validate(response.json())

    # ── Staff ─────────────────────────────────────────────────────────────────

    async def list_orders(
        self,
        status: FulfillmentStatus | None = None,
        limit: int = 100,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        q: str | None = None,
        sort: str = "created_at",
        direction: str = "desc",
    ) -> list[OrderOut]:
        params: dict = {"limit": limit, "sort": sort, "direction": direction}
        if status:
            params["status"] = FulfillmentStatus(status).value
        if created_from:
            params["created_from"] = created_from.isoformat()
        if created_to:
            params["created_to"] = created_to.isoformat()
        if q:
            params["q"] = q
        response = await self._request("GET", "/orders", params=params)
        return [OrderOut.model_validate(o) for o in response.json()]

    async def update_status(self, order_id: str, status: FulfillmentStatus) -> OrderOut:
        response = await self._request(
            "PATCH",
            f"/orders/{order_id}/status",
            json={"fulfillment_status": FulfillmentStatus(status).value},
        )
        return OrderOut.model_validate(response.json())

    def stream_order_events(self, course_id: str):
        """Open the course's SSE stream. Use as `async with client.stream_order_events(...) as response`."""
        return self._client.stream(
            "GET",
            f"/notifications/stream/{course_id}",
            headers={"Accept": "text/event-stream"},
            timeout=httpx.Timeout(DEFAULT_TIMEOUT_SECONDS, read=None),
        )
