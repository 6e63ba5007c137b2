"""
Fairway Orders: Idempotency-Key handling for checkout submissions

A customer who double-taps "Pay" or retries after a dropped response must get
the same hosted checkout URL back, not a second pending order.
  - key seen, same body        → stored response replayed
  - key seen, different body   → 422
  - same key still processing  → 409 (client retries shortly)
5xx responses are never stored, so the key stays usable after a failure.
"""
import hashlib
import json

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from fairway.core.config import get_settings
from fairway.core.redis_client import get_redis, idempotency_keys

settings = get_settings()

IN_FLIGHT_TTL_SECONDS = 60
IDEMPOTENT_ROUTES = {("POST", "/checkout/sessions"), ("POST", "/checkout/sessions/")}


def _fingerprint(body: bytes) -> str:
    return hashlib.sha256(body).hexdigest()


class IdempotencyMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next) -> Response:
        idem_key = request.headers.get("Idempotency-Key")
        if not idem_key or (request.method, request.url.path) not in IDEMPOTENT_ROUTES:
            return await call_next(request)

        redis = get_redis()
        cache_key, lock_key = idempotency_keys(idem_key)
        fingerprint = _fingerprint(await request.body())

        cached = await redis.get(cache_key)
        if cached:
            stored = json.loads(cached)
            if stored["fingerprint"] != fingerprint:
                return JSONResponse(
                    status_code=422,
                    content={"error": "Idempotency-Key was already used for a different checkout."},
                )
            return JSONResponse(
                content=stored["body"],
                status_code=stored["status_code"],
                headers={"X-Idempotency-Replay": "true"},
            )

        if not await redis.set(lock_key, fingerprint, nx=True, ex=IN_FLIGHT_TTL_SECONDS):
            return JSONResponse(status_code=409, content={"error": "This checkout is already being processed."})

        try:
            response = await call_next(request)
            body_bytes = b"".join([chunk async for chunk in response.body_iterator])

            if response.status_code < 500:
                try:
                    body = json.loads(body_bytes)
                except ValueError:
                    body = body_bytes.decode("utf-8", errors="replace")
                await redis.setex(
                    cache_key,
                    settings.IDEMPOTENCY_KEY_TTL_SECONDS,
                    json.dumps({"fingerprint": fingerprint, "status_code": response.status_code, "body": body}),
                )
        finally:
            await redis.delete(lock_key)

        return Response(
            content=body_bytes,
            status_code=response.status_code,
            media_type=response.media_type,
            headers=dict(response.headers),
        )
