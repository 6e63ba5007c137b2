"""
Fairway Orders: staff authentication middleware

Customer-facing routes are public. The payment worker's publish hook presents
a shared secret instead of a JWT. Every other route needs a staff JWT whose
claims name the staff member and their course; the resulting StaffPrincipal
is attached to request.state.staff.
"""
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware

from fairway.core.security import PUBLISH_TOKEN_HEADER, decode_token, publish_token_valid, staff_from_claims

PUBLIC_PATHS = {
    "/",
    "/health",
    "/docs",
    "/openapi.json",
    "/checkout/sessions",
    "/holes/nearest",
    "/webhooks/stripe",
}
# Worker-only: authenticated by the shared hook secret, never by a staff JWT
PUBLISH_HOOK_PATH = "/notifications/publish"
PUBLIC_PREFIXES = ("/metrics", "/orders/by-session/")

# Browsers' EventSource cannot send headers, so the stream also takes ?access_token=
QUERY_TOKEN_PREFIX = "/notifications/stream/"


def _unauthorized(detail: str) -> JSONResponse:
    return JSONResponse(status_code=401, content={"detail": detail}, headers={"WWW-Authenticate": "Bearer"})


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1]
    if request.url.path.startswith(QUERY_TOKEN_PREFIX):
        return request.query_params.get("access_token")
    return None


class JWTAuthMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if request.method == "OPTIONS" or path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES):
            return await call_next(request)

        if path == PUBLISH_HOOK_PATH:
            if not publish_token_valid(request.headers.get(PUBLISH_TOKEN_HEADER)):
                return _unauthorized(f"Missing or invalid {PUBLISH_TOKEN_HEADER} header.")
            return await call_next(request)

        token = _bearer_token(request)
        if not token:
            return _unauthorized("Missing or invalid Authorization header. Expected: Bearer <token>")

        try:
            claims = decode_token(token)
        except JWTError as exc:
            return _unauthorized(f"Invalid or expired JWT: {exc}")

        staff = staff_from_claims(claims)
        if staff is None:
            return JSONResponse(status_code=403, content={"detail": "Token is not bound to a course."})

        request.state.staff = staff
        return await call_next(request)
