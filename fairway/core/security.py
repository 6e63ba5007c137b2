"""
Fairway Orders: staff JWT helpers
"""
import hmac
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import jwt

from fairway.core.config import get_settings

settings = get_settings()


def create_access_token(data: dict[str, Any]) -> str:
    """Issue a staff token. Claims must include the staff member's course_id."""
    payload = data.copy()
    expire = datetime.now(tz=timezone.utc) + timedelta(
        minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES
    )
    payload.update({"exp": expire, "type": "access", "jti": str(uuid.uuid4())})
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    """Decode and validate a JWT. Raises JWTError on failure."""
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


@dataclass(frozen=True)
class StaffPrincipal:
    subject: str
    course_id: str
    role: str = "employee"


def staff_from_claims(claims: dict[str, Any]) -> StaffPrincipal | None:
    """None when the token does not name both a staff member and their course."""
    subject, course_id = claims.get("sub"), claims.get("course_id")
    if not subject or not course_id:
        return None
    return StaffPrincipal(subject=str(subject), course_id=str(course_id), role=claims.get("role", "employee"))


# ── Internal publish hook ─────────────────────────────────────

PUBLISH_TOKEN_HEADER = "X-Publish-Token"


def publish_token_valid(presented: str | None) -> bool:
    """Constant-time check of the worker's hook secret. Always False while no secret is configured."""
    expected = settings.PUBLISH_HOOK_TOKEN
    if not expected or not presented:
        return False
    return hmac.compare_digest(presented.encode(), expected.encode())
