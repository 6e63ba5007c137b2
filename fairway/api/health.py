"""
Fairway Orders: health endpoint
"""
import asyncio

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from fairway.core.config import get_settings
from fairway.core.redis_client import get_redis
from fairway.db.database import engine

settings = get_settings()
router = APIRouter(tags=["health"])


async def _ping_db():
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def _ping_redis():
    await get_redis().ping()


# Redis carries both the realtime feed and the Celery broker
PROBES = {"database": _ping_db, "redis": _ping_redis}


async def _probe(check) -> str:
    try:
        await asyncio.wait_for(check(), timeout=settings.HEALTH_CHECK_TIMEOUT)
    except Exception as e:
        return f"error: {str(e)[:100]}"
    return "ok"


@router.get("/health")
async def health_check():
    results = await asyncio.gather(*(_probe(check) for check in PROBES.values()))
    deps = dict(zip(PROBES, results))
    healthy = all(state == "ok" for state in deps.values())

    return JSONResponse(
        content={
            "status": "healthy" if healthy else "degraded",
            "service": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "dependencies": deps,
        },
        status_code=200 if healthy else 503,
    )
