"""
Fairway Orders: FastAPI application entrypoint
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from fairway.core.config import get_settings
from fairway.core.redis_client import close_redis
from fairway.db.database import engine, Base
from fairway.middleware.auth import JWTAuthMiddleware
from fairway.middleware.idempotency import IdempotencyMiddleware
from fairway.models import course, order  # noqa: F401  (register tables on Base)
from fairway.api import checkout, health, holes, notifications, orders, webhooks

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create tables (migrations own the schema in production)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="Fairway Orders",
    description="Golf-course food ordering: checkout reconciliation, fulfilment and realtime staff feed.",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Idempotency is added first so it runs inside auth
app.add_middleware(IdempotencyMiddleware)
app.add_middleware(JWTAuthMiddleware)

if settings.METRICS_ENABLED:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics")

app.include_router(checkout.router)
app.include_router(orders.router)
app.include_router(holes.router)
app.include_router(webhooks.router)
app.include_router(notifications.router)
app.include_router(health.router)


@app.get("/")
async def root():
    return {"service": settings.SERVICE_NAME, "version": settings.SERVICE_VERSION}
