"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError

from config.settings import settings
from src.ss_admin.api.router import router as admin_router
from src.ss_cluster.coordinator import ClusterCoordinator
from src.ss_common.database import engine
from src.ss_common.errors import AppError, ServiceUnavailableError
from src.ss_common.redis_client import close_redis, get_queue_redis, get_redis
from src.ss_common.response import error_response
from src.ss_gateway.middleware.request_log import RequestLogMiddleware
from src.ss_ingest.api.router import router as ingest_router
from src.ss_leaderboard.api.router import router as leaderboard_router
from src.ss_market.api.router import router as market_router

logger = logging.getLogger(__name__)

coordinator: ClusterCoordinator | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis, claim a cluster slot. Shutdown: release, dispose."""
    global coordinator  # noqa: PLW0603
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await (await get_redis()).ping()
    await (await get_queue_redis()).ping()
    if settings.CLUSTER_ENABLED:
        coordinator = ClusterCoordinator()
        await coordinator.claim()
        coordinator.start_heartbeat()
    yield
    # Shutdown
    if coordinator is not None:
        await coordinator.release()
        coordinator = None
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return error_response(request, exc.code, exc.message, exc.http_status)


async def transient_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Cache or store unreachable: tell the caller to retry, hide the details."""
    logger.warning("Transient failure on %s: %s", request.url.path, type(exc).__name__)
    err = ServiceUnavailableError()
    return error_response(request, err.code, err.message, err.http_status)


for _exc_type in (RedisConnectionError, RedisTimeoutError, OperationalError, DBAPIError):
    app.add_exception_handler(_exc_type, transient_error_handler)


app.include_router(ingest_router, prefix="/api/v1")
app.include_router(leaderboard_router, prefix="/api/v1")
app.include_router(market_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, Any]:
    body: dict[str, Any] = {"status": "ok", "version": "0.1.0"}
    if coordinator is not None and coordinator.shard_range is not None:
        shards = coordinator.shard_range
        body["cluster"] = {
            "slot": coordinator.slot_id,
            "shards": [shards.first, shards.last],
        }
    return body
