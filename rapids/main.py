"""Rapids — FastAPI application entry point."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from rapids.config import settings
from rapids.db.database import open_db, close_db
from rapids.auth.middleware import ApiKeyAuthMiddleware
from rapids.services.api_key_service import ApiKeyService
from rapids.services.key_store import SqliteKeyStore

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


async def _rate_window_purge_loop(service: ApiKeyService, interval: int):
    """Background task: drop rate-limit windows of keys that stopped sending requests."""
    while True:
        await asyncio.sleep(interval)
        try:
            deleted = await service.purge_rate_windows()
            if deleted:
                logger.info("Rate window purge: removed %d stale windows", deleted)
        except Exception:
            logger.exception("Rate window purge failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting Rapids API key service...")
    db = await open_db(settings.database_path)
    app.state.db = db
    app.state.api_key_service = ApiKeyService(SqliteKeyStore(db))

    purge_task = None
    if settings.rate_window_purge_interval_seconds > 0:
        purge_task = asyncio.create_task(
            _rate_window_purge_loop(app.state.api_key_service, settings.rate_window_purge_interval_seconds)
        )

    logger.info("Rapids ready")
    yield

    if purge_task:
        purge_task.cancel()
    await close_db(db)
    app.state.db = None
    app.state.api_key_service = None
    logger.info("Rapids stopped")


app = FastAPI(
    title="Rapids",
    description="API key issuing, validation and rate limiting",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(ApiKeyAuthMiddleware)
# Added last so it runs outermost and answers preflight requests before auth
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Import and register routers
from rapids.api.keys import router as keys_router
from rapids.api.apps import router as apps_router
from rapids.api.shared_secrets import router as shared_secrets_router
from rapids.api.rues import router as rues_router

app.include_router(keys_router)
app.include_router(apps_router)
app.include_router(shared_secrets_router)
app.include_router(rues_router)


@app.get("/health")
async def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/v1/protected")
async def protected(request: Request):
    """Example resource guarded by ApiKeyAuthMiddleware."""
    key = request.state.api_key
    return {
        "message": "You have access to this protected resource!",
        "key_id": key.id,
        "scopes": key.scopes,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
