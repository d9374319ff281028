"""Main FastAPI application for the auto-reply engine."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from autoreply.api.events import router as events_router
from autoreply.api.handoffs import router as handoffs_router
from autoreply.api.rules import router as rules_router
from autoreply.config import create_engine_from_settings, get_settings
from autoreply.database.connection import AsyncSessionLocal, close_db, init_db
from autoreply.database.kv_store import SqlKeyValueStore
from autoreply.workers.scheduler import schedule_token_refresh, start_scheduler, stop_scheduler

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown tasks."""
    # Startup
    logger.info("Starting auto-reply engine")

    # Initialize database
    await init_db()
    logger.info("Database initialized")

    engine = create_engine_from_settings(SqlKeyValueStore(AsyncSessionLocal), settings)
    app.state.engine = engine

    # Keep the tenant token warm
    start_scheduler()
    if engine.credentials is not None and settings.feishu_app_id:
        schedule_token_refresh(engine.credentials, settings.token_refresh_interval_seconds)

    yield

    # Shutdown
    logger.info("Shutting down auto-reply engine")

    # Let delayed replies finish
    records = await engine.drain()
    logger.info(f"Drained {len(records)} in-flight executions")

    stop_scheduler()

    # Close database
    await close_db()
    logger.info("Database closed")


app = FastAPI(
    title=settings.app_name,
    description="Rule-based automatic replies for Feishu group and direct chats",
    version=settings.app_version,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(events_router)
app.include_router(rules_router)
app.include_router(handoffs_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs_url": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.app_version}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
    )
