import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from competition_engine import __version__
from competition_engine.api.v1 import archives, competitions, engine
from competition_engine.core.clock import utcnow
from competition_engine.core.config import settings
from competition_engine.core.database import async_session_maker
from competition_engine.core.logging import setup_logging
from competition_engine.core.redis import close_redis, get_redis
from competition_engine.middleware.metrics import PrometheusMiddleware, metrics_endpoint
from competition_engine.services.engine import CompetitionEngine
from competition_engine.services.notification_service import NotificationDispatcher
from competition_engine.services.redis_service import RedisService

logger = logging.getLogger(__name__)

MAINTENANCE_LOCK = "competition_maintenance"

# Background task control
_maintenance_task: asyncio.Task | None = None


async def run_maintenance_once() -> None:
    """Run one maintenance cycle unless another instance holds the lock."""
    redis = await get_redis()
    redis_service = RedisService(redis)

    acquired, owner_id = await redis_service.acquire_lock(
        MAINTENANCE_LOCK, ttl=settings.MAINTENANCE_LOCK_TTL
    )
    if not acquired:
        logger.info("Maintenance cycle already running elsewhere, skipping")
        return

    try:
        async with async_session_maker() as db:
            competition_engine = CompetitionEngine(db, NotificationDispatcher(redis_service))
            await competition_engine.run_maintenance_cycle(utcnow())
    finally:
        await redis_service.release_lock(MAINTENANCE_LOCK, owner_id)


async def maintenance_loop():
    """Background task running the maintenance cycle on a fixed interval."""
    while True:
        try:
            await run_maintenance_once()
            await asyncio.sleep(settings.MAINTENANCE_INTERVAL_SECONDS)

        except asyncio.CancelledError:
            logger.info("Maintenance loop cancelled")
            break
        except Exception as e:
            logger.error(f"Error in maintenance loop: {e}")
            await asyncio.sleep(settings.MAINTENANCE_INTERVAL_SECONDS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    global _maintenance_task

    setup_logging(settings.LOG_LEVEL)
    logger.info("Starting competition engine...")

    if settings.MAINTENANCE_ENABLED:
        logger.info("Starting maintenance loop")
        _maintenance_task = asyncio.create_task(maintenance_loop())

    yield

    # Shutdown
    if _maintenance_task:
        logger.info("Stopping maintenance loop")
        _maintenance_task.cancel()
        try:
            await _maintenance_task
        except asyncio.CancelledError:
            pass
        _maintenance_task = None

    await close_redis()


app = FastAPI(
    title="Competition Engine",
    version=__version__,
    description="Seasonal competition lifecycle and reward engine",
    lifespan=lifespan,
)

# Prometheus Metrics Middleware (must be first to capture all requests)
app.add_middleware(PrometheusMiddleware)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include API routers
app.include_router(competitions.router, prefix="/api/v1/competitions", tags=["competitions"])
app.include_router(engine.router, prefix="/api/v1/engine", tags=["engine"])
app.include_router(archives.router, prefix="/api/v1/archives", tags=["archives"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# Prometheus metrics endpoint
app.add_route("/metrics", metrics_endpoint)
