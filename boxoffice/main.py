"""
Box Office API - Main Application Entry Point

Seat inventory and order lifecycle for scheduled event sessions:
- Seat-granular conditional writes, so no seat is ever sold twice
- Unpaid holds expired by a background sweep
- Unsold seats locked shortly before each session starts
- Redis-cached seat maps and paid-order notifications
- Structured logging with request correlation
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from boxoffice.api.middleware import RequestLoggingMiddleware
from boxoffice.api.router import api_router
from boxoffice.core.clock import get_clock
from boxoffice.core.config import get_settings
from boxoffice.core.exceptions import BoxOfficeError
from boxoffice.core.logging import get_logger, setup_logging
from boxoffice.core.metrics import metrics_endpoint
from boxoffice.db.session import get_session_factory
from boxoffice.infrastructure.redis_client import close_redis, get_redis
from boxoffice.services.booking_service import wait_for_notifications
from boxoffice.services.cache_service import get_cache_stats, wait_for_invalidations
from boxoffice.services.notifier_factory import get_notifier
from boxoffice.workers.expiration_sweeper import ExpirationSweeper
from boxoffice.workers.lock_scheduler import LockScheduler

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    # Initialize Redis connection
    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache and notifications")

    workers = []
    if settings.WORKERS_ENABLED:
        session_factory = get_session_factory()
        clock = get_clock()
        workers = [
            ExpirationSweeper(session_factory, clock, get_notifier()),
            LockScheduler(session_factory, clock),
        ]
        for worker in workers:
            worker.start()
    app.state.workers = workers

    yield

    # Cleanup
    for worker in workers:
        await worker.stop()
    await wait_for_notifications()
    await wait_for_invalidations()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Seat inventory and booking API with concurrency-safe reservations",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

# Routes
app.include_router(api_router)


@app.exception_handler(BoxOfficeError)
async def box_office_error_handler(request: Request, exc: BoxOfficeError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
        "workers": [
            {"name": worker.name, "running": worker.running}
            for worker in getattr(app.state, "workers", [])
        ],
    }


@app.get("/metrics", tags=["Health"])
def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
