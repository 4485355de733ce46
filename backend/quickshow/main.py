"""
QuickShow Booking API - Main Application Entry Point

Seat booking backend for a movie ticketing platform:
- Concurrency-safe seat holds with optimistic locking on the show row
- Hosted checkout with webhook-driven payment reconciliation
- Durable deferred tasks that release unpaid holds and send notifications
- Structured logging with request correlation
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from quickshow.core.config import get_settings
from quickshow.core.logging import setup_logging, get_logger
from quickshow.core.metrics import metrics_endpoint
from quickshow.api.router import api_router
from quickshow.api.middleware import RequestLoggingMiddleware
from quickshow.api.exception_handlers import register_exception_handlers
from quickshow.db.session import SessionLocal, engine
from quickshow.services.provider_factory import build_services
from quickshow.workers.task_worker import TaskWorker

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

    services = await build_services(settings)
    app.state.services = services
    if services.cache.client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    worker = None
    if settings.TASK_WORKER_ENABLED:
        worker = TaskWorker(SessionLocal, services)
        worker.start()

    yield

    # Cleanup
    if worker is not None:
        await worker.stop()
    await services.close()
    await engine.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Movie seat booking API with concurrency-safe holds and payment reconciliation",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

# Routes
app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    services = getattr(app.state, "services", None)
    cache_stats = await services.cache.stats() if services else {"status": "disabled"}
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
