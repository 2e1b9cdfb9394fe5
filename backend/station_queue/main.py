"""
Station Queue API: application entry point.

One process serves one station. The side-effect dispatcher worker lives for
the lifetime of the application and is drained on shutdown.
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from station_queue.api.deps import get_queue_engine
from station_queue.api.middleware import RequestLoggingMiddleware
from station_queue.api.router import api_router
from station_queue.core.config import get_settings
from station_queue.core.exception_handlers import register_exception_handlers
from station_queue.core.logging import get_logger, setup_logging
from station_queue.core.metrics import metrics_endpoint
from station_queue.services.cache_service import close_redis, get_cache_stats, get_redis
from station_queue.services.engine import QueueEngine

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger = get_logger(__name__)
    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        station=settings.STATION_NAME,
    )

    if await get_redis() is None:
        logger.warning("redis_unavailable", message="Running without cache")

    dispatcher = get_queue_engine().dispatcher
    await dispatcher.start()

    yield

    await dispatcher.stop()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Departure queue and seat allocation for a louage station",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)
app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check(engine: QueueEngine = Depends(get_queue_engine)):
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "station": settings.STATION_NAME,
        "dispatcher": {"running": engine.dispatcher.running, "pending": engine.dispatcher.pending},
        "cache": await get_cache_stats(),
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"{settings.APP_NAME} - {settings.STATION_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
