"""Hey DJ API application"""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.orm import Session

from heydj.core.config import settings
from heydj.core.logging import setup_logging
from heydj.core.middleware import setup_cors_middleware, security_middleware, global_exception_handler
from heydj.core.otel import initialize_otel, setup_otel_logging, instrument_fastapi, instrument_sqlalchemy
from heydj.db.redis import get_redis_client
from heydj.db.session import engine, get_db, init_db, check_database
from heydj.models import Base  # noqa: F401  registers all models with Base.metadata

from heydj.api import auth, events, attendee, billing, subscriptions, notifications, dashboard, contact
from heydj.api import settings as settings_router

setup_logging()
logger = logging.getLogger(__name__)


def start_background_tasks() -> list:
    from heydj.tasks.scheduler import expiry_sweep_task
    return [asyncio.create_task(expiry_sweep_task())]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Bring up dependencies on startup; cancel background tasks on shutdown"""
    # Startup
    if initialize_otel():
        if setup_otel_logging():
            logger.info(f"OpenTelemetry fully initialized, exporting to {settings.OTEL_EXPORTER_OTLP_ENDPOINT}")
        else:
            logger.warning("OpenTelemetry metrics/traces initialized but logging setup failed")
        instrument_sqlalchemy(engine)
    else:
        logger.info("OpenTelemetry not configured - running without distributed tracing")

    logger.info("Initializing database...")
    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    logger.info("Testing Redis connection...")
    try:
        get_redis_client().ping()
        logger.info("Redis connection successful")
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        raise

    logger.info("Starting scheduler tasks...")
    tasks = start_background_tasks()
    logger.info("Scheduler tasks started")

    yield

    # Shutdown
    logger.info("Shutting down...")
    for task in tasks:
        task.cancel()


# Create FastAPI app
app = FastAPI(
    title="Hey DJ Backend",
    description="Song requests and voting for live DJ events",
    version="1.0.0",
    lifespan=lifespan
)

instrument_fastapi(app)
setup_cors_middleware(app)
app.middleware("http")(security_middleware)
app.add_exception_handler(Exception, global_exception_handler)

# Include routers
app.include_router(auth.router)
app.include_router(events.router)
app.include_router(events.songs_router)  # Separate router for /api/songs
app.include_router(attendee.router)
app.include_router(billing.router)
app.include_router(subscriptions.router)
app.include_router(subscriptions.stripe_router)  # Separate router for /api/stripe
app.include_router(notifications.router)
app.include_router(settings_router.router)
app.include_router(dashboard.router)
app.include_router(contact.router)


# Metrics
@app.get("/metrics")
def metrics_endpoint():
    """Prometheus scrape target"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# Health check endpoint
@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Database and Redis reachability. 503 when the database is down."""
    database_ok = check_database(db)

    try:
        redis_ok = bool(get_redis_client().ping())
    except Exception as e:
        logger.warning(f"Redis probe failed: {e}")
        redis_ok = False

    body = {
        "status": "healthy" if database_ok else "unhealthy",
        "database": "ok" if database_ok else "unreachable",
        "redis": "ok" if redis_ok else "unreachable",
    }
    return JSONResponse(status_code=200 if database_ok else 503, content=body)
