import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, APIRouter, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text, inspect
from sqlalchemy.orm import configure_mappers
from datetime import datetime, timezone

from app.core.config import settings
from app.core.database import engine
from app.api.v1 import passes, escalations
from app.api.v1.deps import get_escalation_monitor
from app.services.errors import InternalError

logger = logging.getLogger(__name__)

KEY_TABLES = ("users", "students", "locations", "passes", "pass_legs")


def verify_orm_mappings() -> None:
    """
    Verify all SQLAlchemy ORM mappings are valid at startup.

    This catches relationship configuration errors early before
    any requests are processed, preventing cryptic 500 errors.
    """
    # Import all models to ensure they are registered
    from app.models import (
        User, Student, Group,
        Location, LocationStaffAssignment,
        Pass, PassLeg,
        Notification,
    )

    # This will raise InvalidRequestError if any relationships are misconfigured
    configure_mappers()
    logger.info("ORM mapper configuration verified successfully")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan events.

    Startup:
    - Verify ORM mappings to fail fast if models are misconfigured
    - Start the escalation monitor (when enabled)

    Shutdown:
    - Stop the escalation monitor
    """
    # Startup
    try:
        verify_orm_mappings()
    except Exception as e:
        logger.critical(f"ORM mapper configuration failed: {e}")
        raise RuntimeError(f"Application cannot start: ORM mapping error - {e}") from e

    monitor = None
    if settings.ESCALATION_MONITOR_ENABLED:
        monitor = app.dependency_overrides.get(get_escalation_monitor, get_escalation_monitor)()
        monitor.start()
    else:
        logger.info("Escalation monitor disabled (ESCALATION_MONITOR_ENABLED=false)")

    yield

    # Shutdown
    if monitor is not None:
        await monitor.stop()
    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware - must be added FIRST to ensure headers on all responses including errors
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler to ensure JSON responses with proper CORS headers.

    Note: HTTPException is handled by FastAPI's default handler and will
    not reach this handler, preserving intended status codes.
    """
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": InternalError("Internal server error").to_detail()},
    )

# API v1 router
api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(passes.router, tags=["passes"])
api_v1_router.include_router(escalations.router, tags=["escalations"])

app.include_router(api_v1_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint.

    Verifies:
    - Database connectivity
    - Database migrations status (key tables present)
    - Escalation monitor status
    """
    health = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {
            "database": {"status": "unknown", "message": None},
            "migrations": {"status": "unknown", "message": None},
            "escalation_monitor": {"status": "unknown", "message": None},
        }
    }

    all_healthy = True

    # Check database connectivity
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        health["components"]["database"]["status"] = "healthy"
        health["components"]["database"]["message"] = "Connected"
    except Exception as e:
        health["components"]["database"]["status"] = "unhealthy"
        health["components"]["database"]["message"] = str(e)
        all_healthy = False

    # Check migrations status (basic check - verify key tables exist)
    try:
        async with engine.connect() as conn:
            table_names = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        present = [name for name in KEY_TABLES if name in table_names]
        if len(present) == len(KEY_TABLES):
            health["components"]["migrations"]["status"] = "healthy"
        else:
            health["components"]["migrations"]["status"] = "warning"
        health["components"]["migrations"]["message"] = f"{len(present)}/{len(KEY_TABLES)} key tables present"
    except Exception as e:
        health["components"]["migrations"]["status"] = "unhealthy"
        health["components"]["migrations"]["message"] = str(e)
        all_healthy = False

    # Escalation monitor is not critical for serving requests
    if not settings.ESCALATION_MONITOR_ENABLED:
        health["components"]["escalation_monitor"]["status"] = "disabled"
        health["components"]["escalation_monitor"]["message"] = "ESCALATION_MONITOR_ENABLED is false"
    elif get_escalation_monitor().running:
        health["components"]["escalation_monitor"]["status"] = "healthy"
        health["components"]["escalation_monitor"]["message"] = "Running"
    else:
        health["components"]["escalation_monitor"]["status"] = "stopped"
        health["components"]["escalation_monitor"]["message"] = "Not running"

    if not all_healthy:
        health["status"] = "unhealthy"

    return health


@app.get("/")
async def root():
    return {
        "message": "EaglePass Hall Pass Service API",
        "version": "1.0.0",
        "docs": "/docs",
    }
