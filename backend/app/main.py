"""
FastAPI application entry point.

Run with:
    uvicorn backend.app.main:app --reload --port 5000

Or from the project root:
    python -m uvicorn backend.app.main:app --reload
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# ── Core infrastructure ──
from backend.app.core.config import settings
from backend.app.core.logging_config import setup_logging, get_logger
from backend.app.core.errors import register_error_handlers
from backend.app.core.middleware import RequestLoggingMiddleware
from backend.app.core.health import run_health_check

# ── Services ──
from backend.app.feeds.aggregator import DisasterFeedAggregator
from backend.app.realtime.broadcaster import ConnectionManager
from backend.app.storage.memory import MemoryStorage
from backend.app.volunteers.dispatcher import NotificationDispatcher
from backend.app.volunteers.matcher import ProximityMatcher

# ── API routers ──
from backend.app.api.v1.emergencies import router as emergency_router
from backend.app.api.v1.volunteers import router as volunteer_router
from backend.app.api.v1.disasters import router as disaster_router
from backend.app.api.v1.realtime import router as realtime_router

# ── Initialise logging ──
setup_logging()
logger = get_logger(__name__)


def build_services(app: FastAPI) -> None:
    """Construct the service graph and attach it to ``app.state``."""
    if settings.STORAGE_BACKEND != "memory":
        raise ValueError(f"Unsupported STORAGE_BACKEND: {settings.STORAGE_BACKEND}")

    storage = MemoryStorage(seed=settings.SEED_SAMPLE_DATA)
    matcher = ProximityMatcher(storage, default_radius_km=settings.DEFAULT_RADIUS_KM)

    app.state.storage = storage
    app.state.matcher = matcher
    app.state.dispatcher = NotificationDispatcher.from_settings(matcher, settings)
    app.state.aggregator = DisasterFeedAggregator.from_settings(settings)
    app.state.broadcaster = ConnectionManager()


# ── Application lifespan (startup / shutdown) ──

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown events."""
    logger.info(
        "Starting %s v%s [%s]",
        settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT,
    )
    if not hasattr(app.state, "storage"):
        build_services(app)
    yield
    await app.state.aggregator.close()
    logger.info("Shutting down %s", settings.APP_NAME)


# ── Create application ──

app = FastAPI(
    title=settings.APP_NAME,
    description=(
        "Disaster-relief coordination API. "
        "Takes emergency requests, matches them to verified volunteers "
        "by great-circle distance and alerts them by SMS, and serves a "
        "cached, normalised feed of regional disasters aggregated from "
        "ReliefWeb and GDACS."
    ),
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# ── Middleware stack (last added runs outermost) ──

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS if not settings.CORS_ALLOW_ALL else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

# ── Error handlers ──
register_error_handlers(app)

# ── Register routers ──
app.include_router(emergency_router)
app.include_router(volunteer_router)
app.include_router(disaster_router)
app.include_router(realtime_router)


# ── Root & health endpoints ──

@app.get("/", tags=["root"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "modules": [
            "emergency-intake",
            "proximity-matching",
            "volunteer-notification",
            "disaster-feeds",
            "realtime-events",
        ],
        "docs": "/docs",
    }


@app.get("/health", tags=["health"])
async def health_check(request: Request):
    """Deep health probe — checks all subsystems."""
    report = await run_health_check(
        getattr(request.app.state, "storage", None),
        getattr(request.app.state, "aggregator", None),
    )
    return report.to_dict()


@app.get("/health/live", tags=["health"])
async def liveness():
    """Kubernetes liveness probe — is the process alive?"""
    return {"status": "alive"}


@app.get("/health/ready", tags=["health"])
async def readiness(request: Request):
    """Kubernetes readiness probe — can we serve traffic?"""
    report = await run_health_check(
        getattr(request.app.state, "storage", None),
        getattr(request.app.state, "aggregator", None),
    )
    if report.status.value == "unhealthy":
        return JSONResponse(status_code=503, content=report.to_dict())
    return report.to_dict()
