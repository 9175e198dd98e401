"""
MedCourier Tracking Service - FastAPI Application
Main entry point for the API server.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from medcourier.api import (
    deliveries_router,
    drivers_router,
    tracking_events_router,
    tracking_router,
)
from medcourier.config import get_settings
from medcourier.database import async_session_maker, init_db
from medcourier.services.session import TrackingSessionManager
from medcourier.services.store import SqlTrackingStore

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    logger.info(f"Starting {settings.app_title} v{settings.app_version}")

    # Initialize database tables (important for SQLite)
    await init_db()
    logger.info("Database tables initialized")

    store = SqlTrackingStore(async_session_maker)
    app.state.tracking_store = store
    app.state.tracking_manager = TrackingSessionManager(store)

    yield

    logger.info("Shutting down, closing tracking sessions")
    await app.state.tracking_manager.close_all()


app = FastAPI(
    title=settings.app_title,
    version=settings.app_version,
    description="""
    ## MedCourier Tracking Service API

    Live tracking for medical courier deliveries.

    ### Features
    - **Dispatch**: Create deliveries, assign drivers, decline requests
    - **Live Tracking**: Simulated courier movement with traffic, ETA and countdown
    - **Tracking Log**: Append-only history of every status change
    - **Events**: SSE stream of traffic updates, positions and arrivals

    ### Main Endpoints
    - `POST /api/v1/deliveries/{id}/assign` - Assign a driver
    - `GET /api/v1/deliveries/{id}/tracking` - Live tracking state
    - `POST /api/v1/deliveries/{id}/tracking/speed` - Change simulation speed
    - `GET /api/v1/tracking-events/stream` - SSE stream for tracking events
    """,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(deliveries_router, prefix=settings.api_prefix)
app.include_router(drivers_router, prefix=settings.api_prefix)
app.include_router(tracking_router, prefix=settings.api_prefix)
app.include_router(tracking_events_router, prefix=settings.api_prefix)


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - health check."""
    return {
        "status": "healthy",
        "service": settings.app_title,
        "version": settings.app_version,
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with the number of open tracking sessions."""
    manager = getattr(app.state, "tracking_manager", None)
    return {
        "status": "healthy",
        "tracking_sessions": len(manager) if manager is not None else 0,
    }
