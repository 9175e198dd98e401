"""API routers package initialization."""

from medcourier.api.deliveries import router as deliveries_router
from medcourier.api.drivers import router as drivers_router
from medcourier.api.tracking import router as tracking_router
from medcourier.api.tracking_events import router as tracking_events_router

__all__ = [
    "deliveries_router",
    "drivers_router",
    "tracking_router",
    "tracking_events_router",
]
