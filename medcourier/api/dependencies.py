"""
Shared FastAPI dependencies and error translation for the routers.
"""

from fastapi import HTTPException, Request, status

from medcourier.core.events import TrackingEventBus
from medcourier.core.exceptions import (
    DeliveryNotFoundError,
    DriverNotFoundError,
    DriverUnavailableError,
    InvalidTransitionError,
    PersistenceError,
    ResetError,
    TrackingError,
)
from medcourier.services.session import TrackingSessionManager
from medcourier.services.status_machine import DeliveryStateMachine
from medcourier.services.store import SqlTrackingStore


def get_store(request: Request) -> SqlTrackingStore:
    """The application's tracking store (set up in the lifespan handler)."""
    return request.app.state.tracking_store


def get_tracking_manager(request: Request) -> TrackingSessionManager:
    return request.app.state.tracking_manager


def get_state_machine(request: Request) -> DeliveryStateMachine:
    return request.app.state.tracking_manager.state_machine


def http_error(exc: TrackingError) -> HTTPException:
    """Map a tracking error onto an HTTPException."""
    if isinstance(exc, (DeliveryNotFoundError, DriverNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, (InvalidTransitionError, DriverUnavailableError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, (ResetError, PersistenceError)):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def get_event_bus(request: Request) -> TrackingEventBus:
    """Event bus the application's tracking sessions publish to."""
    return request.app.state.tracking_manager.event_bus
