"""
Live tracking API endpoints.
Viewers open a tracking session per delivery and drive its simulation.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from medcourier.api.dependencies import get_tracking_manager, http_error
from medcourier.core.exceptions import TrackingError
from medcourier.models import DeliveryStatus
from medcourier.schemas.tracking import (
    SpeedRequest,
    TrackingResetResponse,
    TrackingStateResponse,
    tracking_state_response,
)
from medcourier.services.session import SimulationSpeed, TrackingSessionManager

router = APIRouter(prefix="/deliveries/{delivery_id}/tracking", tags=["Tracking"])


@router.get(
    "",
    response_model=TrackingStateResponse,
    summary="Get live tracking state",
    description=(
        "Opens a tracking session on first view. In-progress deliveries start "
        "simulating automatically at the last-used speed."
    ),
)
async def get_tracking_state(
    delivery_id: UUID,
    manager: TrackingSessionManager = Depends(get_tracking_manager),
) -> TrackingStateResponse:
    try:
        session = await manager.open(delivery_id)
    except TrackingError as e:
        raise http_error(e)
    return tracking_state_response(session.state())


@router.post(
    "/start",
    response_model=TrackingStateResponse,
    summary="Start live tracking",
)
async def start_tracking(
    delivery_id: UUID,
    request: SpeedRequest,
    manager: TrackingSessionManager = Depends(get_tracking_manager),
) -> TrackingStateResponse:
    try:
        session = await manager.open(delivery_id)
        session.start(SimulationSpeed(request.speed))
    except TrackingError as e:
        raise http_error(e)

    state = session.state()
    if state.status != DeliveryStatus.IN_PROGRESS:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Delivery {delivery_id} is {state.status.value}, not in progress",
        )
    return tracking_state_response(state)


@router.post(
    "/stop",
    response_model=TrackingStateResponse,
    summary="Stop live tracking",
)
async def stop_tracking(
    delivery_id: UUID,
    manager: TrackingSessionManager = Depends(get_tracking_manager),
) -> TrackingStateResponse:
    session = manager.get(delivery_id)
    try:
        if session is None:
            session = await manager.open(delivery_id)
        session.pause()
    except TrackingError as e:
        raise http_error(e)
    return tracking_state_response(session.state())


@router.post(
    "/speed",
    response_model=TrackingStateResponse,
    summary="Change simulation speed",
)
async def change_speed(
    delivery_id: UUID,
    request: SpeedRequest,
    manager: TrackingSessionManager = Depends(get_tracking_manager),
) -> TrackingStateResponse:
    try:
        session = await manager.open(delivery_id)
        session.change_speed(SimulationSpeed(request.speed))
    except TrackingError as e:
        raise http_error(e)
    return tracking_state_response(session.state())


@router.post(
    "/reset",
    response_model=TrackingResetResponse,
    summary="Reset simulation",
    description="Moves the courier back to the pickup point and restarts after a short delay.",
)
async def reset_tracking(
    delivery_id: UUID,
    manager: TrackingSessionManager = Depends(get_tracking_manager),
) -> TrackingResetResponse:
    try:
        session = manager.get(delivery_id) or await manager.open(delivery_id)
        await session.reset()
    except TrackingError as e:
        raise http_error(e)
    return TrackingResetResponse(
        success=True,
        message="Simulation reset to starting point",
        state=tracking_state_response(session.state()),
    )


@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Leave tracking view",
    description="Tears down the delivery's tracking session and its timer.",
)
async def close_tracking(
    delivery_id: UUID,
    manager: TrackingSessionManager = Depends(get_tracking_manager),
) -> None:
    await manager.close(delivery_id)
