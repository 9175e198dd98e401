"""
Deliveries API endpoints.
Creation, lookup, dispatch transitions and the tracking log.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medcourier.api.dependencies import (
    get_state_machine,
    get_store,
    get_tracking_manager,
    http_error,
)
from medcourier.core.exceptions import TrackingError
from medcourier.database import get_db
from medcourier.models import DeliveryRequest, DeliveryStatus
from medcourier.schemas.delivery import (
    AssignDriverRequest,
    DeclineRequest,
    DeliveryCreateRequest,
    DeliveryListResponse,
    DeliveryResponse,
    ManualStatusRequest,
    TrackingUpdateListResponse,
    TransitionResponse,
    delivery_response,
    tracking_update_response,
)
from medcourier.services.geo import Coordinate
from medcourier.services.session import TrackingSessionManager
from medcourier.services.status_machine import (
    DeliveryStateMachine,
    ManualStatus,
    TransitionResult,
)
from medcourier.services.store import SqlTrackingStore, delivery_to_snapshot

router = APIRouter(prefix="/deliveries", tags=["Deliveries"])


def _transition_response(result: TransitionResult) -> TransitionResponse:
    return TransitionResponse(
        delivery=delivery_response(result.delivery),
        changed=result.changed,
        driver_released=result.driver_released,
        update=tracking_update_response(result.update) if result.update else None,
    )


@router.post(
    "",
    response_model=DeliveryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create delivery",
)
async def create_delivery(
    request: DeliveryCreateRequest,
    store: SqlTrackingStore = Depends(get_store),
) -> DeliveryResponse:
    """Create a pending delivery request."""
    pickup = request.pickup_coordinates
    destination = request.delivery_coordinates
    delivery = await store.create_delivery(
        pickup_location=request.pickup_location,
        delivery_location=request.delivery_location,
        pickup=Coordinate(pickup.lat, pickup.lng) if pickup else None,
        destination=Coordinate(destination.lat, destination.lng) if destination else None,
    )
    return delivery_response(delivery)


@router.get(
    "",
    response_model=DeliveryListResponse,
    summary="List deliveries",
    description="Dispatch console listing, newest first, optionally filtered by status.",
)
async def list_deliveries(
    status_filter: Optional[str] = Query(
        None,
        alias="status",
        pattern="^(pending|in_progress|completed|declined)$",
    ),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> DeliveryListResponse:
    query = select(DeliveryRequest).order_by(DeliveryRequest.created_at.desc()).limit(limit)
    if status_filter:
        query = query.where(DeliveryRequest.status == DeliveryStatus(status_filter))

    result = await db.execute(query)
    deliveries = [
        delivery_response(delivery_to_snapshot(row))
        for row in result.scalars().all()
    ]
    return DeliveryListResponse(deliveries=deliveries, count=len(deliveries))


@router.get(
    "/{delivery_id}",
    response_model=DeliveryResponse,
    summary="Get delivery details",
)
async def get_delivery(
    delivery_id: UUID,
    store: SqlTrackingStore = Depends(get_store),
) -> DeliveryResponse:
    delivery = await store.get_delivery(delivery_id)
    if delivery is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Delivery with ID {delivery_id} not found",
        )
    return delivery_response(delivery)


@router.get(
    "/{delivery_id}/tracking-updates",
    response_model=TrackingUpdateListResponse,
    summary="Get tracking log",
    description="Returns the delivery's tracking updates, oldest first.",
)
async def get_tracking_updates(
    delivery_id: UUID,
    store: SqlTrackingStore = Depends(get_store),
) -> TrackingUpdateListResponse:
    if await store.get_delivery(delivery_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Delivery with ID {delivery_id} not found",
        )
    updates = await store.list_tracking_updates(delivery_id)
    return TrackingUpdateListResponse(
        delivery_id=delivery_id,
        updates=[tracking_update_response(u) for u in updates],
        count=len(updates),
    )


@router.post(
    "/{delivery_id}/assign",
    response_model=TransitionResponse,
    summary="Assign driver",
    description="Assign an available driver; the delivery moves to in_progress.",
)
async def assign_driver(
    delivery_id: UUID,
    request: AssignDriverRequest,
    machine: DeliveryStateMachine = Depends(get_state_machine),
    manager: TrackingSessionManager = Depends(get_tracking_manager),
) -> TransitionResponse:
    try:
        result = await machine.assign_driver(delivery_id, request.driver_id)
        await manager.notify_changed(delivery_id)
    except TrackingError as e:
        raise http_error(e)
    return _transition_response(result)


@router.post(
    "/{delivery_id}/decline",
    response_model=TransitionResponse,
    summary="Decline delivery",
)
async def decline_delivery(
    delivery_id: UUID,
    request: Optional[DeclineRequest] = None,
    machine: DeliveryStateMachine = Depends(get_state_machine),
    manager: TrackingSessionManager = Depends(get_tracking_manager),
) -> TransitionResponse:
    try:
        result = await machine.decline(delivery_id, request.reason if request else None)
        await manager.notify_changed(delivery_id)
    except TrackingError as e:
        raise http_error(e)
    return _transition_response(result)


@router.post(
    "/{delivery_id}/status",
    response_model=TransitionResponse,
    summary="Manual status update",
    description="Record picked_up, in_transit or delivered for a delivery.",
)
async def update_status(
    delivery_id: UUID,
    request: ManualStatusRequest,
    machine: DeliveryStateMachine = Depends(get_state_machine),
    manager: TrackingSessionManager = Depends(get_tracking_manager),
) -> TransitionResponse:
    try:
        result = await machine.apply_manual_status(delivery_id, ManualStatus(request.status))
        await manager.notify_changed(delivery_id)
    except TrackingError as e:
        raise http_error(e)
    return _transition_response(result)
