"""
Pydantic schemas for delivery endpoints.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class CoordinateSchema(BaseModel):
    """Latitude/longitude in decimal degrees."""
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class DeliveryCreateRequest(BaseModel):
    """Request to create a delivery."""
    pickup_location: str = Field(..., min_length=1, description="Pickup address")
    delivery_location: str = Field(..., min_length=1, description="Delivery address")
    pickup_coordinates: Optional[CoordinateSchema] = None
    delivery_coordinates: Optional[CoordinateSchema] = None


class DeliveryResponse(BaseModel):
    """A delivery as stored."""
    id: UUID
    tracking_id: str
    status: str
    pickup_location: str
    delivery_location: str
    pickup_coordinates: Optional[CoordinateSchema] = None
    delivery_coordinates: Optional[CoordinateSchema] = None
    current_coordinates: Optional[CoordinateSchema] = None
    assigned_driver_id: Optional[UUID] = None


class DeliveryListResponse(BaseModel):
    deliveries: List[DeliveryResponse]
    count: int


class AssignDriverRequest(BaseModel):
    driver_id: UUID


class DeclineRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class ManualStatusRequest(BaseModel):
    """Hand-reported status from a driver or administrator."""
    status: str = Field(
        ...,
        pattern="^(picked_up|in_transit|delivered)$",
        description="picked_up, in_transit or delivered",
    )


class TrackingUpdateResponse(BaseModel):
    """One tracking-log entry."""
    status: str
    timestamp: datetime
    location: str
    note: str


class TrackingUpdateListResponse(BaseModel):
    delivery_id: UUID
    updates: List[TrackingUpdateResponse]
    count: int


class TransitionResponse(BaseModel):
    """Outcome of a status transition."""
    delivery: DeliveryResponse
    changed: bool
    driver_released: bool = False
    update: Optional[TrackingUpdateResponse] = None


def coordinate_schema(coordinate) -> Optional[CoordinateSchema]:
    if coordinate is None:
        return None
    return CoordinateSchema(lat=coordinate.lat, lng=coordinate.lng)


def delivery_response(delivery) -> DeliveryResponse:
    """Build a DeliveryResponse from a DeliverySnapshot."""
    return DeliveryResponse(
        id=delivery.id,
        tracking_id=delivery.tracking_id,
        status=delivery.status.value,
        pickup_location=delivery.pickup_location,
        delivery_location=delivery.delivery_location,
        pickup_coordinates=coordinate_schema(delivery.pickup),
        delivery_coordinates=coordinate_schema(delivery.destination),
        current_coordinates=coordinate_schema(delivery.current),
        assigned_driver_id=delivery.assigned_driver_id,
    )


def tracking_update_response(record) -> TrackingUpdateResponse:
    return TrackingUpdateResponse(
        status=record.status,
        timestamp=record.timestamp,
        location=record.location,
        note=record.note,
    )
