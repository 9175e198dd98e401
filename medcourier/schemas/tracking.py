"""
Pydantic schemas for live tracking endpoints.
"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from medcourier.schemas.delivery import CoordinateSchema, coordinate_schema


class SpeedRequest(BaseModel):
    speed: str = Field(
        default="normal",
        pattern="^(slow|normal|fast)$",
    )


class EtaSchema(BaseModel):
    distance_km: str
    eta_minutes: int


class TrackingStateResponse(BaseModel):
    """Live tracking session state for a delivery."""
    delivery_id: UUID
    status: str
    is_live_tracking: bool
    simulation_speed: str
    traffic_condition: str
    current_coordinates: Optional[CoordinateSchema] = None
    eta: Optional[EtaSchema] = None
    detailed_status: str = ""
    eta_start: Optional[float] = Field(None, description="Epoch seconds")
    eta_end: Optional[float] = Field(None, description="Epoch seconds")
    eta_countdown_seconds: Optional[int] = None
    eta_progress_percent: float = Field(0.0, ge=0, le=100)


class TrackingResetResponse(BaseModel):
    success: bool
    message: str
    state: TrackingStateResponse


def tracking_state_response(state) -> TrackingStateResponse:
    """Build a TrackingStateResponse from a TrackingSessionState."""
    return TrackingStateResponse(
        delivery_id=state.delivery_id,
        status=state.status.value,
        is_live_tracking=state.is_live_tracking,
        simulation_speed=state.simulation_speed.value,
        traffic_condition=state.traffic_condition.value,
        current_coordinates=coordinate_schema(state.current),
        eta=(
            EtaSchema(distance_km=state.eta.distance_km, eta_minutes=state.eta.eta_minutes)
            if state.eta else None
        ),
        detailed_status=state.detailed_status,
        eta_start=state.eta_start,
        eta_end=state.eta_end,
        eta_countdown_seconds=state.eta_countdown_seconds,
        eta_progress_percent=state.eta_progress_percent,
    )
