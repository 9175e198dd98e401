"""Schemas package initialization."""

from medcourier.schemas.delivery import (
    CoordinateSchema,
    DeliveryCreateRequest,
    DeliveryResponse,
    DeliveryListResponse,
    AssignDriverRequest,
    DeclineRequest,
    ManualStatusRequest,
    TrackingUpdateResponse,
    TrackingUpdateListResponse,
    TransitionResponse,
)
from medcourier.schemas.driver import DriverCreateRequest, DriverResponse
from medcourier.schemas.tracking import (
    SpeedRequest,
    EtaSchema,
    TrackingStateResponse,
    TrackingResetResponse,
)

__all__ = [
    "CoordinateSchema",
    "DeliveryCreateRequest",
    "DeliveryResponse",
    "DeliveryListResponse",
    "AssignDriverRequest",
    "DeclineRequest",
    "ManualStatusRequest",
    "TrackingUpdateResponse",
    "TrackingUpdateListResponse",
    "TransitionResponse",
    "DriverCreateRequest",
    "DriverResponse",
    "SpeedRequest",
    "EtaSchema",
    "TrackingStateResponse",
    "TrackingResetResponse",
]
