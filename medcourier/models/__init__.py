"""Models package initialization - imports all models for easy access."""

from medcourier.models.delivery import DeliveryRequest, DeliveryStatus
from medcourier.models.driver import Driver, DriverStatus, VehicleType
from medcourier.models.tracking_update import TrackingUpdate

__all__ = [
    "DeliveryRequest",
    "DeliveryStatus",
    "Driver",
    "DriverStatus",
    "VehicleType",
    "TrackingUpdate",
]
