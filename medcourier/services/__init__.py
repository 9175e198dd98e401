"""Services package initialization."""

from medcourier.services.geo import Coordinate, distance_km, step
from medcourier.services.eta import EtaEstimate, estimate, detailed_status
from medcourier.services.traffic import TrafficCondition, TrafficModel
from medcourier.services.countdown import CountdownTracker
from medcourier.services.simulator import PositionSimulator, StepKind, StepOutcome
from medcourier.services.store import (
    DeliverySnapshot,
    DriverSnapshot,
    TrackingUpdateRecord,
    TrackingStore,
    SqlTrackingStore,
)
from medcourier.services.status_machine import (
    DeliveryStateMachine,
    ManualStatus,
    TransitionResult,
)
from medcourier.services.session import (
    SimulationSpeed,
    TrackingSession,
    TrackingSessionManager,
    TrackingSessionState,
)

__all__ = [
    "Coordinate",
    "distance_km",
    "step",
    "EtaEstimate",
    "estimate",
    "detailed_status",
    "TrafficCondition",
    "TrafficModel",
    "CountdownTracker",
    "PositionSimulator",
    "StepKind",
    "StepOutcome",
    "DeliverySnapshot",
    "DriverSnapshot",
    "TrackingUpdateRecord",
    "TrackingStore",
    "SqlTrackingStore",
    "DeliveryStateMachine",
    "ManualStatus",
    "TransitionResult",
    "SimulationSpeed",
    "TrackingSession",
    "TrackingSessionManager",
    "TrackingSessionState",
]
