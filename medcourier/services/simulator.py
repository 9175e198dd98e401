"""
Position simulator.
Advances a delivery's courier one straight-line step per tick.
"""

import enum
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from medcourier.config import get_settings
from medcourier.models import DeliveryStatus
from medcourier.services.geo import Coordinate, step
from medcourier.services.store import DeliverySnapshot, TrackingStore
from medcourier.services.traffic import TrafficCondition, step_factor

logger = logging.getLogger(__name__)


class StepKind(str, enum.Enum):
    MOVED = "moved"
    ARRIVED = "arrived"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class StepOutcome:
    kind: StepKind
    coordinate: Optional[Coordinate] = None
    reason: str = ""


class PositionSimulator:
    """
    Computes the next simulated courier position.

    Pure with respect to the store: persisting a MOVED coordinate is the
    caller's job (see write_position).
    """

    def __init__(
        self,
        base_step: Optional[float] = None,
        arrival_threshold: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self.base_step = base_step if base_step is not None else settings.tracking_base_step_deg
        self.arrival_threshold = (
            arrival_threshold
            if arrival_threshold is not None
            else settings.tracking_arrival_threshold_deg
        )

    def step_size(self, traffic: TrafficCondition) -> float:
        return self.base_step * step_factor(traffic)

    def advance(self, delivery: DeliverySnapshot, traffic: TrafficCondition) -> StepOutcome:
        """
        Advance one tick.

        Args:
            delivery: Current in-memory view of the delivery
            traffic: Traffic condition scaling the step

        Returns:
            MOVED with the new coordinate, ARRIVED, or SKIPPED when the
            delivery is not in progress or lacks geometry
        """
        if delivery.status != DeliveryStatus.IN_PROGRESS:
            return StepOutcome(StepKind.SKIPPED, reason=f"status is {delivery.status.value}")

        if delivery.current is None or delivery.destination is None:
            logger.info(f"Missing coordinates for delivery {delivery.id}, skipping tick")
            return StepOutcome(StepKind.SKIPPED, reason="missing coordinates")

        moved = step(
            delivery.current,
            delivery.destination,
            self.step_size(traffic),
            arrival_threshold=self.arrival_threshold,
        )
        if moved is None:
            return StepOutcome(StepKind.ARRIVED, coordinate=delivery.destination)
        return StepOutcome(StepKind.MOVED, coordinate=moved)


async def write_position(
    store: TrackingStore, delivery_id: uuid.UUID, coordinate: Coordinate
) -> bool:
    """
    Best-effort write of a simulated position.

    Failures are logged and swallowed; the in-memory position stays
    authoritative for the running session.

    Returns:
        True when the position was stored, False when it failed or the
        delivery is no longer in progress
    """
    try:
        return await store.update_delivery_coordinate(delivery_id, coordinate)
    except Exception as e:
        logger.warning(f"Failed to persist position for delivery {delivery_id}: {e}")
        return False
