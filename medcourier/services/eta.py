"""
ETA estimation service.
Converts straight-line distance and traffic condition into an arrival
estimate and a human-readable progress phrase.
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional

from medcourier.config import get_settings
from medcourier.services.geo import Coordinate, distance_km
from medcourier.services.traffic import TrafficCondition

ARRIVING_SOON = "Arriving soon (less than 0.5km away)"
APPROACHING = "Approaching destination"
IN_DELIVERY_AREA = "In delivery area"
EN_ROUTE = "En route to delivery location"


@dataclass(frozen=True)
class EtaEstimate:
    """Distance (rounded to one decimal, as displayed) and minutes to arrival."""
    distance_km: str
    eta_minutes: int

    @property
    def distance_value(self) -> float:
        return float(self.distance_km)


def speed_table() -> Dict[TrafficCondition, float]:
    """Average courier speed (km/h) per traffic condition."""
    speeds = get_settings().traffic_speed_kmh
    return {condition: speeds[condition.value] for condition in TrafficCondition}


def estimate(
    current: Coordinate,
    destination: Coordinate,
    traffic: TrafficCondition,
    speeds: Optional[Dict[TrafficCondition, float]] = None,
) -> EtaEstimate:
    """
    Estimate time to arrival at the traffic-adjusted average speed.

    Args:
        current: Courier position
        destination: Delivery coordinate
        traffic: Current traffic condition
        speeds: Optional override of the speed table

    Returns:
        EtaEstimate with distance as a one-decimal string
    """
    speeds = speeds or speed_table()
    distance = distance_km(current, destination)
    minutes = distance / speeds[traffic] * 60

    return EtaEstimate(
        distance_km=f"{distance:.1f}",
        eta_minutes=math.floor(minutes + 0.5),
    )


def detailed_status(distance: float) -> str:
    """Map remaining distance (km) to a status phrase."""
    if distance < 0.5:
        return ARRIVING_SOON
    elif distance < 1:
        return APPROACHING
    elif distance < 3:
        return IN_DELIVERY_AREA
    return EN_ROUTE
