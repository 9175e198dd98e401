"""
Geographic helpers for the tracking simulator.

Distances use the haversine formula; movement is a planar interpolation in
coordinate degrees, which is accurate enough for the tiny per-tick steps.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from medcourier.config import get_settings

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class Coordinate:
    """A latitude/longitude pair in decimal degrees."""
    lat: float
    lng: float

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng}


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """
    Great-circle distance between two coordinates.

    Args:
        a: First coordinate
        b: Second coordinate

    Returns:
        Distance in kilometers

    Example:
        >>> round(distance_km(Coordinate(29.508, -98.579), Coordinate(29.468, -98.539)), 1)
        5.9
    """
    lat1, lng1, lat2, lng2 = map(math.radians, [a.lat, a.lng, b.lat, b.lng])

    dlat = lat2 - lat1
    dlng = lng2 - lng1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return EARTH_RADIUS_KM * c


def degree_distance(a: Coordinate, b: Coordinate) -> float:
    """Euclidean distance in coordinate degrees."""
    return math.hypot(b.lat - a.lat, b.lng - a.lng)


def step(
    current: Coordinate,
    target: Coordinate,
    step_size: float,
    arrival_threshold: Optional[float] = None,
) -> Optional[Coordinate]:
    """
    Move ``step_size`` degrees from ``current`` toward ``target``.

    Args:
        current: Present position
        target: Destination
        step_size: Distance to move, in coordinate degrees
        arrival_threshold: Degree distance under which the courier counts as
            arrived (defaults to the configured threshold)

    Returns:
        The new position, or None once ``current`` is within the arrival
        threshold of ``target``.
    """
    if arrival_threshold is None:
        arrival_threshold = get_settings().tracking_arrival_threshold_deg

    remaining = degree_distance(current, target)
    if remaining < arrival_threshold:
        return None

    # Never overshoot the destination
    travelled = min(step_size, remaining)
    return Coordinate(
        lat=current.lat + (target.lat - current.lat) / remaining * travelled,
        lng=current.lng + (target.lng - current.lng) / remaining * travelled,
    )
