"""
Distance and travel-time estimation.

Assumption
----------
We use great-circle (Haversine) distance at a fixed average speed instead
of a real routing engine (OSRM / Google Maps) to keep the project
self-contained.  Anything implementing ``TravelTimeEstimator`` can be
injected into the ride lifecycle in its place.

Complexity: O(1) per call.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod

from .entities import Location

EARTH_RADIUS_KM = 6_371.0


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


class TravelTimeEstimator(ABC):
    @abstractmethod
    def travel_minutes(self, origin: Location, destination: Location) -> int: ...


class HaversineEstimator(TravelTimeEstimator):
    """Straight-line distance driven at ``avg_speed_kmh``, in whole minutes."""

    def __init__(self, avg_speed_kmh: float = 40.0):
        if avg_speed_kmh <= 0:
            raise ValueError("avg_speed_kmh must be positive")
        self.avg_speed_kmh = avg_speed_kmh

    def travel_minutes(self, origin: Location, destination: Location) -> int:
        distance = haversine_km(
            origin.latitude, origin.longitude,
            destination.latitude, destination.longitude,
        )
        return round(distance / self.avg_speed_kmh * 60)
