"""
Geographic helpers for proximity ordering.
"""

import math
from typing import Optional, Tuple

EARTH_RADIUS_KM = 6371.0

Coordinates = Tuple[float, float]  # (latitude, longitude)


def haversine_distance(origin: Coordinates, target: Coordinates) -> float:
    """
    Great-circle distance between two (latitude, longitude) points.

    Returns:
        Distance in kilometers
    """
    lat1, lon1 = map(math.radians, origin)
    lat2, lon2 = map(math.radians, target)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_or_none(origin: Optional[Coordinates], latitude: Optional[float], longitude: Optional[float]) -> Optional[float]:
    """Distance from origin, or None when either side has no position."""
    if origin is None or latitude is None or longitude is None:
        return None
    return haversine_distance(origin, (latitude, longitude))
