"""Centralized geographic distance calculations.

Haversine distances are used where no road distance is needed: driver
proximity lookup and the length of an already-routed path for pricing.
"""

from collections.abc import Sequence
from math import atan2, cos, radians, sin, sqrt

EARTH_RADIUS_M = 6_371_000  # Earth radius in meters


def haversine_distance_m(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> float:
    """Calculate the great-circle distance between two points in meters.

    Args:
        lat1: Latitude of first point in degrees
        lon1: Longitude of first point in degrees
        lat2: Latitude of second point in degrees
        lon2: Longitude of second point in degrees

    Returns:
        Distance between the two points in meters
    """
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_M * c


def haversine_distance_km(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> float:
    """Great-circle distance in kilometers (driver search radius units)."""
    return haversine_distance_m(lat1, lon1, lat2, lon2) / 1000.0


def path_length_km(points: Sequence[tuple[float, float]]) -> float:
    """Sum of great-circle legs along an ordered path, in kilometers."""
    return sum(
        haversine_distance_km(lat1, lon1, lat2, lon2)
        for (lat1, lon1), (lat2, lon2) in zip(points, points[1:], strict=False)
    )
