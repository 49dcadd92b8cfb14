"""Pooling feasibility checks over route geometry.

Two independent checks decide whether a new passenger can share an active
ride:

* detour distance: extra road distance from inserting the passenger's
  pickup and drop-off between the ride's start and end;
* direction alignment: difference between the initial bearings of the
  ride and of the passenger's trip.

A passenger is poolable only when both pass.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from math import atan2, cos, degrees, radians, sin
from typing import TYPE_CHECKING

from ridepool.core.exceptions import DegenerateRouteError
from ridepool.utils.async_helpers import call_with_timeout, gather_or_cancel

if TYPE_CHECKING:
    from ridepool.matching.collaborators import RouteDistanceProvider

logger = logging.getLogger(__name__)

DIRECTION_THRESHOLD_DEGREES = 45.0

LatLon = tuple[float, float]


def calculate_bearing(start: LatLon, end: LatLon) -> float:
    """Initial great-circle bearing from start to end, in degrees (-180, 180]."""
    if tuple(start) == tuple(end):
        raise DegenerateRouteError(
            "Bearing is undefined for a zero-length route",
            details={"start": start, "end": end},
        )

    start_lat, start_lng = map(radians, start)
    end_lat, end_lng = map(radians, end)

    d_lng = end_lng - start_lng
    y = sin(d_lng) * cos(end_lat)
    x = cos(start_lat) * sin(end_lat) - sin(start_lat) * cos(end_lat) * cos(d_lng)
    return degrees(atan2(y, x))


def angle_difference(angle1: float, angle2: float) -> float:
    """Absolute difference between two headings, folded into [0, 180]."""
    diff = abs(angle1 - angle2)
    if diff > 180:
        diff = 360 - diff
    return diff


def route_endpoints(route: Sequence[LatLon]) -> tuple[LatLon, LatLon]:
    if not route:
        raise DegenerateRouteError("Reference route has no points")
    return tuple(route[0]), tuple(route[-1])  # type: ignore[return-value]


@dataclass(frozen=True)
class PoolingAssessment:
    compatible: bool
    angle_difference: float | None
    detour_km: float | None
    reason: str


class RouteGeometryAnalyzer:
    """Decides pooling eligibility of a trip against an active ride's route."""

    def __init__(
        self,
        distance_provider: "RouteDistanceProvider",
        max_detour_km: float,
        direction_threshold_degrees: float = DIRECTION_THRESHOLD_DEGREES,
        timeout_seconds: float | None = None,
    ):
        self._distance_provider = distance_provider
        self.max_detour_km = max_detour_km
        self.direction_threshold_degrees = direction_threshold_degrees
        self._timeout = timeout_seconds

    async def _distance(self, a: LatLon, b: LatLon) -> float:
        return await call_with_timeout(
            self._distance_provider.distance(a, b), self._timeout, "route distance provider"
        )

    async def detour_distance(
        self, reference_route: Sequence[LatLon], start: LatLon, end: LatLon
    ) -> float:
        """Extra road distance (km) of visiting start and end along the route."""
        ref_start, ref_end = route_endpoints(reference_route)

        # The first failing leg cancels the rest
        to_pickup, pickup_to_dropoff, dropoff_to_end, original = await gather_or_cancel(
            self._distance(ref_start, start),
            self._distance(start, end),
            self._distance(end, ref_end),
            self._distance(ref_start, ref_end),
        )
        return (to_pickup + pickup_to_dropoff + dropoff_to_end) - original

    def direction_difference(
        self, reference_route: Sequence[LatLon], start: LatLon, end: LatLon
    ) -> float:
        ref_start, ref_end = route_endpoints(reference_route)
        return angle_difference(
            calculate_bearing(ref_start, ref_end), calculate_bearing(start, end)
        )

    def is_direction_compatible(
        self, reference_route: Sequence[LatLon], start: LatLon, end: LatLon
    ) -> bool:
        """Zero-length routes are never compatible."""
        try:
            diff = self.direction_difference(reference_route, start, end)
        except DegenerateRouteError:
            return False
        return diff <= self.direction_threshold_degrees

    async def assess(
        self, reference_route: Sequence[LatLon], start: LatLon, end: LatLon
    ) -> PoolingAssessment:
        """Run both checks; the detour is only priced once direction passes."""
        if not self.is_direction_compatible(reference_route, start, end):
            try:
                diff = self.direction_difference(reference_route, start, end)
            except DegenerateRouteError as e:
                return PoolingAssessment(False, None, None, e.message)
            return PoolingAssessment(
                False, diff, None, f"heading differs by {diff:.1f} degrees"
            )

        diff = self.direction_difference(reference_route, start, end)
        detour = await self.detour_distance(reference_route, start, end)
        if detour > self.max_detour_km:
            return PoolingAssessment(False, diff, detour, f"detour of {detour:.2f} km too long")

        logger.debug(f"Pooling compatible: angle={diff:.1f}, detour={detour:.2f}km")
        return PoolingAssessment(True, diff, detour, "compatible")
