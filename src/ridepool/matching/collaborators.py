"""Contracts the matching core requires from external services.

Default implementations: OSRMClient (route, distance, eta),
DriverGeospatialIndex (find_nearby), FareCalculator (fare) and
RedisNotifier (notify).
"""

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

LatLon = tuple[float, float]


@runtime_checkable
class RouteProvider(Protocol):
    async def route(self, origin: LatLon, destination: LatLon) -> str | None:
        """Encoded polyline of the road path, or None when no path exists."""
        ...


@runtime_checkable
class RouteDistanceProvider(Protocol):
    async def distance(self, a: LatLon, b: LatLon) -> float:
        """Road distance in kilometers."""
        ...


@runtime_checkable
class DriverLocator(Protocol):
    async def find_nearby(self, origin: LatLon) -> list[str]:
        """Driver ids near origin. An empty list is a valid answer."""
        ...


@runtime_checkable
class ETAProvider(Protocol):
    async def eta(self, origin: LatLon, destination: LatLon) -> float:
        """Travel time in seconds."""
        ...


@runtime_checkable
class FareProvider(Protocol):
    async def fare(self, route: Sequence[LatLon]) -> float: ...


@runtime_checkable
class Notifier(Protocol):
    async def notify(
        self, recipient: str, message: str, extra: dict[str, Any] | None = None
    ) -> None:
        """Best-effort delivery. Failures raise; callers decide whether they matter."""
        ...
