import logging

import httpx
from pydantic import BaseModel

from ridepool.core.exceptions import (
    NetworkError,
    NoRouteFoundError,
    ServiceUnavailableError,
    ValidationError,
)
from ridepool.core.retry import RetryConfig, with_retry
from ridepool.geo import polyline_codec

logger = logging.getLogger(__name__)

LatLon = tuple[float, float]

NO_ROUTE_CODES = {"NoRoute", "NoSegment"}


class RouteResponse(BaseModel):
    distance_meters: float
    duration_seconds: float
    encoded_polyline: str
    geometry: list[tuple[float, float]]
    osrm_code: str

    @property
    def distance_km(self) -> float:
        return self.distance_meters / 1000.0


class OSRMServiceError(ServiceUnavailableError):
    """OSRM service error (5xx). Inherits from ServiceUnavailableError (retryable)."""

    pass


class OSRMTimeoutError(NetworkError):
    """OSRM request timeout. Inherits from NetworkError (retryable)."""

    pass


class OSRMClient:
    """OSRM adapter serving routes, road distances and travel times.

    Implements the RouteProvider, RouteDistanceProvider and ETAProvider
    collaborator protocols.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        retry_config: RetryConfig | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig(max_attempts=1)

    async def _fetch_route(self, origin: LatLon, destination: LatLon) -> RouteResponse:
        origin_lat, origin_lon = origin
        dest_lat, dest_lon = destination

        url = (
            f"{self.base_url}/route/v1/driving/"
            f"{origin_lon},{origin_lat};{dest_lon},{dest_lat}"
        )
        params = {"overview": "full", "geometries": "polyline"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise OSRMTimeoutError(f"Request timed out after {self.timeout}s") from e
        except httpx.NetworkError as e:
            raise OSRMServiceError(f"Network error: {e}") from e

        if response.status_code >= 500:
            raise OSRMServiceError(f"OSRM server error: {response.status_code}")

        data = response.json()
        code = data.get("code")

        if code in NO_ROUTE_CODES or (code == "Ok" and not data.get("routes")):
            raise NoRouteFoundError(
                "No route found between coordinates",
                details={"origin": origin, "destination": destination},
            )
        if code != "Ok":
            raise ValidationError(
                f"OSRM rejected the request: {data.get('message', code)}",
                details={"osrm_code": code},
            )

        route = data["routes"][0]
        return RouteResponse(
            distance_meters=float(route["distance"]),
            duration_seconds=float(route["duration"]),
            encoded_polyline=route["geometry"],
            geometry=polyline_codec.decode(route["geometry"]),
            osrm_code=code,
        )

    async def get_route(self, origin: LatLon, destination: LatLon) -> RouteResponse:
        """Get route between two coordinates using OSRM.

        Transient failures (5xx, network, timeout) are retried with backoff;
        NoRouteFoundError is not.
        """
        return await with_retry(
            lambda: self._fetch_route(origin, destination),
            config=self.retry_config,
            operation_name="osrm.route",
        )

    async def route(self, origin: LatLon, destination: LatLon) -> str | None:
        """Encoded road path from origin to destination, or None."""
        try:
            response = await self.get_route(origin, destination)
        except NoRouteFoundError:
            logger.info(f"OSRM found no route from {origin} to {destination}")
            return None
        return response.encoded_polyline

    async def distance(self, a: LatLon, b: LatLon) -> float:
        """Road distance in kilometers."""
        if tuple(a) == tuple(b):
            return 0.0
        response = await self.get_route(a, b)
        return response.distance_km

    async def eta(self, origin: LatLon, destination: LatLon) -> float:
        """Driving time in seconds."""
        if tuple(origin) == tuple(destination):
            return 0.0
        response = await self.get_route(origin, destination)
        return response.duration_seconds
