"""
Ride request matching service - entry point

Wires the OSRM routing adapter, the H3 driver index, Redis notifiers and
the SQLite store into the dispatcher and acceptance coordinator, then serves
the FastAPI application.
"""

import logging

import uvicorn
from redis.asyncio import Redis

from ridepool.api.app import create_app
from ridepool.core.retry import RetryConfig
from ridepool.db.database import init_database
from ridepool.fare import FareCalculator
from ridepool.geo.osrm_client import OSRMClient
from ridepool.geo.route_analysis import RouteGeometryAnalyzer
from ridepool.matching.acceptance import AcceptanceCoordinator
from ridepool.matching.dispatcher import MatchingDispatcher
from ridepool.matching.driver_geospatial_index import DriverGeospatialIndex
from ridepool.matching.notification_dispatch import (
    CHANNEL_DRIVER_NOTIFICATIONS,
    CHANNEL_PASSENGER_NOTIFICATIONS,
    RedisNotifier,
)
from ridepool.ride_logging import setup_logging
from ridepool.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def build_osrm_client(settings: Settings) -> OSRMClient:
    retry_config = RetryConfig(
        max_attempts=settings.osrm.max_retries + 1,
        base_delay=settings.osrm.retry_base_delay,
        multiplier=settings.osrm.retry_multiplier,
    )
    return OSRMClient(
        base_url=settings.osrm.base_url,
        timeout=settings.osrm.timeout,
        retry_config=retry_config,
    )


def main() -> None:
    """Main entry point - initializes and runs the service."""
    settings = get_settings()

    setup_logging(
        level=settings.service.log_level,
        json_output=settings.service.log_format == "json",
        environment=settings.service.environment,
    )

    session_factory = init_database(settings.service.db_path)
    logger.info(f"Database ready at {settings.service.db_path}")

    redis_client = Redis(
        host=settings.redis.host,
        port=settings.redis.port,
        db=settings.redis.db,
        password=settings.redis.password,
        decode_responses=True,
    )

    timeout = settings.matching.collaborator_timeout_seconds
    osrm_client = build_osrm_client(settings)
    driver_index = DriverGeospatialIndex(
        h3_resolution=settings.matching.h3_resolution,
        search_radius_km=settings.matching.driver_search_radius_km,
    )
    analyzer = RouteGeometryAnalyzer(
        distance_provider=osrm_client,
        max_detour_km=settings.pooling.max_detour_km,
        direction_threshold_degrees=settings.pooling.direction_threshold_degrees,
        timeout_seconds=timeout,
    )

    dispatcher = MatchingDispatcher(
        session_factory=session_factory,
        route_provider=osrm_client,
        driver_locator=driver_index,
        notifier=RedisNotifier(redis_client, CHANNEL_DRIVER_NOTIFICATIONS),
        analyzer=analyzer,
        timeout_seconds=timeout,
    )
    coordinator = AcceptanceCoordinator(
        session_factory=session_factory,
        eta_provider=osrm_client,
        fare_provider=FareCalculator(),
        notifier=RedisNotifier(redis_client, CHANNEL_PASSENGER_NOTIFICATIONS),
        timeout_seconds=timeout,
    )

    app = create_app(
        dispatcher=dispatcher,
        coordinator=coordinator,
        session_factory=session_factory,
        driver_index=driver_index,
        api_key=settings.api.key,
        cors_origins=settings.cors.origin_list,
        redis_client=redis_client,
    )

    logger.info(
        f"Starting ride request service on {settings.service.host}:{settings.service.port} "
        f"(max detour {settings.pooling.max_detour_km} km)"
    )
    uvicorn.run(
        app,
        host=settings.service.host,
        port=settings.service.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
