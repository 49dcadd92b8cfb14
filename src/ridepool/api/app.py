"""FastAPI application factory for the ride request service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ridepool import __version__
from ridepool.api.errors import register_error_handlers
from ridepool.api.middleware import CorrelationMiddleware
from ridepool.api.routes import drivers, ride_requests
from ridepool.db.repositories import RideRepository

if TYPE_CHECKING:
    from sqlalchemy.orm import Session, sessionmaker

    from ridepool.matching.acceptance import AcceptanceCoordinator
    from ridepool.matching.dispatcher import MatchingDispatcher
    from ridepool.matching.driver_geospatial_index import DriverGeospatialIndex

logger = logging.getLogger(__name__)


def load_driver_positions(
    session_factory: sessionmaker[Session], driver_index: DriverGeospatialIndex
) -> None:
    """Seed the spatial index with the position of every active ride."""
    with session_factory() as session:
        active = RideRepository(session).list_active_with_drivers()
    driver_index.load((driver_id, ride.latitude, ride.longitude) for driver_id, ride in active)


def create_app(
    dispatcher: MatchingDispatcher,
    coordinator: AcceptanceCoordinator,
    session_factory: sessionmaker[Session],
    driver_index: DriverGeospatialIndex,
    api_key: str,
    cors_origins: list[str] | None = None,
    redis_client: Any = None,
) -> FastAPI:
    """Create FastAPI application with injected dependencies.

    Args:
        dispatcher: MatchingDispatcher handling submission and cancellation
        coordinator: AcceptanceCoordinator handling driver acceptance
        session_factory: SQLAlchemy session factory for read endpoints
        driver_index: DriverGeospatialIndex fed by driver location updates
        api_key: Expected value of the X-API-Key header
        cors_origins: Allowed CORS origins
        redis_client: Async Redis client closed on shutdown (optional)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> Any:
        """Manage application startup and shutdown."""
        load_driver_positions(session_factory, driver_index)
        yield
        if redis_client is not None:
            await redis_client.aclose()

    app = FastAPI(
        title="Ride Request Matching API",
        version=__version__,
        description="Ride request submission, pooling and driver acceptance",
        lifespan=lifespan,
    )

    # Set core dependencies immediately (not in lifespan) so they're available for testing
    app.state.dispatcher = dispatcher
    app.state.coordinator = coordinator
    app.state.session_factory = session_factory
    app.state.driver_index = driver_index
    app.state.api_key = api_key

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationMiddleware)

    register_error_handlers(app)

    app.include_router(ride_requests.router, prefix="/ride-requests", tags=["ride-requests"])
    app.include_router(drivers.router, prefix="/drivers", tags=["drivers"])

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint for monitoring (unauthenticated for infrastructure)."""
        return {"status": "healthy"}

    return app
