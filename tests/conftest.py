import os

# Required settings have no defaults (services must fail without them).
# Provide test values so Settings() can be constructed in tests.
os.environ.setdefault("REDIS_PASSWORD", "test-password")
os.environ.setdefault("API_KEY", "test-api-key")
os.environ.setdefault("POOLING_MAX_DETOUR_KM", "2.0")

from unittest.mock import AsyncMock, Mock

import pytest

from ridepool.db.database import init_database
from ridepool.geo.route_analysis import RouteGeometryAnalyzer
from tests.factories import HaversineDistanceProvider, RideFactory


@pytest.fixture
def temp_sqlite_db(tmp_path):
    """Temporary SQLite database for persistence tests."""
    return tmp_path / "test_ridepool.db"


@pytest.fixture
def session_factory(temp_sqlite_db):
    return init_database(str(temp_sqlite_db))


@pytest.fixture
def ride_factory(session_factory) -> RideFactory:
    """Factory for seeding vehicles, rides and ride requests."""
    return RideFactory(session_factory)


@pytest.fixture
def mock_notifier():
    """Mock notifier recording every notify() call."""
    notifier = Mock()
    notifier.notify = AsyncMock(return_value=None)
    return notifier


@pytest.fixture
def distance_provider() -> HaversineDistanceProvider:
    return HaversineDistanceProvider()


@pytest.fixture
def analyzer(distance_provider) -> RouteGeometryAnalyzer:
    return RouteGeometryAnalyzer(distance_provider, max_detour_km=2.0, timeout_seconds=1.0)
