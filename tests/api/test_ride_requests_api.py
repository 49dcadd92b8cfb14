from datetime import UTC, datetime
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from ridepool.api.app import create_app
from ridepool.core.correlation import get_current_correlation_id
from ridepool.db.repositories import RideRequestRepository
from ridepool.fare import FareCalculator
from ridepool.matching.acceptance import AcceptanceCoordinator
from ridepool.matching.dispatcher import MatchingDispatcher
from ridepool.matching.driver_geospatial_index import DriverGeospatialIndex
from ridepool.rides import RideRequestStatus
from tests.factories import IBIRAPUERA, PAULISTA_AVE, SE_SQUARE, StaticRouteProvider

API_KEY = "test-api-key"


class FixedETA:
    async def eta(self, origin, destination):
        return 120.0


def _headers(user_id: str = "passenger-1") -> dict[str, str]:
    return {"X-API-Key": API_KEY, "X-User-Id": user_id}


def _body(**extra):
    return {
        "start_latitude": SE_SQUARE[0],
        "start_longitude": SE_SQUARE[1],
        "end_latitude": IBIRAPUERA[0],
        "end_longitude": IBIRAPUERA[1],
        **extra,
    }


@pytest.fixture
def route_provider():
    return StaticRouteProvider()


@pytest.fixture
def driver_index():
    return DriverGeospatialIndex(h3_resolution=9, search_radius_km=5.0)


@pytest.fixture
def app(session_factory, mock_notifier, analyzer, route_provider, driver_index):
    dispatcher = MatchingDispatcher(
        session_factory=session_factory,
        route_provider=route_provider,
        driver_locator=driver_index,
        notifier=mock_notifier,
        analyzer=analyzer,
        timeout_seconds=1.0,
    )
    coordinator = AcceptanceCoordinator(
        session_factory=session_factory,
        eta_provider=FixedETA(),
        fare_provider=FareCalculator(),
        notifier=mock_notifier,
        timeout_seconds=1.0,
    )
    return create_app(
        dispatcher=dispatcher,
        coordinator=coordinator,
        session_factory=session_factory,
        driver_index=driver_index,
        api_key=API_KEY,
        cors_origins=["http://localhost:3000"],
    )


@pytest.fixture
def test_client(app):
    with TestClient(app) as client:
        yield client


@pytest.mark.unit
class TestAuthentication:
    def test_health_endpoint_no_auth(self, test_client):
        response = test_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_invalid_api_key(self, test_client):
        response = test_client.get("/ride-requests", headers={"X-API-Key": "wrong-key"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid API key"

    def test_missing_api_key(self, test_client):
        response = test_client.get("/ride-requests")
        assert response.status_code == 400
        assert response.json()["error"] == "bad_request"

    def test_unconfigured_api_key_is_server_error(self, app):
        app.state.api_key = ""

        with TestClient(app) as client:
            response = client.get("/ride-requests", headers={"X-API-Key": "anything"})

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error", "error": "server_error"}

    def test_submission_requires_user(self, test_client):
        response = test_client.post(
            "/ride-requests", json=_body(), headers={"X-API-Key": API_KEY}
        )
        assert response.status_code == 400


@pytest.mark.unit
class TestSubmission:
    @pytest.mark.parametrize(
        ("path", "extra", "scheduled", "pooled"),
        [
            ("/ride-requests", {}, False, False),
            ("/ride-requests/scheduled", {"scheduled_time": "2026-05-01T09:00:00Z"}, True, False),
            ("/ride-requests/pooled", {}, False, True),
            (
                "/ride-requests/pooled/scheduled",
                {"scheduled_time": "2026-05-01T09:00:00Z"},
                True,
                True,
            ),
        ],
    )
    def test_create_variants(self, test_client, path, extra, scheduled, pooled):
        response = test_client.post(path, json=_body(**extra), headers=_headers())

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["passenger_id"] == "passenger-1"
        assert data["is_scheduled"] is scheduled
        assert data["is_pooled"] is pooled
        assert data["driver_id"] is None
        assert data["shortest_path"]

    def test_nearby_drivers_notified(self, test_client, driver_index, mock_notifier):
        test_client.put(
            "/drivers/driver-1/location",
            json={"latitude": SE_SQUARE[0], "longitude": SE_SQUARE[1]},
            headers=_headers("driver-1"),
        )

        response = test_client.post("/ride-requests", json=_body(), headers=_headers())

        assert response.status_code == 201
        assert mock_notifier.notify.await_args.args[0] == "driver-1"

    def test_scheduled_without_time(self, test_client):
        response = test_client.post("/ride-requests/scheduled", json=_body(), headers=_headers())

        assert response.status_code == 400
        assert response.json()["error"] == "bad_request"
        assert "scheduled_time" in response.json()["detail"]

    def test_invalid_coordinates(self, test_client):
        response = test_client.post(
            "/ride-requests", json=_body(start_latitude=123.0), headers=_headers()
        )
        assert response.status_code == 400

    def test_no_route(self, test_client, route_provider):
        route_provider.encoded = None

        response = test_client.post("/ride-requests", json=_body(), headers=_headers())

        assert response.status_code == 400
        assert response.json() == {"detail": "No path found", "error": "bad_request"}

    def test_routing_unavailable(self, test_client, route_provider):
        route_provider.fail_with = RuntimeError("connection refused")

        response = test_client.post("/ride-requests", json=_body(), headers=_headers())

        assert response.status_code == 503
        assert response.json()["error"] == "service_unavailable"


@pytest.mark.unit
class TestQueries:
    def test_get_one(self, test_client, ride_factory):
        ride_request = ride_factory.ride_request()

        response = test_client.get(f"/ride-requests/{ride_request.id}", headers=_headers())

        assert response.status_code == 200
        assert response.json()["id"] == ride_request.id

    def test_get_missing(self, test_client):
        response = test_client.get("/ride-requests/missing", headers=_headers())

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_filters(self, test_client, ride_factory):
        when = datetime(2026, 5, 1, tzinfo=UTC)
        solo = ride_factory.ride_request()
        pooled = ride_factory.ride_request(is_pooled=True)
        scheduled = ride_factory.ride_request(is_scheduled=True, scheduled_time=when)
        both = ride_factory.ride_request(is_scheduled=True, is_pooled=True, scheduled_time=when)
        accepted = ride_factory.ride_request(
            is_scheduled=True,
            scheduled_time=when,
            status=RideRequestStatus.ACCEPTED,
            driver_id="driver-1",
        )

        def ids(path, **params):
            response = test_client.get(path, params=params, headers=_headers())
            assert response.status_code == 200
            return {r["id"] for r in response.json()}

        assert ids("/ride-requests") == {solo.id, pooled.id, scheduled.id, both.id, accepted.id}
        assert ids("/ride-requests/pooled") == {pooled.id, both.id}
        assert ids("/ride-requests/scheduled") == {scheduled.id, both.id, accepted.id}
        assert ids("/ride-requests/scheduled/pooled") == {both.id}
        assert ids("/ride-requests/scheduled/accepted") == {accepted.id}
        assert ids("/ride-requests", status="pending", pooled="false") == {solo.id, scheduled.id}

    def test_invalid_status_filter(self, test_client):
        response = test_client.get("/ride-requests", params={"status": "done"}, headers=_headers())
        assert response.status_code == 400


@pytest.mark.unit
class TestLifecycle:
    def test_cancel(self, test_client, ride_factory):
        ride_request = ride_factory.ride_request(passenger_id="passenger-1")

        response = test_client.post(
            f"/ride-requests/{ride_request.id}/cancel", headers=_headers("passenger-1")
        )

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    def test_cancel_someone_elses_request(self, test_client, ride_factory):
        ride_request = ride_factory.ride_request(passenger_id="passenger-1")

        response = test_client.post(
            f"/ride-requests/{ride_request.id}/cancel", headers=_headers("passenger-2")
        )

        assert response.status_code == 404

    def test_accept(self, test_client, ride_factory, mock_notifier):
        vehicle = ride_factory.vehicle("driver-1")
        ride_factory.ride(vehicle, route=[PAULISTA_AVE, IBIRAPUERA], number_of_passengers=1)
        ride_request = ride_factory.ride_request(passenger_id="passenger-1")

        response = test_client.post(
            f"/ride-requests/{ride_request.id}/accept", headers=_headers("driver-1")
        )

        assert response.status_code == 200
        assert response.json()["status"] == "accepted"
        assert response.json()["driver_id"] == "driver-1"
        assert mock_notifier.notify.await_args.args[1].endswith("ETA: 2 min")

    def test_accept_twice(self, test_client, ride_factory):
        vehicle = ride_factory.vehicle("driver-1")
        ride_factory.ride(vehicle, number_of_passengers=1)
        ride_request = ride_factory.ride_request()

        first = test_client.post(
            f"/ride-requests/{ride_request.id}/accept", headers=_headers("driver-1")
        )
        second = test_client.post(
            f"/ride-requests/{ride_request.id}/accept", headers=_headers("driver-1")
        )

        assert first.status_code == 200
        assert second.status_code == 404

    def test_accept_scheduled_rejects_immediate_request(self, test_client, ride_factory):
        vehicle = ride_factory.vehicle("driver-1")
        ride_factory.ride(vehicle)
        ride_request = ride_factory.ride_request()

        response = test_client.post(
            f"/ride-requests/{ride_request.id}/accept-scheduled", headers=_headers("driver-1")
        )

        assert response.status_code == 404

    def test_accept_full_ride(self, test_client, ride_factory):
        vehicle = ride_factory.vehicle("driver-1", capacity=1)
        ride_factory.ride(vehicle, number_of_passengers=1)
        ride_request = ride_factory.ride_request()

        response = test_client.post(
            f"/ride-requests/{ride_request.id}/accept", headers=_headers("driver-1")
        )

        assert response.status_code == 400
        assert response.json()["error"] == "bad_request"

    def test_unknown_driver(self, test_client, ride_factory):
        ride_request = ride_factory.ride_request()

        response = test_client.post(
            f"/ride-requests/{ride_request.id}/accept", headers=_headers("ghost")
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Driver not found"


@pytest.mark.unit
class TestDrivers:
    def test_update_location(self, test_client, driver_index):
        response = test_client.put(
            "/drivers/driver-9/location",
            json={"latitude": PAULISTA_AVE[0], "longitude": PAULISTA_AVE[1]},
            headers=_headers("driver-9"),
        )

        assert response.status_code == 200
        assert response.json()["indexed_drivers"] == 1
        assert driver_index.find_nearest_drivers(*PAULISTA_AVE)[0][0] == "driver-9"

    def test_invalid_location(self, test_client):
        response = test_client.put(
            "/drivers/driver-9/location",
            json={"latitude": 100.0, "longitude": 0.0},
            headers=_headers("driver-9"),
        )
        assert response.status_code == 400

    def test_driver_goes_offline(self, test_client, driver_index):
        test_client.put(
            "/drivers/driver-9/location",
            json={"latitude": PAULISTA_AVE[0], "longitude": PAULISTA_AVE[1]},
            headers=_headers("driver-9"),
        )

        response = test_client.delete("/drivers/driver-9/location", headers=_headers("driver-9"))

        assert response.status_code == 204
        assert driver_index.find_nearest_drivers(*PAULISTA_AVE) == []

    def test_active_rides_loaded_on_startup(self, app, ride_factory, driver_index):
        vehicle = ride_factory.vehicle("driver-1")
        ride_factory.ride(vehicle, route=[PAULISTA_AVE, IBIRAPUERA])

        with TestClient(app):
            assert [d for d, _ in driver_index.find_nearest_drivers(*PAULISTA_AVE)] == [
                "driver-1"
            ]


@pytest.mark.unit
class TestErrorMapping:
    def test_unexpected_error_is_generic_500(self, app):
        with (
            patch.object(RideRequestRepository, "create", side_effect=ValueError("boom")),
            TestClient(app, raise_server_exceptions=False) as client,
        ):
            response = client.post("/ride-requests", json=_body(), headers=_headers())

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error", "error": "server_error"}


@pytest.mark.unit
class TestCorrelation:
    def test_caller_request_id_echoed(self, test_client):
        response = test_client.get("/health", headers={"X-Request-ID": "gw-123"})

        assert response.headers["X-Request-ID"] == "gw-123"

    def test_request_id_generated_when_absent(self, test_client):
        first = test_client.get("/health").headers["X-Request-ID"]
        second = test_client.get("/health").headers["X-Request-ID"]

        assert len(first) == 32
        assert first != second

    def test_request_id_visible_to_handlers(self, test_client, mock_notifier):
        test_client.put(
            "/drivers/driver-1/location",
            json={"latitude": SE_SQUARE[0], "longitude": SE_SQUARE[1]},
            headers=_headers("driver-1"),
        )
        seen = []
        mock_notifier.notify.side_effect = lambda *args: seen.append(
            get_current_correlation_id()
        )

        test_client.post(
            "/ride-requests", json=_body(), headers={**_headers(), "X-Request-ID": "gw-9"}
        )

        assert seen == ["gw-9"]
