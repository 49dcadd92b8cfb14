"""Ride repository: active rides and seat allocation."""

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ridepool.rides import Ride as RideDomain

from ..schema import Ride, Vehicle
from ..utils import utc_now


class RideRepository:
    """Repository for ride CRUD operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, ride: RideDomain) -> None:
        self.session.add(
            Ride(
                id=ride.id,
                vehicle_id=ride.vehicle_id,
                latitude=ride.latitude,
                longitude=ride.longitude,
                destination_latitude=ride.destination_latitude,
                destination_longitude=ride.destination_longitude,
                number_of_passengers=ride.number_of_passengers,
                available_seats=ride.available_seats,
                shortest_path=ride.shortest_path,
                is_active=ride.is_active,
            )
        )

    def get(self, ride_id: str, refresh: bool = False) -> RideDomain | None:
        row = self.session.get(Ride, ride_id, populate_existing=refresh)
        if row is None:
            return None
        return self._to_domain(row)

    def get_active_for_vehicle(self, vehicle_id: str) -> RideDomain | None:
        """Get the vehicle's in-progress ride, if any."""
        stmt = (
            select(Ride)
            .where(Ride.vehicle_id == vehicle_id)
            .where(Ride.is_active.is_(True))
            .order_by(Ride.created_at.desc())
        )
        row = self.session.execute(stmt).scalars().first()
        if row is None:
            return None
        return self._to_domain(row)

    def list_active_with_drivers(self) -> list[tuple[str, RideDomain]]:
        """List (driver_id, ride) for every active ride."""
        stmt = (
            select(Vehicle.driver_id, Ride)
            .join(Vehicle, Vehicle.id == Ride.vehicle_id)
            .where(Ride.is_active.is_(True))
        )
        result = self.session.execute(stmt)
        return [(driver_id, self._to_domain(ride)) for driver_id, ride in result.all()]

    def add_passenger(
        self,
        ride_id: str,
        destination: tuple[float, float],
        shortest_path: str,
    ) -> bool:
        """Reserve one seat and retarget the ride.

        Both seat counters change in one statement so their sum stays equal
        to the vehicle capacity. Returns False when the ride is inactive or
        full.
        """
        dest_lat, dest_lon = destination
        stmt = (
            update(Ride)
            .where(Ride.id == ride_id)
            .where(Ride.is_active.is_(True))
            .where(Ride.available_seats > 0)
            .values(
                number_of_passengers=Ride.number_of_passengers + 1,
                available_seats=Ride.available_seats - 1,
                destination_latitude=dest_lat,
                destination_longitude=dest_lon,
                shortest_path=shortest_path,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1  # type: ignore[attr-defined]

    def _to_domain(self, row: Ride) -> RideDomain:
        """Convert ORM model to domain model."""
        return RideDomain(
            id=row.id,
            vehicle_id=row.vehicle_id,
            latitude=row.latitude,
            longitude=row.longitude,
            destination_latitude=row.destination_latitude,
            destination_longitude=row.destination_longitude,
            number_of_passengers=row.number_of_passengers,
            available_seats=row.available_seats,
            shortest_path=row.shortest_path,
            is_active=row.is_active,
        )
