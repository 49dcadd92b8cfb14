"""Ride request repository with lifecycle-guarded status writes."""

from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ridepool.rides import RideRequest as RideRequestDomain
from ridepool.rides import RideRequestStatus, source_statuses

from ..schema import RideRequest
from ..utils import from_naive_utc, to_naive_utc, utc_now


class RideRequestRepository:
    """Repository for ride request CRUD operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, ride_request: RideRequestDomain) -> None:
        """Stage a new ride request; the caller's transaction commits it."""
        start_lat, start_lon = ride_request.start_location
        end_lat, end_lon = ride_request.end_location

        self.session.add(
            RideRequest(
                id=ride_request.id,
                passenger_id=ride_request.passenger_id,
                driver_id=ride_request.driver_id,
                start_latitude=start_lat,
                start_longitude=start_lon,
                end_latitude=end_lat,
                end_longitude=end_lon,
                request_time=to_naive_utc(ride_request.request_time),
                is_scheduled=ride_request.is_scheduled,
                scheduled_time=to_naive_utc(ride_request.scheduled_time),
                is_pooled=ride_request.is_pooled,
                shortest_path=ride_request.shortest_path,
                status=ride_request.status.value,
                updated_at=utc_now(),
            )
        )

    def get(self, ride_request_id: str, refresh: bool = False) -> RideRequestDomain | None:
        """Get ride request by ID.

        ``refresh`` re-reads the row from the database instead of trusting
        the session's identity map.
        """
        row = self.session.get(RideRequest, ride_request_id, populate_existing=refresh)
        if row is None:
            return None
        return self._to_domain(row)

    def list_matching(
        self,
        status: RideRequestStatus | None = None,
        is_pooled: bool | None = None,
        is_scheduled: bool | None = None,
        passenger_id: str | None = None,
    ) -> list[RideRequestDomain]:
        """List ride requests matching every given filter, newest first."""
        stmt = select(RideRequest)
        if status is not None:
            stmt = stmt.where(RideRequest.status == status.value)
        if is_pooled is not None:
            stmt = stmt.where(RideRequest.is_pooled == is_pooled)
        if is_scheduled is not None:
            stmt = stmt.where(RideRequest.is_scheduled == is_scheduled)
        if passenger_id is not None:
            stmt = stmt.where(RideRequest.passenger_id == passenger_id)
        stmt = stmt.order_by(RideRequest.request_time.desc())

        result = self.session.execute(stmt)
        return [self._to_domain(r) for r in result.scalars().all()]

    def mark_accepted(self, ride_request_id: str, driver_id: str) -> bool:
        """Compare-and-set pending -> accepted. Returns False if the row was not pending."""
        return self._transition(ride_request_id, RideRequestStatus.ACCEPTED, driver_id=driver_id)

    def mark_cancelled(self, ride_request_id: str, passenger_id: str) -> bool:
        """Compare-and-set pending -> cancelled for the owning passenger."""
        return self._transition(
            ride_request_id,
            RideRequestStatus.CANCELLED,
            where_passenger_id=passenger_id,
        )

    def _transition(
        self,
        ride_request_id: str,
        target: RideRequestStatus,
        where_passenger_id: str | None = None,
        **values: Any,
    ) -> bool:
        allowed_from = [status.value for status in source_statuses(target)]
        stmt = (
            update(RideRequest)
            .where(RideRequest.id == ride_request_id)
            .where(RideRequest.status.in_(allowed_from))
        )
        if where_passenger_id is not None:
            stmt = stmt.where(RideRequest.passenger_id == where_passenger_id)
        stmt = stmt.values(status=target.value, updated_at=utc_now(), **values).execution_options(
            synchronize_session=False
        )

        result = self.session.execute(stmt)
        return result.rowcount == 1  # type: ignore[attr-defined]

    def _to_domain(self, row: RideRequest) -> RideRequestDomain:
        """Convert ORM model to domain model."""
        return RideRequestDomain(
            id=row.id,
            passenger_id=row.passenger_id,
            driver_id=row.driver_id,
            start_location=(row.start_latitude, row.start_longitude),
            end_location=(row.end_latitude, row.end_longitude),
            request_time=from_naive_utc(row.request_time),
            is_scheduled=row.is_scheduled,
            scheduled_time=from_naive_utc(row.scheduled_time),
            is_pooled=row.is_pooled,
            shortest_path=row.shortest_path,
            status=RideRequestStatus(row.status),
            updated_at=from_naive_utc(row.updated_at),
        )
