"""Driver acceptance of a pending ride request.

Acceptance is one unit of work over two aggregates: the request moves to
``accepted`` and the driver's active ride takes the passenger (seat count,
destination and route). It runs in three phases:

1. precondition reads, which fail fast with a specific error;
2. ETA and fare, computed concurrently with no transaction open;
3. the write unit, which takes the database write lock, re-reads the
   request, applies both compare-and-set updates and commits.

Concurrent write units serialize on the lock, so of several drivers
accepting the same request exactly one commits and the others find it no
longer pending. Database work runs on the executor, never on the event loop.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ridepool.core.correlation import with_correlation
from ridepool.core.exceptions import (
    DriverNotFoundError,
    InvalidTransitionError,
    NoSeatsAvailableError,
    NotFoundOrInvalidStateError,
    PassengerNotFoundError,
    RideNotFoundError,
    TransactionAbortedError,
)
from ridepool.db.repositories import RideRepository, RideRequestRepository, VehicleRepository
from ridepool.db.transaction import transaction
from ridepool.matching.notification_dispatch import notify_best_effort
from ridepool.ride_logging import log_ride_request_context
from ridepool.rides import Ride, RideRequest, RideRequestStatus, Vehicle
from ridepool.utils.async_helpers import call_with_timeout, gather_or_cancel, run_blocking

if TYPE_CHECKING:
    from ridepool.matching.collaborators import ETAProvider, FareProvider, Notifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AcceptanceQuote:
    eta_seconds: float
    fare: float

    @property
    def eta_minutes(self) -> int:
        return round(self.eta_seconds / 60)


def pickup_message(vehicle: Vehicle, ride_request: RideRequest, quote: AcceptanceQuote) -> str:
    """Message sent to the passenger once a driver is committed."""
    if ride_request.is_scheduled and ride_request.scheduled_time is not None:
        when = f"will pick you up at {ride_request.scheduled_time.isoformat()}."
    else:
        when = "is on the way to pick you up."
    return f"{vehicle.describe()} {when} ETA: {quote.eta_minutes} min"


def _not_pending(ride_request_id: str) -> NotFoundOrInvalidStateError:
    return NotFoundOrInvalidStateError(
        "Ride request not found or not in pending state",
        details={"ride_request_id": ride_request_id},
    )


class AcceptanceCoordinator:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        eta_provider: "ETAProvider",
        fare_provider: "FareProvider",
        notifier: "Notifier",
        timeout_seconds: float | None = None,
    ):
        self._session_factory = session_factory
        self._eta_provider = eta_provider
        self._fare_provider = fare_provider
        self._notifier = notifier
        self._timeout = timeout_seconds

    async def accept(
        self,
        ride_request_id: str,
        driver_id: str,
        require_scheduled: bool = False,
    ) -> RideRequest:
        """Commit ``driver_id`` to the request, then notify the passenger.

        Raises:
            NotFoundOrInvalidStateError: request missing, not pending, not
                scheduled when ``require_scheduled``, or lost to a
                concurrent acceptance
            DriverNotFoundError: no vehicle registered for the driver
            RideNotFoundError: the vehicle has no active ride
            PassengerNotFoundError: the request vanished before commit
            NoSeatsAvailableError: the active ride is full
            CollaboratorUnavailableError: ETA or fare could not be computed
            TransactionAbortedError: the database rejected the unit of work
        """
        with (
            with_correlation(ride_request_id),
            log_ride_request_context(ride_request_id, driver_id=driver_id),
        ):
            try:
                ride_request, vehicle, ride = await run_blocking(
                    self._check_preconditions, ride_request_id, driver_id, require_scheduled
                )
                quote = await self._quote(ride, ride_request)
                accepted, updated_ride = await run_blocking(
                    self._apply, ride_request_id, driver_id, ride.id
                )
            except SQLAlchemyError as e:
                logger.error(f"Acceptance rolled back: {e}")
                raise TransactionAbortedError(
                    "Ride request acceptance failed",
                    details={"ride_request_id": ride_request_id},
                ) from e

            logger.info(f"Ride request accepted onto ride {updated_ride.id}")

            await notify_best_effort(
                self._notifier,
                accepted.passenger_id,
                pickup_message(vehicle, accepted, quote),
                extra={
                    "ride_request_id": accepted.id,
                    "ride_id": updated_ride.id,
                    "driver_id": driver_id,
                    "eta_seconds": quote.eta_seconds,
                    "fare": quote.fare,
                },
                timeout=self._timeout,
            )
        return accepted

    def _check_preconditions(
        self, ride_request_id: str, driver_id: str, require_scheduled: bool
    ) -> tuple[RideRequest, Vehicle, Ride]:
        with self._session_factory() as session:
            requests = RideRequestRepository(session)

            ride_request = requests.get(ride_request_id)
            if (
                ride_request is None
                or not ride_request.can_transition_to(RideRequestStatus.ACCEPTED)
                or (require_scheduled and not ride_request.is_scheduled)
            ):
                raise _not_pending(ride_request_id)

            vehicle = VehicleRepository(session).get_by_driver(driver_id)
            if vehicle is None:
                raise DriverNotFoundError("Driver not found", details={"driver_id": driver_id})

            ride = RideRepository(session).get_active_for_vehicle(vehicle.id)
            if ride is None:
                raise RideNotFoundError("Ride not found", details={"vehicle_id": vehicle.id})

            passenger_side = requests.get(ride_request_id, refresh=True)
            if passenger_side is None:
                raise PassengerNotFoundError(
                    "Passenger not found", details={"ride_request_id": ride_request_id}
                )

            if not ride.has_free_seat:
                raise NoSeatsAvailableError(
                    "No seats available on the active ride", details={"ride_id": ride.id}
                )
        return passenger_side, vehicle, ride

    def _apply(
        self, ride_request_id: str, driver_id: str, ride_id: str
    ) -> tuple[RideRequest, Ride]:
        with self._session_factory() as session, transaction(session):
            requests = RideRequestRepository(session)
            rides = RideRepository(session)

            # Earlier reads may be stale; the lock is held from here to commit
            current = requests.get(ride_request_id)
            if current is None:
                raise _not_pending(ride_request_id)
            try:
                current.transition_to(RideRequestStatus.ACCEPTED)
            except InvalidTransitionError as e:
                raise _not_pending(ride_request_id) from e

            if not requests.mark_accepted(ride_request_id, driver_id):
                raise _not_pending(ride_request_id)
            if not rides.add_passenger(ride_id, current.end_location, current.shortest_path):
                raise NoSeatsAvailableError(
                    "No seats available on the active ride", details={"ride_id": ride_id}
                )

            accepted = requests.get(ride_request_id, refresh=True)
            updated_ride = rides.get(ride_id, refresh=True)

        if accepted is None or updated_ride is None:
            raise TransactionAbortedError(
                "Accepted ride request could not be read back",
                details={"ride_request_id": ride_request_id},
            )
        return accepted, updated_ride

    async def _quote(self, ride: Ride, ride_request: RideRequest) -> AcceptanceQuote:
        eta_seconds, fare = await gather_or_cancel(
            call_with_timeout(
                self._eta_provider.eta(ride.position, ride_request.start_location),
                self._timeout,
                "ETA provider",
            ),
            call_with_timeout(
                self._fare_provider.fare(ride_request.route_points),
                self._timeout,
                "fare provider",
            ),
        )
        return AcceptanceQuote(eta_seconds=float(eta_seconds), fare=float(fare))
