"""Ride request intake: route lookup, persistence and driver notification."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ridepool.core.exceptions import (
    CollaboratorTimeoutError,
    InvalidTransitionError,
    NoRouteFoundError,
    NotFoundOrInvalidStateError,
    PersistenceError,
    RidepoolError,
    ValidationError,
)
from ridepool.db.repositories import RideRepository, RideRequestRepository
from ridepool.db.transaction import transaction
from ridepool.geo import polyline_codec
from ridepool.matching.notification_dispatch import NotificationResult, fan_out
from ridepool.ride_logging import log_ride_request_context
from ridepool.rides import Ride, RideRequest, RideRequestStatus
from ridepool.utils.async_helpers import call_with_timeout, gather_or_cancel, run_blocking

if TYPE_CHECKING:
    from ridepool.geo.route_analysis import RouteGeometryAnalyzer
    from ridepool.matching.collaborators import DriverLocator, Notifier, RouteProvider

logger = logging.getLogger(__name__)


class RideRequestDraft(BaseModel):
    """Caller-supplied part of a ride request, validated at the boundary."""

    start_latitude: float = Field(ge=-90, le=90)
    start_longitude: float = Field(ge=-180, le=180)
    end_latitude: float = Field(ge=-90, le=90)
    end_longitude: float = Field(ge=-180, le=180)
    scheduled_time: datetime | None = None

    @model_validator(mode="after")
    def normalize_scheduled_time(self) -> "RideRequestDraft":
        if self.scheduled_time is not None:
            if self.scheduled_time.tzinfo is None:
                self.scheduled_time = self.scheduled_time.replace(tzinfo=UTC)
            else:
                self.scheduled_time = self.scheduled_time.astimezone(UTC)
        return self

    @property
    def start(self) -> tuple[float, float]:
        return (self.start_latitude, self.start_longitude)

    @property
    def end(self) -> tuple[float, float]:
        return (self.end_latitude, self.end_longitude)


def _not_pending(ride_request_id: str) -> NotFoundOrInvalidStateError:
    return NotFoundOrInvalidStateError(
        "Ride request not found or not in pending state",
        details={"ride_request_id": ride_request_id},
    )


@dataclass(frozen=True)
class SubmitOptions:
    scheduled: bool = False
    pooled: bool = False


def parse_draft(raw_request: dict[str, Any], options: SubmitOptions) -> RideRequestDraft:
    """Validate a raw payload into a draft or raise ValidationError."""
    try:
        draft = RideRequestDraft.model_validate(raw_request)
    except PydanticValidationError as e:
        fields = [".".join(str(loc) for loc in err["loc"]) for err in e.errors()]
        raise ValidationError(
            f"Invalid ride request: {', '.join(fields)}",
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from e

    if options.scheduled and draft.scheduled_time is None:
        raise ValidationError("scheduled_time is required for a scheduled ride request")
    if not options.scheduled:
        draft.scheduled_time = None
    return draft


class MatchingDispatcher:
    """Creates ride requests and offers them to nearby drivers.

    Solo requests go to every driver the locator returns. Pooled requests
    only go to drivers whose active ride is empty, or whose ride has a free
    seat and runs in a compatible direction with an acceptable detour.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        route_provider: "RouteProvider",
        driver_locator: "DriverLocator",
        notifier: "Notifier",
        analyzer: "RouteGeometryAnalyzer",
        timeout_seconds: float | None = None,
    ):
        self._session_factory = session_factory
        self._route_provider = route_provider
        self._driver_locator = driver_locator
        self._notifier = notifier
        self._analyzer = analyzer
        self._timeout = timeout_seconds

    async def submit(
        self,
        raw_request: dict[str, Any],
        requester_id: str,
        options: SubmitOptions,
    ) -> RideRequest:
        draft = parse_draft(raw_request, options)
        ride_request_id = str(uuid4())

        with log_ride_request_context(ride_request_id, passenger_id=requester_id):
            encoded = await self._fetch_route(draft)

            ride_request = RideRequest(
                id=ride_request_id,
                passenger_id=requester_id,
                start_location=draft.start,
                end_location=draft.end,
                request_time=datetime.now(UTC),
                is_scheduled=options.scheduled,
                scheduled_time=draft.scheduled_time,
                is_pooled=options.pooled,
                shortest_path=encoded,
                status=RideRequestStatus.PENDING,
            )
            await run_blocking(self._persist, ride_request)
            logger.info(
                f"Ride request created (scheduled={options.scheduled}, pooled={options.pooled})"
            )

            results = await self.notify_drivers(ride_request)
            delivered = sum(1 for r in results if r.delivered)
            logger.info(f"Notified {delivered}/{len(results)} drivers")

        return ride_request

    async def cancel(self, ride_request_id: str, requester_id: str) -> RideRequest:
        """Move the requester's pending request to cancelled.

        A request owned by another passenger reads as missing.
        """
        with log_ride_request_context(ride_request_id, passenger_id=requester_id):
            try:
                cancelled = await run_blocking(self._cancel, ride_request_id, requester_id)
            except SQLAlchemyError as e:
                raise PersistenceError(
                    "Failed to cancel ride request", details={"error": str(e)}
                ) from e
            logger.info("Ride request cancelled")
        return cancelled

    def _cancel(self, ride_request_id: str, requester_id: str) -> RideRequest:
        with self._session_factory() as session, transaction(session):
            repo = RideRequestRepository(session)
            current = repo.get(ride_request_id)
            if current is None or current.passenger_id != requester_id:
                raise _not_pending(ride_request_id)
            try:
                current.transition_to(RideRequestStatus.CANCELLED)
            except InvalidTransitionError as e:
                raise _not_pending(ride_request_id) from e

            if not repo.mark_cancelled(ride_request_id, requester_id):
                raise _not_pending(ride_request_id)
            cancelled = repo.get(ride_request_id, refresh=True)

        if cancelled is None:
            raise _not_pending(ride_request_id)
        return cancelled

    async def _fetch_route(self, draft: RideRequestDraft) -> str:
        try:
            encoded = await call_with_timeout(
                self._route_provider.route(draft.start, draft.end),
                self._timeout,
                "route provider",
            )
        except CollaboratorTimeoutError as e:
            raise NoRouteFoundError("No path found", details=e.details) from e

        if not encoded:
            raise NoRouteFoundError(
                "No path found",
                details={"start": draft.start, "end": draft.end},
            )
        polyline_codec.decode(encoded)
        return encoded

    def _persist(self, ride_request: RideRequest) -> None:
        try:
            with self._session_factory() as session, transaction(session):
                RideRequestRepository(session).create(ride_request)
        except SQLAlchemyError as e:
            raise PersistenceError(
                "Failed to store ride request", details={"error": str(e)}
            ) from e

    async def notify_drivers(self, ride_request: RideRequest) -> list[NotificationResult]:
        """Offer a stored request to candidate drivers; never raises on delivery."""
        origin = ride_request.start_location
        try:
            drivers = await call_with_timeout(
                self._driver_locator.find_nearby(origin), self._timeout, "driver locator"
            )
        except RidepoolError as e:
            logger.warning(f"Driver lookup failed, no drivers notified: {e.message}")
            return []

        if ride_request.is_pooled:
            drivers = await self._poolable_drivers(drivers, ride_request)

        message = f"New ride request from passenger {ride_request.passenger_id}"
        extra = {
            "ride_request_id": ride_request.id,
            "is_pooled": ride_request.is_pooled,
            "is_scheduled": ride_request.is_scheduled,
        }
        return await fan_out(self._notifier, drivers, message, extra, self._timeout)

    async def _poolable_drivers(
        self, drivers: list[str], ride_request: RideRequest
    ) -> list[str]:
        # The request is already stored, so a failed lookup only narrows the offer
        try:
            active = await run_blocking(self._active_rides_by_driver)
        except SQLAlchemyError as e:
            logger.warning(f"Active ride lookup failed, no pooled drivers notified: {e}")
            return []

        checks = await gather_or_cancel(
            *(
                self._can_pool(driver_id, active.get(driver_id), ride_request)
                for driver_id in drivers
            )
        )
        return [driver_id for driver_id, ok in zip(drivers, checks, strict=True) if ok]

    def _active_rides_by_driver(self) -> dict[str, Ride]:
        with self._session_factory() as session:
            return dict(RideRepository(session).list_active_with_drivers())

    async def _can_pool(
        self, driver_id: str, ride: Ride | None, ride_request: RideRequest
    ) -> bool:
        if ride is None or ride.number_of_passengers == 0:
            return True
        if not ride.has_free_seat:
            return False

        try:
            assessment = await self._analyzer.assess(
                ride.route_points, ride_request.start_location, ride_request.end_location
            )
        except RidepoolError as e:
            logger.warning(f"Pooling check for driver {driver_id} failed: {e.message}")
            return False

        if not assessment.compatible:
            logger.debug(f"Driver {driver_id} skipped for pooling: {assessment.reason}")
        return assessment.compatible
