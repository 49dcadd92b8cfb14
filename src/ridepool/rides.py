"""Ride request state machine and ride/vehicle models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from ridepool.core.exceptions import InvalidTransitionError
from ridepool.geo import polyline_codec


class RideRequestStatus(str, Enum):
    """Ride request lifecycle states."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return not VALID_TRANSITIONS[self]


VALID_TRANSITIONS: dict[RideRequestStatus, set[RideRequestStatus]] = {
    RideRequestStatus.PENDING: {RideRequestStatus.ACCEPTED, RideRequestStatus.CANCELLED},
    RideRequestStatus.ACCEPTED: set(),
    RideRequestStatus.CANCELLED: set(),
}


def source_statuses(target: RideRequestStatus) -> set[RideRequestStatus]:
    """Statuses from which ``target`` can be reached."""
    return {status for status, allowed in VALID_TRANSITIONS.items() if target in allowed}


class RideRequest(BaseModel):
    """A passenger's trip request with state machine logic."""

    id: str
    passenger_id: str
    driver_id: str | None = None
    start_location: tuple[float, float]
    end_location: tuple[float, float]
    request_time: datetime
    is_scheduled: bool = False
    scheduled_time: datetime | None = None
    is_pooled: bool = False
    # Encoded polyline of the road route; replaced by the ride's merged route on pooling
    shortest_path: str
    status: RideRequestStatus = Field(default=RideRequestStatus.PENDING)
    updated_at: datetime | None = None

    @property
    def route_points(self) -> list[tuple[float, float]]:
        return polyline_codec.decode(self.shortest_path)

    def can_transition_to(self, new_status: RideRequestStatus) -> bool:
        return new_status in VALID_TRANSITIONS[self.status]

    def transition_to(self, new_status: RideRequestStatus) -> None:
        """Transition to a new status with validation."""
        if self.status.is_terminal:
            raise InvalidTransitionError(
                f"Cannot transition from terminal status {self.status.value}"
            )

        if not self.can_transition_to(new_status):
            raise InvalidTransitionError(
                f"Invalid transition from {self.status.value} to {new_status.value}"
            )

        self.status = new_status


class Vehicle(BaseModel):
    id: str
    driver_id: str
    name: str
    make: str
    model: str
    color: str
    license_plate: str
    capacity: int = Field(ge=1)

    def describe(self) -> str:
        return (
            f"A {self.name}, {self.make} {self.model} color {self.color} "
            f"with license plate {self.license_plate}"
        )


class Ride(BaseModel):
    """An in-progress vehicle trip."""

    id: str
    vehicle_id: str
    latitude: float
    longitude: float
    destination_latitude: float | None = None
    destination_longitude: float | None = None
    number_of_passengers: int = Field(default=0, ge=0)
    available_seats: int = Field(ge=0)
    shortest_path: str | None = None
    is_active: bool = True

    @property
    def position(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)

    @property
    def capacity(self) -> int:
        return self.number_of_passengers + self.available_seats

    @property
    def has_free_seat(self) -> bool:
        return self.available_seats > 0

    @property
    def route_points(self) -> list[tuple[float, float]]:
        if not self.shortest_path:
            return []
        return polyline_codec.decode(self.shortest_path)
