"""Response and request bodies for the ride request API."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from ridepool.rides import RideRequest


class RideRequestResponse(BaseModel):
    id: str
    passenger_id: str
    driver_id: str | None
    start_latitude: float
    start_longitude: float
    end_latitude: float
    end_longitude: float
    request_time: datetime
    is_scheduled: bool
    scheduled_time: datetime | None
    is_pooled: bool
    shortest_path: str
    status: Literal["pending", "accepted", "cancelled"]
    updated_at: datetime | None

    @classmethod
    def from_domain(cls, ride_request: RideRequest) -> "RideRequestResponse":
        start_lat, start_lon = ride_request.start_location
        end_lat, end_lon = ride_request.end_location
        return cls(
            id=ride_request.id,
            passenger_id=ride_request.passenger_id,
            driver_id=ride_request.driver_id,
            start_latitude=start_lat,
            start_longitude=start_lon,
            end_latitude=end_lat,
            end_longitude=end_lon,
            request_time=ride_request.request_time,
            is_scheduled=ride_request.is_scheduled,
            scheduled_time=ride_request.scheduled_time,
            is_pooled=ride_request.is_pooled,
            shortest_path=ride_request.shortest_path,
            status=ride_request.status.value,
            updated_at=ride_request.updated_at,
        )


class DriverLocationUpdate(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class DriverLocationResponse(BaseModel):
    driver_id: str
    latitude: float
    longitude: float
    indexed_drivers: int
