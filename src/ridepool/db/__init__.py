"""Database persistence module."""

from .database import init_database
from .schema import Ride, RideRequest, Vehicle
from .transaction import transaction

__all__ = [
    "init_database",
    "Ride",
    "RideRequest",
    "Vehicle",
    "transaction",
]
