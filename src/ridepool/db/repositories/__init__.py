from .ride_repository import RideRepository
from .ride_request_repository import RideRequestRepository
from .vehicle_repository import VehicleRepository

__all__ = ["RideRepository", "RideRequestRepository", "VehicleRepository"]
