"""Vehicle repository (read side for the core)."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from ridepool.rides import Vehicle as VehicleDomain

from ..schema import Vehicle


class VehicleRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, vehicle: VehicleDomain) -> None:
        self.session.add(Vehicle(**vehicle.model_dump()))

    def get(self, vehicle_id: str) -> VehicleDomain | None:
        row = self.session.get(Vehicle, vehicle_id)
        if row is None:
            return None
        return self._to_domain(row)

    def get_by_driver(self, driver_id: str) -> VehicleDomain | None:
        stmt = select(Vehicle).where(Vehicle.driver_id == driver_id)
        row = self.session.execute(stmt).scalars().first()
        if row is None:
            return None
        return self._to_domain(row)

    def _to_domain(self, row: Vehicle) -> VehicleDomain:
        return VehicleDomain(
            id=row.id,
            driver_id=row.driver_id,
            name=row.name,
            make=row.make,
            model=row.model,
            color=row.color,
            license_plate=row.license_plate,
            capacity=row.capacity,
        )
