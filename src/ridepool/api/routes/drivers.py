from fastapi import APIRouter, Depends

from ridepool.api.auth import verify_api_key
from ridepool.api.dependencies import DriverIndexDep
from ridepool.api.models.ride_requests import DriverLocationResponse, DriverLocationUpdate

router = APIRouter(dependencies=[Depends(verify_api_key)])


@router.put("/{driver_id}/location", response_model=DriverLocationResponse)
def update_driver_location(
    driver_id: str, body: DriverLocationUpdate, driver_index: DriverIndexDep
) -> DriverLocationResponse:
    """Move a driver in the spatial index used for nearby-driver lookup."""
    driver_index.update_driver_location(driver_id, body.latitude, body.longitude)
    return DriverLocationResponse(
        driver_id=driver_id,
        latitude=body.latitude,
        longitude=body.longitude,
        indexed_drivers=len(driver_index),
    )


@router.delete("/{driver_id}/location", status_code=204)
def remove_driver_location(driver_id: str, driver_index: DriverIndexDep) -> None:
    """Take a driver off the index when they go offline."""
    driver_index.remove_driver(driver_id)
