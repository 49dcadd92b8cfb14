from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session, sessionmaker

from ridepool.api.auth import verify_api_key
from ridepool.api.dependencies import (
    CoordinatorDep,
    DispatcherDep,
    SessionFactoryDep,
    UserIdDep,
)
from ridepool.api.models.ride_requests import RideRequestResponse
from ridepool.core.exceptions import NotFoundError
from ridepool.db.repositories import RideRequestRepository
from ridepool.matching.dispatcher import SubmitOptions
from ridepool.rides import RideRequestStatus

router = APIRouter(dependencies=[Depends(verify_api_key)])

RawBody = Annotated[dict[str, Any], Body()]


# --- Helper Functions ---


async def _submit(
    dispatcher: Any, body: dict[str, Any], user_id: str, scheduled: bool, pooled: bool
) -> RideRequestResponse:
    ride_request = await dispatcher.submit(
        body, user_id, SubmitOptions(scheduled=scheduled, pooled=pooled)
    )
    return RideRequestResponse.from_domain(ride_request)


def _list(
    session_factory: sessionmaker[Session],
    status: RideRequestStatus | None = None,
    pooled: bool | None = None,
    scheduled: bool | None = None,
) -> list[RideRequestResponse]:
    with session_factory() as session:
        ride_requests = RideRequestRepository(session).list_matching(
            status=status, is_pooled=pooled, is_scheduled=scheduled
        )
    return [RideRequestResponse.from_domain(r) for r in ride_requests]


# --- Submission ---


@router.post("", status_code=201, response_model=RideRequestResponse)
async def create_ride_request(
    body: RawBody, dispatcher: DispatcherDep, user_id: UserIdDep
) -> RideRequestResponse:
    return await _submit(dispatcher, body, user_id, scheduled=False, pooled=False)


@router.post("/scheduled", status_code=201, response_model=RideRequestResponse)
async def create_scheduled_ride_request(
    body: RawBody, dispatcher: DispatcherDep, user_id: UserIdDep
) -> RideRequestResponse:
    return await _submit(dispatcher, body, user_id, scheduled=True, pooled=False)


@router.post("/pooled", status_code=201, response_model=RideRequestResponse)
async def create_pooled_ride_request(
    body: RawBody, dispatcher: DispatcherDep, user_id: UserIdDep
) -> RideRequestResponse:
    return await _submit(dispatcher, body, user_id, scheduled=False, pooled=True)


@router.post("/pooled/scheduled", status_code=201, response_model=RideRequestResponse)
async def create_scheduled_pooled_ride_request(
    body: RawBody, dispatcher: DispatcherDep, user_id: UserIdDep
) -> RideRequestResponse:
    return await _submit(dispatcher, body, user_id, scheduled=True, pooled=True)


# --- Queries ---


@router.get("", response_model=list[RideRequestResponse])
def list_ride_requests(
    session_factory: SessionFactoryDep,
    status: Annotated[RideRequestStatus | None, Query()] = None,
    pooled: Annotated[bool | None, Query()] = None,
    scheduled: Annotated[bool | None, Query()] = None,
) -> list[RideRequestResponse]:
    return _list(session_factory, status=status, pooled=pooled, scheduled=scheduled)


@router.get("/pooled", response_model=list[RideRequestResponse])
def list_pooled_ride_requests(session_factory: SessionFactoryDep) -> list[RideRequestResponse]:
    return _list(session_factory, pooled=True)


@router.get("/scheduled", response_model=list[RideRequestResponse])
def list_scheduled_ride_requests(
    session_factory: SessionFactoryDep,
) -> list[RideRequestResponse]:
    return _list(session_factory, scheduled=True)


@router.get("/scheduled/pooled", response_model=list[RideRequestResponse])
def list_scheduled_pooled_ride_requests(
    session_factory: SessionFactoryDep,
) -> list[RideRequestResponse]:
    return _list(session_factory, scheduled=True, pooled=True)


@router.get("/scheduled/accepted", response_model=list[RideRequestResponse])
def list_accepted_scheduled_ride_requests(
    session_factory: SessionFactoryDep,
) -> list[RideRequestResponse]:
    return _list(session_factory, status=RideRequestStatus.ACCEPTED, scheduled=True)


@router.get("/{ride_request_id}", response_model=RideRequestResponse)
def get_ride_request(
    ride_request_id: str, session_factory: SessionFactoryDep
) -> RideRequestResponse:
    with session_factory() as session:
        ride_request = RideRequestRepository(session).get(ride_request_id)
    if ride_request is None:
        raise NotFoundError(f"Ride request {ride_request_id} not found")
    return RideRequestResponse.from_domain(ride_request)


# --- Lifecycle ---


@router.post("/{ride_request_id}/cancel", response_model=RideRequestResponse)
async def cancel_ride_request(
    ride_request_id: str, dispatcher: DispatcherDep, user_id: UserIdDep
) -> RideRequestResponse:
    ride_request = await dispatcher.cancel(ride_request_id, user_id)
    return RideRequestResponse.from_domain(ride_request)


@router.post("/{ride_request_id}/accept", response_model=RideRequestResponse)
async def accept_ride_request(
    ride_request_id: str, coordinator: CoordinatorDep, user_id: UserIdDep
) -> RideRequestResponse:
    """Accept as the calling driver."""
    ride_request = await coordinator.accept(ride_request_id, user_id)
    return RideRequestResponse.from_domain(ride_request)


@router.post("/{ride_request_id}/accept-scheduled", response_model=RideRequestResponse)
async def accept_scheduled_ride_request(
    ride_request_id: str, coordinator: CoordinatorDep, user_id: UserIdDep
) -> RideRequestResponse:
    """Accept a scheduled request as the calling driver.

    Only scheduled requests are accepted here. An immediate request answers
    404 like a missing or already-taken one; drivers accept those through
    ``/accept``.
    """
    ride_request = await coordinator.accept(ride_request_id, user_id, require_scheduled=True)
    return RideRequestResponse.from_domain(ride_request)
