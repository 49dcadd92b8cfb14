"""FastAPI dependency injection providers."""

from typing import Annotated, Any

from fastapi import Depends, Request

from ridepool.api.auth import get_current_user_id


def get_dispatcher(request: Request) -> Any:
    """Retrieve MatchingDispatcher from app state."""
    return request.app.state.dispatcher


def get_coordinator(request: Request) -> Any:
    """Retrieve AcceptanceCoordinator from app state."""
    return request.app.state.coordinator


def get_session_factory(request: Request) -> Any:
    return request.app.state.session_factory


def get_driver_index(request: Request) -> Any:
    return request.app.state.driver_index


DispatcherDep = Annotated[Any, Depends(get_dispatcher)]
CoordinatorDep = Annotated[Any, Depends(get_coordinator)]
SessionFactoryDep = Annotated[Any, Depends(get_session_factory)]
DriverIndexDep = Annotated[Any, Depends(get_driver_index)]
UserIdDep = Annotated[str, Depends(get_current_user_id)]
