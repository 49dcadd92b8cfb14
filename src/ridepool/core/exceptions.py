"""Standardized exception hierarchy for the ride-request service.

Every error carries a ``classification`` that the API layer maps onto an
HTTP status. Messages are meant for callers; collaborator internals stay in
``details`` and the logs.
"""

from typing import Any

BAD_REQUEST = "bad_request"
NOT_FOUND = "not_found"
SERVICE_UNAVAILABLE = "service_unavailable"
SERVER_ERROR = "server_error"


class RidepoolError(Exception):
    """Base exception for all ride-request errors."""

    classification = SERVER_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class TransientError(RidepoolError):
    """Errors that may succeed on retry."""

    classification = SERVICE_UNAVAILABLE


class NetworkError(TransientError):
    """Network-related transient errors (timeout, connection refused)."""

    pass


class ServiceUnavailableError(TransientError):
    """External service temporarily unavailable (5xx responses)."""

    pass


class CollaboratorUnavailableError(TransientError):
    """Routing, ETA, fare, locator or notification provider failed."""

    pass


class CollaboratorTimeoutError(CollaboratorUnavailableError):
    """Collaborator did not answer within the configured bound."""

    pass


class PersistenceError(TransientError):
    """Database or state persistence failed."""

    pass


class PermanentError(RidepoolError):
    """Errors that will not succeed on retry."""

    classification = BAD_REQUEST


class ValidationError(PermanentError):
    """Invalid input or data format."""

    pass


class NoRouteFoundError(ValidationError):
    """No road route exists between the requested coordinates."""

    pass


class MalformedPolylineError(ValidationError):
    """Encoded polyline is truncated or contains invalid characters."""

    pass


class DegenerateRouteError(ValidationError):
    """Route has no direction (empty, or start equals end)."""

    pass


class NotFoundError(PermanentError):
    """Requested entity does not exist."""

    classification = NOT_FOUND


class NotFoundOrInvalidStateError(NotFoundError):
    """Entity is missing or not in a state that allows the operation."""

    pass


class DriverNotFoundError(NotFoundOrInvalidStateError):
    """No vehicle is registered for the driver."""

    pass


class RideNotFoundError(NotFoundOrInvalidStateError):
    """The driver's vehicle has no active ride."""

    pass


class PassengerNotFoundError(NotFoundOrInvalidStateError):
    """Passenger-side record of the ride request could not be resolved."""

    pass


class StateError(PermanentError):
    """Invalid state transition."""

    pass


class InvalidTransitionError(StateError):
    """Ride request lifecycle forbids the requested transition."""

    pass


class NoSeatsAvailableError(StateError):
    """Active ride has no free seat left."""

    pass


class ConfigurationError(PermanentError):
    """Missing or invalid configuration."""

    classification = SERVER_ERROR


class TransactionAbortedError(RidepoolError):
    """Atomic unit of work failed and was rolled back."""

    classification = SERVER_ERROR
