from .exceptions import (
    InvariantViolation,
    PermissionDeniedError,
    PersistenceError,
    ResourceNotFoundError,
    TripValidationError,
    TriplineError,
)

__all__ = [
    "TriplineError",
    "ResourceNotFoundError",
    "TripValidationError",
    "PermissionDeniedError",
    "PersistenceError",
    "InvariantViolation",
]
