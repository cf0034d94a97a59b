from __future__ import annotations


class TriplineError(Exception):
    """Base class for business friendly errors surfaced to API consumers."""

    def __init__(self, message: str, code: int = 15000) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class ResourceNotFoundError(TriplineError):
    pass


class TripValidationError(TriplineError):
    pass


class PermissionDeniedError(TriplineError):
    def __init__(self, message: str = "Insufficient permissions", code: int = 15003):
        super().__init__(message, code=code)


class PersistenceError(TriplineError):
    """A persistence adapter call was rejected."""

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        destination_id: str | None = None,
        code: int = 15020,
    ) -> None:
        super().__init__(message, code=code)
        self.operation = operation
        self.destination_id = destination_id


class InvariantViolation(AssertionError):
    """Order indices of a day are not exactly 1..n."""

    def __init__(self, trip_id: str, day: int, indexes: list[int]) -> None:
        super().__init__(
            f"day {day} of trip {trip_id} has order indexes {indexes}, "
            f"expected 1..{len(indexes)}"
        )
        self.trip_id = trip_id
        self.day = day
        self.indexes = indexes


__all__ = [
    "TriplineError",
    "ResourceNotFoundError",
    "TripValidationError",
    "PermissionDeniedError",
    "PersistenceError",
    "InvariantViolation",
]
