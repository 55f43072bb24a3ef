"""Typed failures surfaced by the allocation core."""


class ParkingError(Exception):
    """Base class for all failures the core reports to its callers."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ParkingError):
    """Malformed or out-of-range input, e.g. a negative rate."""

    kind = "validation"


class NotFoundError(ParkingError):
    """Referenced plate, spot or queue entry is not in the expected state."""

    kind = "not_found"


class ConflictError(ParkingError):
    """The operation would break an occupancy, session or queue invariant."""

    kind = "conflict"


class UnavailableError(ParkingError):
    """The persistence collaborator could not be reached."""

    kind = "unavailable"


class TransientStoreError(Exception):
    """Connectivity-type fault raised by a store; retried, never surfaced."""
