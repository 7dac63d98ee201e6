class ReservationError(Exception):
    """Base class for every business-rule failure raised by the booking core."""

    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReservationError):
            return NotImplemented
        return type(self) is type(other) and self.message == other.message

    def __hash__(self) -> int:
        return hash((type(self), self.message))


class ValidationError(ReservationError):
    kind = "validation"


class ConflictError(ReservationError):
    kind = "conflict"


class NotFoundError(ReservationError):
    kind = "not_found"


class InvalidTransitionError(ReservationError):
    kind = "invalid_transition"


class InternalError(ReservationError):
    kind = "internal"
