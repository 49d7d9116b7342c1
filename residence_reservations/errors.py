from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Reservation


class ReservationError(ValueError):
    """Base class for a rejected reservation request.

    ``kind`` is a stable identifier for API clients; the message is meant for the end user.
    """

    kind = "invalid_request"


class MissingFieldError(ReservationError):
    kind = "missing_field"

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(message or f"{field} is required.")
        self.field = field


class MalformedFieldError(MissingFieldError):
    """A required field was sent but could not be understood."""

    kind = "malformed_field"


class InvalidRangeError(ReservationError):
    kind = "invalid_range"


class PastStartError(ReservationError):
    kind = "past_start"


class DurationExceededError(ReservationError):
    kind = "duration_exceeded"


class InvalidReserverRoomError(ReservationError):
    kind = "invalid_reserver_room"


class ConflictError(ReservationError):
    kind = "conflict"

    def __init__(self, conflicting: Reservation | None, message: str | None = None) -> None:
        if message is None:
            if conflicting is None:
                message = "The room was booked by someone else at the same time. Please try again."
            else:
                message = (
                    f"{conflicting.room.label} is already reserved from "
                    f"{conflicting.start.isoformat(timespec='minutes')} to {conflicting.end.isoformat(timespec='minutes')}."
                )
        super().__init__(message)
        self.conflicting = conflicting


class ReservationStorageError(RuntimeError):
    pass


class StaleRoomVersionError(ReservationStorageError):
    def __init__(self, room: str, expected: int, actual: int) -> None:
        super().__init__(f"Room '{room}' changed while saving (expected version {expected}, found {actual}).")
        self.room = room
        self.expected = expected
        self.actual = actual
