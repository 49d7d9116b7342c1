from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Iterable
import logging
import re

from .booking import ReservationInterval, find_conflicts
from .config import MAX_RESERVATION_DURATION, residence_timezone
from .errors import (
    ConflictError,
    DurationExceededError,
    InvalidRangeError,
    InvalidReserverRoomError,
    MalformedFieldError,
    MissingFieldError,
    PastStartError,
    ReservationError,
    ReservationStorageError,
    StaleRoomVersionError,
)
from .models import NewReservation, Reservation, ReservationRequest, parse_datetime, parse_flag
from .rooms import parse_room
from .yaml_store import ReservationYamlRepository

logger = logging.getLogger(__name__)

_RESERVER_ROOM_RE = re.compile(r"\d+", re.ASCII)
_REQUIRED_FIELDS = ("room", "reserver_room", "start", "end", "description")
_FIELD_LABELS = {
    "room": "Room",
    "reserver_room": "Your room number",
    "start": "Start time",
    "end": "End time",
    "description": "Description",
}


@dataclass(frozen=True)
class ValidationOutcome:
    accepted: NewReservation | None = None
    error: ReservationError | None = None

    @property
    def ok(self) -> bool:
        return self.accepted is not None


@dataclass(frozen=True)
class SubmissionOutcome:
    reservation: Reservation | None = None
    error: ReservationError | ReservationStorageError | None = None

    @property
    def ok(self) -> bool:
        return self.reservation is not None


def validate_request(
    request: ReservationRequest,
    existing: Iterable[Reservation],
    now: datetime,
    tz: tzinfo | None = None,
) -> ValidationOutcome:
    """Run the reservation rules in order and stop at the first one that fails.

    Rule failures are returned in the outcome, never raised.
    """
    try:
        accepted = _apply_rules(request, list(existing), now, tz or residence_timezone())
    except ReservationError as error:
        return ValidationOutcome(error=error)
    return ValidationOutcome(accepted=accepted)


def submit_reservation(
    request: ReservationRequest,
    repository: ReservationYamlRepository,
    now: datetime,
    tz: tzinfo | None = None,
) -> SubmissionOutcome:
    """Validate *request* against the stored reservations and persist it.

    The write is conditional on the room not having changed since the snapshot was read. A
    stale write is re-validated once against fresh data, a second stale write is reported as a
    conflict. Nothing is stored unless the outcome is ok.
    """
    for _attempt in range(2):
        try:
            existing, versions = repository.snapshot()
        except ReservationStorageError as error:
            logger.error(f"Reservation storage unavailable: {error}")
            return SubmissionOutcome(error=error)

        outcome = validate_request(request, existing, now, tz)
        if outcome.accepted is None:
            logger.info(f"Reservation rejected ({outcome.error.kind}): {outcome.error}")
            return SubmissionOutcome(error=outcome.error)

        accepted = outcome.accepted
        try:
            stored = repository.add_reservation(accepted, expected_version=versions.get(accepted.room, 0))
        except StaleRoomVersionError as error:
            logger.warning(f"Concurrent write while saving reservation: {error}")
            continue
        except ReservationStorageError as error:
            logger.error(f"Could not store reservation: {error}")
            return SubmissionOutcome(error=error)

        logger.info(
            f"Reservation {stored.reservation_id} accepted for {stored.room.value} "
            f"{stored.start.isoformat(timespec='minutes')} - {stored.end.isoformat(timespec='minutes')}"
        )
        return SubmissionOutcome(reservation=stored)

    logger.warning("Reservation rejected after repeated concurrent writes")
    return SubmissionOutcome(error=ConflictError(None))


def _apply_rules(
    request: ReservationRequest,
    existing: list[Reservation],
    now: datetime,
    tz: tzinfo,
) -> NewReservation:
    for field in _REQUIRED_FIELDS:
        value = getattr(request, field)
        if value is None or not str(value).strip():
            raise MissingFieldError(field, f"{_FIELD_LABELS[field]} is required.")

    try:
        room = parse_room(request.room)
    except ValueError as error:
        raise MalformedFieldError("room", str(error)) from error
    start = _parse_field("start", request.start, tz)
    end = _parse_field("end", request.end, tz)
    try:
        is_open_invite = parse_flag(request.is_open_invite)
    except ValueError as error:
        raise MalformedFieldError("is_open_invite", str(error)) from error

    # aware datetimes sharing a zone compare by wall clock; rules need elapsed time
    start_at, end_at, now_at = (value.astimezone(timezone.utc) for value in (start, end, now))
    if end_at <= start_at:
        raise InvalidRangeError("End time must be after start time.")
    if start_at < now_at:
        raise PastStartError("Start time cannot be in the past.")
    if end_at - start_at > MAX_RESERVATION_DURATION:
        hours = int(MAX_RESERVATION_DURATION.total_seconds() // 3600)
        raise DurationExceededError(f"A reservation cannot be longer than {hours} hours.")

    reserver_room = str(request.reserver_room).strip()
    if not _RESERVER_ROOM_RE.fullmatch(reserver_room):
        raise InvalidReserverRoomError("Room number must contain only numbers (e.g., 210).")

    candidate = ReservationInterval(room, start_at, end_at)
    conflicts = find_conflicts(candidate, existing)
    if conflicts:
        raise ConflictError(conflicts[0])

    return NewReservation(
        room=room,
        reserver_room=reserver_room,
        start=start,
        end=end,
        description=str(request.description).strip(),
        created_at=now,
        is_open_invite=is_open_invite,
    )


def _parse_field(field: str, value: str | None, tz: tzinfo) -> datetime:
    try:
        return parse_datetime(str(value), tz)
    except ValueError as error:
        raise MalformedFieldError(field, f"{_FIELD_LABELS[field]} is not a valid date and time.") from error
