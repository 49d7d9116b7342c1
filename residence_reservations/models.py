from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Any, Mapping

from .booking import ReservationInterval
from .rooms import Room, parse_room

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"", "0", "false", "no", "off"}


@dataclass(frozen=True)
class NewReservation:
    """A request that passed validation and is waiting for an identifier from storage."""

    room: Room
    reserver_room: str
    start: datetime
    end: datetime
    description: str
    created_at: datetime
    is_open_invite: bool = False

    @property
    def interval(self) -> ReservationInterval:
        return ReservationInterval(self.room, self.start, self.end)


@dataclass(frozen=True)
class Reservation:
    reservation_id: str
    room: Room
    reserver_room: str
    start: datetime
    end: datetime
    description: str
    created_at: datetime
    is_open_invite: bool = False

    @property
    def interval(self) -> ReservationInterval:
        return ReservationInterval(self.room, self.start, self.end)

    @staticmethod
    def from_new(reservation_id: str, new: NewReservation) -> Reservation:
        return Reservation(
            reservation_id=reservation_id,
            room=new.room,
            reserver_room=new.reserver_room,
            start=new.start,
            end=new.end,
            description=new.description,
            created_at=new.created_at,
            is_open_invite=new.is_open_invite,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "reservation_id": self.reservation_id,
            "room": self.room.value,
            "reserver_room": self.reserver_room,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "description": self.description,
            "is_open_invite": self.is_open_invite,
            "created_at": self.created_at.isoformat(),
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> Reservation:
        return Reservation(
            reservation_id=str(data["reservation_id"]),
            room=parse_room(str(data["room"])),
            reserver_room=str(data["reserver_room"]),
            start=_as_datetime(data["start"]),
            end=_as_datetime(data["end"]),
            description=str(data.get("description") or ""),
            created_at=_as_datetime(data["created_at"]),
            # legacy rows without the flag are treated as closed events until backfilled
            is_open_invite=parse_flag(data.get("is_open_invite")),
        )


@dataclass(frozen=True)
class ReservationRequest:
    """Raw reservation form input. Every field is kept as the client sent it."""

    room: str | None = None
    reserver_room: str | None = None
    start: str | None = None
    end: str | None = None
    description: str | None = None
    is_open_invite: bool | str | None = False

    @staticmethod
    def from_mapping(payload: Mapping[str, Any]) -> ReservationRequest:
        def pick(*keys: str) -> Any:
            for key in keys:
                if key in payload and payload[key] is not None:
                    return payload[key]
            return None

        def as_text(value: Any) -> str | None:
            return None if value is None else str(value)

        return ReservationRequest(
            room=as_text(pick("room", "roomNumber", "room_number")),
            reserver_room=as_text(pick("reserver_room", "reserverRoom")),
            start=as_text(pick("start", "startTime", "start_time")),
            end=as_text(pick("end", "endTime", "end_time")),
            description=as_text(pick("description")),
            is_open_invite=pick("is_open_invite", "isOpenInvite"),
        )


def parse_datetime(value: str | datetime, tz: tzinfo) -> datetime:
    """Parse an ISO 8601 value; naive input is local time in *tz*."""
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def parse_flag(value: bool | str | None) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value

    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot interpret '{value}' as a yes/no value.")


def _as_datetime(value: Any) -> datetime:
    # yaml.safe_load already turns unquoted timestamps into datetime objects
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))
