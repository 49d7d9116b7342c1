from __future__ import annotations

from enum import StrEnum


class Room(StrEnum):
    FOYER = "foyer"
    PARTY = "party"
    ROOFTOP = "rooftop"
    GUEST = "guest"

    @property
    def label(self) -> str:
        return ROOM_LABELS[self]


ROOM_LABELS: dict[Room, str] = {
    Room.FOYER: "Foyer / Projector Room",
    Room.PARTY: "Party Room",
    Room.ROOFTOP: "Rooftop Terrace",
    Room.GUEST: "Guest Room (next to entrance)",
}

ALL_ROOMS: tuple[Room, ...] = tuple(Room)


def parse_room(value: str | Room | None) -> Room:
    if isinstance(value, Room):
        return value
    if value is None:
        raise ValueError("room must not be None")

    normalized = str(value).strip().lower()
    if not normalized:
        raise ValueError("room must not be empty")
    try:
        return Room(normalized)
    except ValueError:
        raise ValueError(f"Unknown room '{value}'. Allowed rooms: {', '.join(room.value for room in Room)}") from None
