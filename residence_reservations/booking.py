from __future__ import annotations

from bisect import bisect_left, bisect_right
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from enum import StrEnum
from typing import Any, Iterable

from .rooms import Room


class PortionKind(StrEnum):
    SINGLE = "single"
    START = "start"
    END = "end"
    ALL_DAY = "all_day"


@dataclass(frozen=True)
class DayPortion:
    kind: PortionKind
    label: str


@dataclass(frozen=True)
class ReservationInterval:
    room: Room
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError("Reservation start time must be earlier than end time.")

    def overlaps(self, other: ReservationInterval) -> bool:
        return has_time_overlap(self.start, self.end, other.start, other.end)

    def contains_instant(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    def start_date(self, tz: tzinfo | None = None) -> date:
        return _local(self.start, tz).date()

    def end_date(self, tz: tzinfo | None = None) -> date:
        return _local(self.end, tz).date()

    def spans_multiple_days(self, tz: tzinfo | None = None) -> bool:
        return self.start_date(tz) != self.end_date(tz)

    def portion_on_day(self, day: date, tz: tzinfo | None = None) -> DayPortion:
        """Describe the part of this interval that falls on *day*.

        Calendar dates are taken in *tz* when given, otherwise in each datetime's own offset.
        """
        start_day = self.start_date(tz)
        end_day = self.end_date(tz)
        start_label = _local(self.start, tz).strftime("%H:%M")
        end_label = _local(self.end, tz).strftime("%H:%M")

        if start_day == end_day:
            if day != start_day:
                raise ValueError(f"{day.isoformat()} is outside the reservation.")
            return DayPortion(PortionKind.SINGLE, f"{start_label}–{end_label}")
        if day == start_day:
            return DayPortion(PortionKind.START, f"{start_label} →")
        if day == end_day:
            return DayPortion(PortionKind.END, f"→ {end_label}")
        if start_day < day < end_day:
            return DayPortion(PortionKind.ALL_DAY, "All day")
        raise ValueError(f"{day.isoformat()} is outside the reservation.")


def has_time_overlap(new_start: datetime, new_end: datetime, exist_start: datetime, exist_end: datetime) -> bool:
    """Return True when two time intervals overlap by even one instant.

    Intervals are treated as half-open ranges: [start, end)
    so touching boundaries (e.g. 10:00-11:00 and 11:00-12:00) do not overlap.
    """
    if new_start >= new_end:
        raise ValueError("new_start must be earlier than new_end.")
    if exist_start >= exist_end:
        raise ValueError("exist_start must be earlier than exist_end.")

    return new_start < exist_end and exist_start < new_end


def find_conflicts(candidate: ReservationInterval, existing: Iterable[Any]) -> list[Any]:
    """Return the items of *existing* in the candidate's room that overlap it, earliest start first.

    Items are either intervals or objects exposing an ``interval`` attribute (reservations).
    """
    same_room = [item for item in existing if _interval_of(item).room == candidate.room]
    overlapping = [item for item in same_room if candidate.overlaps(_interval_of(item))]
    return sorted(overlapping, key=lambda item: _interval_of(item).start)


def has_conflict(candidate: ReservationInterval, existing: Iterable[Any]) -> bool:
    for item in existing:
        interval = _interval_of(item)
        if interval.room == candidate.room and candidate.overlaps(interval):
            return True
    return False


class RoomSchedule:
    """Reservations of one room kept sorted by start time.

    Answers the same question as ``find_conflicts`` with binary search. ``_max_ends`` holds the
    running maximum of end times, so the first item ending after a given instant can be bisected
    even when stored intervals overlap each other.
    """

    def __init__(self, room: Room, items: Iterable[Any] = ()) -> None:
        self.room = room
        self._items: list[Any] = []
        self._starts: list[datetime] = []
        self._max_ends: list[datetime] = []
        for item in sorted(items, key=lambda value: _interval_of(value).start):
            self.insert(item)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    def insert(self, item: Any) -> None:
        interval = _interval_of(item)
        if interval.room != self.room:
            raise ValueError(f"Cannot add a '{interval.room}' reservation to the '{self.room}' schedule.")

        index = bisect_right(self._starts, interval.start)
        self._items.insert(index, item)
        self._starts.insert(index, interval.start)

        running: datetime | None = self._max_ends[index - 1] if index > 0 else None
        max_ends = self._max_ends[:index]
        for stored in self._items[index:]:
            stored_end = _interval_of(stored).end
            running = stored_end if running is None else max(running, stored_end)
            max_ends.append(running)
        self._max_ends = max_ends

    def find_conflict(self, candidate: ReservationInterval) -> Any | None:
        if candidate.room != self.room:
            return None

        # items[:limit] start before the candidate ends
        limit = bisect_left(self._starts, candidate.end)
        first_ending_after = bisect_right(self._max_ends, candidate.start)
        if first_ending_after < limit:
            return self._items[first_ending_after]
        return None

    def has_conflict(self, candidate: ReservationInterval) -> bool:
        return self.find_conflict(candidate) is not None


def _interval_of(item: Any) -> ReservationInterval:
    if isinstance(item, ReservationInterval):
        return item
    return item.interval


def _local(value: datetime, tz: tzinfo | None) -> datetime:
    if tz is None:
        return value
    return value.astimezone(tz)
