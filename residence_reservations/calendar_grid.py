from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any, Iterable

from .booking import DayPortion
from .config import CALENDAR_WINDOW_DAYS, residence_timezone
from .models import Reservation
from .rooms import Room

FREE_LABEL = "Free"


@dataclass(frozen=True)
class CellEntry:
    reservation: Reservation
    portion: DayPortion

    @property
    def label(self) -> str:
        return self.portion.label


@dataclass(frozen=True)
class GridCell:
    room: Room
    day: date
    entries: tuple[CellEntry, ...] = ()

    @property
    def is_free(self) -> bool:
        return not self.entries

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.day.isoformat(),
            "free": self.is_free,
            "label": FREE_LABEL if self.is_free else None,
            "entries": [
                {
                    "reservation_id": entry.reservation.reservation_id,
                    "label": entry.label,
                    "portion": entry.portion.kind.value,
                    "reserver_room": entry.reservation.reserver_room,
                    "description": entry.reservation.description,
                    "is_open_invite": entry.reservation.is_open_invite,
                }
                for entry in self.entries
            ],
        }


@dataclass(frozen=True)
class GridRow:
    room: Room
    cells: tuple[GridCell, ...]


@dataclass(frozen=True)
class CalendarGrid:
    start_date: date
    days: tuple[date, ...]
    rows: tuple[GridRow, ...]

    @property
    def rooms(self) -> tuple[Room, ...]:
        return tuple(row.room for row in self.rows)

    def cell(self, room: Room, day: date) -> GridCell:
        for row in self.rows:
            if row.room != room:
                continue
            for cell in row.cells:
                if cell.day == day:
                    return cell
        raise KeyError((room, day))

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_date": self.start_date.isoformat(),
            "days": [day.isoformat() for day in self.days],
            "rooms": [
                {
                    "room": row.room.value,
                    "label": row.room.label,
                    "cells": [cell.to_dict() for cell in row.cells],
                }
                for row in self.rows
            ],
        }


def build_grid(
    rooms: Iterable[Room],
    reservations: Iterable[Reservation],
    start_date: date,
    num_days: int = CALENDAR_WINDOW_DAYS,
    tz: tzinfo | None = None,
) -> CalendarGrid:
    """Lay reservations out per room and local calendar day.

    A reservation appears in every day whose [00:00, next 00:00) window its [start, end)
    interval intersects, labelled with the part of it that falls on that day. Entries of a cell
    are ordered by start time. The inputs are only read.
    """
    if num_days <= 0:
        raise ValueError("num_days must be greater than zero")

    zone = tz or residence_timezone()
    room_list = tuple(rooms)
    days = tuple(start_date + timedelta(days=offset) for offset in range(num_days))

    by_room: dict[Room, list[Reservation]] = {room: [] for room in room_list}
    for reservation in reservations:
        if reservation.room in by_room:
            by_room[reservation.room].append(reservation)

    rows: list[GridRow] = []
    for room in room_list:
        ordered = sorted(by_room[room], key=lambda item: (item.start, item.reservation_id))
        cells: list[GridCell] = []
        for day in days:
            day_start, day_end = _day_bounds(day, zone)
            entries = tuple(
                CellEntry(reservation, reservation.interval.portion_on_day(day, zone))
                for reservation in ordered
                if reservation.start < day_end and reservation.end > day_start
            )
            cells.append(GridCell(room=room, day=day, entries=entries))
        rows.append(GridRow(room=room, cells=tuple(cells)))

    return CalendarGrid(start_date=start_date, days=days, rows=tuple(rows))


@dataclass(frozen=True)
class CalendarWindow:
    """The visible range of the calendar; moving it never touches reservation data."""

    start_date: date
    num_days: int = CALENDAR_WINDOW_DAYS

    def __post_init__(self) -> None:
        if self.num_days <= 0:
            raise ValueError("num_days must be greater than zero")

    @staticmethod
    def today(now: datetime, tz: tzinfo | None = None, num_days: int = CALENDAR_WINDOW_DAYS) -> CalendarWindow:
        return CalendarWindow(now.astimezone(tz or residence_timezone()).date(), num_days)

    def next(self) -> CalendarWindow:
        return CalendarWindow(self.start_date + timedelta(days=self.num_days), self.num_days)

    def previous(self) -> CalendarWindow:
        return CalendarWindow(self.start_date - timedelta(days=self.num_days), self.num_days)

    @property
    def end_date(self) -> date:
        return self.start_date + timedelta(days=self.num_days - 1)

    def build(
        self,
        rooms: Iterable[Room],
        reservations: Iterable[Reservation],
        tz: tzinfo | None = None,
    ) -> CalendarGrid:
        return build_grid(rooms, reservations, self.start_date, self.num_days, tz)


def _day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time(0, 0), tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time(0, 0), tzinfo=tz)
    return start, end
