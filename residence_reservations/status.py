from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Iterable, Sequence

from .config import PAST_PAGE_SIZE
from .models import Reservation


class ReservationStatus(StrEnum):
    ACTIVE = "active"
    UPCOMING = "upcoming"
    PAST = "past"


def classify(reservation: Reservation, now: datetime) -> ReservationStatus:
    """Return the status of *reservation* at *now*.

    Status is never stored: it changes with the clock, so callers classify again on every read.
    """
    if now < reservation.start:
        return ReservationStatus.UPCOMING
    if now < reservation.end:
        return ReservationStatus.ACTIVE
    return ReservationStatus.PAST


@dataclass(frozen=True)
class ReservationViews:
    active: tuple[Reservation, ...]
    upcoming: tuple[Reservation, ...]
    past: tuple[Reservation, ...]
    generated_at: datetime


@dataclass(frozen=True)
class Page:
    items: tuple[Reservation, ...]
    offset: int
    limit: int
    total: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


def build_views(reservations: Iterable[Reservation], now: datetime) -> ReservationViews:
    active: list[Reservation] = []
    upcoming: list[Reservation] = []
    past: list[Reservation] = []
    buckets = {
        ReservationStatus.ACTIVE: active,
        ReservationStatus.UPCOMING: upcoming,
        ReservationStatus.PAST: past,
    }
    for reservation in reservations:
        buckets[classify(reservation, now)].append(reservation)

    active.sort(key=lambda item: (item.start, item.reservation_id))
    upcoming.sort(key=lambda item: (item.start, item.reservation_id))
    # newest first; sort by id, then stable sort by end descending
    past.sort(key=lambda item: item.reservation_id)
    past.sort(key=lambda item: item.end, reverse=True)

    return ReservationViews(
        active=tuple(active),
        upcoming=tuple(upcoming),
        past=tuple(past),
        generated_at=now,
    )


def paginate_past(past: Sequence[Reservation], offset: int = 0, limit: int = PAST_PAGE_SIZE) -> Page:
    if offset < 0:
        raise ValueError("offset must not be negative")
    if limit <= 0:
        raise ValueError("limit must be greater than zero")

    return Page(items=tuple(past[offset : offset + limit]), offset=offset, limit=limit, total=len(past))
