from __future__ import annotations

from datetime import date, datetime
from typing import Any, Callable

from mcp.server.fastmcp import FastMCP

from residence_reservations import (
    ALL_ROOMS,
    CalendarWindow,
    ConflictError,
    MissingFieldError,
    Reservation,
    ReservationRequest,
    ReservationYamlRepository,
    build_views,
    paginate_past,
    submit_reservation,
)
from residence_reservations.config import CALENDAR_WINDOW_DAYS, PAST_PAGE_SIZE, data_dir, residence_timezone

mcp = FastMCP(
    "Residence Reservation MCP Server",
    instructions="Check, list and book the shared rooms of the student residence.",
    json_response=True,
)

TIMEZONE = residence_timezone()
REPOSITORY: ReservationYamlRepository | None = None
CLOCK: Callable[[], datetime] = lambda: datetime.now(TIMEZONE)


def _repository() -> ReservationYamlRepository:
    global REPOSITORY
    if REPOSITORY is None:
        REPOSITORY = ReservationYamlRepository(data_dir())
    return REPOSITORY


def _serialize(record: Reservation) -> dict[str, Any]:
    payload = record.to_dict()
    payload["room_label"] = record.room.label
    return payload


@mcp.resource("reservation://rooms")
async def list_rooms() -> list[dict[str, str]]:
    """List the rooms that can be reserved."""
    return [{"room": room.value, "label": room.label} for room in ALL_ROOMS]


@mcp.tool()
def list_reservation_views() -> dict[str, list[dict[str, Any]]]:
    """Return active, upcoming and the most recent past reservations."""
    views = build_views(_repository().list_reservations(), CLOCK())
    return {
        "active": [_serialize(record) for record in views.active],
        "upcoming": [_serialize(record) for record in views.upcoming],
        "past": [_serialize(record) for record in paginate_past(views.past, 0, PAST_PAGE_SIZE).items],
    }


@mcp.tool()
def list_past_reservations(offset: int = 0, limit: int = PAST_PAGE_SIZE) -> dict[str, Any]:
    """Page through past reservations, most recently ended first."""
    page = paginate_past(build_views(_repository().list_reservations(), CLOCK()).past, offset, limit)
    return {
        "total": page.total,
        "has_more": page.has_more,
        "reservations": [_serialize(record) for record in page.items],
    }


@mcp.tool()
def get_calendar(start_date: str | None = None, days: int = CALENDAR_WINDOW_DAYS) -> dict[str, Any]:
    """Return the room-by-day occupancy grid starting at start_date (YYYY-MM-DD, default today)."""
    if start_date:
        window = CalendarWindow(date.fromisoformat(start_date), days)
    else:
        window = CalendarWindow.today(CLOCK(), TIMEZONE, days)
    return window.build(ALL_ROOMS, _repository().list_reservations(), TIMEZONE).to_dict()


@mcp.tool()
def submit_room_reservation(
    room: str,
    reserver_room: str,
    start_iso: str,
    end_iso: str,
    description: str,
    is_open_invite: bool = False,
) -> dict[str, Any]:
    """Reserve a room. Times are ISO 8601; times without an offset are residence local time."""
    request = ReservationRequest(
        room=room,
        reserver_room=reserver_room,
        start=start_iso,
        end=end_iso,
        description=description,
        is_open_invite=is_open_invite,
    )
    outcome = submit_reservation(request, _repository(), CLOCK(), TIMEZONE)
    if outcome.reservation is not None:
        return {"ok": True, "reservation": _serialize(outcome.reservation)}

    error = outcome.error
    result: dict[str, Any] = {"ok": False, "error": getattr(error, "kind", "storage"), "message": str(error)}
    if isinstance(error, MissingFieldError):
        result["field"] = error.field
    if isinstance(error, ConflictError) and error.conflicting is not None:
        result["conflict"] = _serialize(error.conflicting)
    return result


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
