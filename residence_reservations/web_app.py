from __future__ import annotations

from datetime import date, datetime, timedelta, tzinfo
from pathlib import Path
from typing import Any, Callable
import logging

from flask import Flask, jsonify, request

from .calendar_grid import CalendarWindow
from .config import CALENDAR_WINDOW_DAYS, PAST_PAGE_SIZE, REFRESH_INTERVAL_SECONDS, data_dir as default_data_dir, residence_timezone
from .errors import ConflictError, MissingFieldError, ReservationStorageError
from .models import Reservation, ReservationRequest
from .rooms import ALL_ROOMS
from .status import build_views, paginate_past
from .validation import submit_reservation
from .yaml_store import ReservationYamlRepository

logger = logging.getLogger(__name__)

MAX_CALENDAR_DAYS = 31
STORAGE_ERROR_MESSAGE = "Reservations are temporarily unavailable. Please try again later."


def create_app(
    data_dir: str | Path | None = None,
    now_provider: Callable[[], datetime] | None = None,
    tz: tzinfo | None = None,
) -> Flask:
    app = Flask(__name__)
    zone = tz or residence_timezone()
    repository = ReservationYamlRepository(default_data_dir(data_dir))
    clock: Callable[[], datetime] = now_provider or (lambda: datetime.now(zone))

    def _serialize_reservation(record: Reservation) -> dict[str, Any]:
        return {
            "reservation_id": record.reservation_id,
            "room": record.room.value,
            "room_label": record.room.label,
            "reserver_room": record.reserver_room,
            "start": record.start.astimezone(zone).isoformat(timespec="minutes"),
            "end": record.end.astimezone(zone).isoformat(timespec="minutes"),
            "description": record.description,
            "is_open_invite": record.is_open_invite,
            "created_at": record.created_at.astimezone(zone).isoformat(timespec="seconds"),
        }

    def _storage_unavailable(error: ReservationStorageError) -> Any:
        logger.error(f"Storage failure while serving {request.path}: {error}")
        return jsonify({"ok": False, "error": "storage", "message": STORAGE_ERROR_MESSAGE}), 503

    @app.after_request
    def add_cors_headers(response: Any) -> Any:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.get("/api/rooms")
    def get_rooms() -> Any:
        return jsonify({"ok": True, "rooms": [{"room": room.value, "label": room.label} for room in ALL_ROOMS]})

    @app.get("/api/reservations")
    def get_reservations() -> Any:
        now = clock()
        try:
            records = repository.list_reservations()
        except ReservationStorageError as error:
            return _storage_unavailable(error)

        views = build_views(records, now)
        first_page = paginate_past(views.past, 0, PAST_PAGE_SIZE)
        return jsonify(
            {
                "ok": True,
                "generated_at": views.generated_at.astimezone(zone).isoformat(timespec="seconds"),
                "refresh_interval_seconds": REFRESH_INTERVAL_SECONDS,
                "active": [_serialize_reservation(record) for record in views.active],
                "upcoming": [_serialize_reservation(record) for record in views.upcoming],
                "past": [_serialize_reservation(record) for record in first_page.items],
                "past_total": first_page.total,
                "past_has_more": first_page.has_more,
            }
        )

    @app.get("/api/reservations/past")
    def get_past_reservations() -> Any:
        try:
            offset = int(request.args.get("offset", 0))
            limit = int(request.args.get("limit", PAST_PAGE_SIZE))
            if offset < 0 or limit <= 0:
                raise ValueError
        except ValueError:
            return jsonify({"ok": False, "message": "offset must be >= 0 and limit must be > 0."}), 400

        now = clock()
        try:
            records = repository.list_reservations()
        except ReservationStorageError as error:
            return _storage_unavailable(error)

        page = paginate_past(build_views(records, now).past, offset, limit)
        return jsonify(
            {
                "ok": True,
                "offset": page.offset,
                "limit": page.limit,
                "total": page.total,
                "has_more": page.has_more,
                "reservations": [_serialize_reservation(record) for record in page.items],
            }
        )

    @app.post("/api/reservations")
    def create_reservation() -> Any:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            payload = request.form.to_dict()

        outcome = submit_reservation(ReservationRequest.from_mapping(payload), repository, clock(), zone)
        if outcome.reservation is not None:
            return jsonify({"ok": True, "reservation": _serialize_reservation(outcome.reservation)}), 201

        error = outcome.error
        if isinstance(error, ReservationStorageError):
            return _storage_unavailable(error)

        body: dict[str, Any] = {"ok": False, "error": error.kind, "message": str(error)}
        if isinstance(error, MissingFieldError):
            body["field"] = error.field
        if isinstance(error, ConflictError) and error.conflicting is not None:
            body["conflict"] = _serialize_reservation(error.conflicting)
        return jsonify(body), 400

    @app.get("/api/calendar")
    def get_calendar() -> Any:
        now = clock()
        today = now.astimezone(zone).date()
        try:
            start_text = request.args.get("start")
            start_date = date.fromisoformat(start_text) if start_text else today
            num_days = int(request.args.get("days", CALENDAR_WINDOW_DAYS))
            if not 0 < num_days <= MAX_CALENDAR_DAYS:
                raise ValueError
        except ValueError:
            return jsonify({"ok": False, "message": f"start must be YYYY-MM-DD and days between 1 and {MAX_CALENDAR_DAYS}."}), 400

        try:
            records = repository.list_reservations()
        except ReservationStorageError as error:
            return _storage_unavailable(error)

        window = CalendarWindow(start_date, num_days)
        grid = window.build(ALL_ROOMS, records, zone)
        return jsonify(
            {
                "ok": True,
                "today": today.isoformat(),
                "previous_start": window.previous().start_date.isoformat(),
                "next_start": window.next().start_date.isoformat(),
                "end_date": window.end_date.isoformat(),
                "grid": grid.to_dict(),
                "today_in_window": start_date <= today < start_date + timedelta(days=num_days),
            }
        )

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = create_app()
    app.run(host="127.0.0.1", port=5000, debug=False)
