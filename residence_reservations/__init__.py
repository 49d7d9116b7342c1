from .booking import DayPortion, PortionKind, ReservationInterval, RoomSchedule, find_conflicts, has_conflict, has_time_overlap
from .calendar_grid import CalendarGrid, CalendarWindow, CellEntry, GridCell, GridRow, build_grid
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
from .migrations import BackfillReport, backfill_open_invites, infer_open_invite
from .models import NewReservation, Reservation, ReservationRequest
from .rooms import ALL_ROOMS, ROOM_LABELS, Room, parse_room
from .status import Page, ReservationStatus, ReservationViews, build_views, classify, paginate_past
from .validation import SubmissionOutcome, ValidationOutcome, submit_reservation, validate_request
from .yaml_store import ReservationYamlRepository

__all__ = [
	"DayPortion",
	"PortionKind",
	"ReservationInterval",
	"RoomSchedule",
	"find_conflicts",
	"has_conflict",
	"has_time_overlap",
	"CalendarGrid",
	"CalendarWindow",
	"CellEntry",
	"GridCell",
	"GridRow",
	"build_grid",
	"ConflictError",
	"DurationExceededError",
	"InvalidRangeError",
	"InvalidReserverRoomError",
	"MalformedFieldError",
	"MissingFieldError",
	"PastStartError",
	"ReservationError",
	"ReservationStorageError",
	"StaleRoomVersionError",
	"BackfillReport",
	"backfill_open_invites",
	"infer_open_invite",
	"NewReservation",
	"Reservation",
	"ReservationRequest",
	"ALL_ROOMS",
	"ROOM_LABELS",
	"Room",
	"parse_room",
	"Page",
	"ReservationStatus",
	"ReservationViews",
	"build_views",
	"classify",
	"paginate_past",
	"SubmissionOutcome",
	"ValidationOutcome",
	"submit_reservation",
	"validate_request",
	"ReservationYamlRepository",
]
