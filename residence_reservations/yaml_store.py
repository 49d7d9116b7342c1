from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Callable
import logging
import shutil
import threading
from uuid import uuid4

import yaml

from .errors import ReservationStorageError, StaleRoomVersionError
from .models import NewReservation, Reservation
from .rooms import Room

logger = logging.getLogger(__name__)


class ReservationYamlRepository:
    """Stores reservations in YAML files under *base_dir*.

    Each room has a version counter that is bumped on every write to that room, so writers can
    make their insert conditional on the data they validated against.
    """

    def __init__(self, base_dir: str | Path = "data") -> None:
        self.base_dir = Path(base_dir)
        self.reservations_file = self.base_dir / "reservations.yaml"
        self.versions_file = self.base_dir / "room_versions.yaml"
        self.log_file = self.base_dir / "reservation_events.yaml"
        self._lock = threading.RLock()
        self._ensure_files()

    def _ensure_files(self) -> None:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            for path in (self.reservations_file, self.log_file):
                if not path.exists():
                    path.write_text("[]\n", encoding="utf-8")
            if not self.versions_file.exists():
                self.versions_file.write_text("{}\n", encoding="utf-8")
        except OSError as error:
            raise ReservationStorageError(f"Cannot prepare data directory: {self.base_dir}") from error

    def _read_yaml(self, path: Path, empty: str) -> Any:
        try:
            return yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            path.write_text(empty, encoding="utf-8")
            return None
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
            self._recover_corrupted_yaml(path, error, empty)
            return None

    def _read_yaml_list(self, path: Path) -> list[dict[str, Any]]:
        payload = self._read_yaml(path, "[]\n")
        if payload is None:
            return []
        if not isinstance(payload, list):
            self._recover_corrupted_yaml(path, ValueError("top-level YAML is not a list"), "[]\n")
            return []

        sanitized: list[dict[str, Any]] = []
        for index, row in enumerate(payload):
            if isinstance(row, dict):
                sanitized.append(row)
            elif path != self.log_file:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(path.name),
                        "index": index,
                        "reason": "row is not a mapping",
                    },
                )
        return sanitized

    def _read_versions(self) -> dict[str, int]:
        payload = self._read_yaml(self.versions_file, "{}\n")
        if payload is None:
            return {}
        if not isinstance(payload, dict):
            self._recover_corrupted_yaml(self.versions_file, ValueError("top-level YAML is not a mapping"), "{}\n")
            return {}
        try:
            return {str(room): int(version) for room, version in payload.items()}
        except (TypeError, ValueError) as error:
            self._recover_corrupted_yaml(self.versions_file, error, "{}\n")
            return {}

    def _write_yaml(self, path: Path, payload: Any) -> None:
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_path.write_text(yaml.safe_dump(payload, allow_unicode=True, sort_keys=False), encoding="utf-8")
            temp_path.replace(path)
        except OSError as error:
            raise ReservationStorageError(f"Failed to write YAML file: {path}") from error
        finally:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

    def _recover_corrupted_yaml(self, path: Path, error: Exception, empty: str) -> None:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.stem}.corrupt.{timestamp}{path.suffix}")
        try:
            if path.exists():
                shutil.copy2(path, backup_path)
        except OSError:
            logger.warning(f"Could not back up corrupted file {path}")

        logger.warning(f"Recovered corrupted YAML file {path.name}: {error}")
        try:
            path.write_text(empty, encoding="utf-8")
        except OSError as write_error:
            raise ReservationStorageError(f"Cannot reset corrupted YAML file: {path}") from write_error
        if path != self.log_file:
            self._log_event(
                "YAML_RECOVERED",
                {
                    "file": str(path.name),
                    "backup": str(backup_path.name),
                    "reason": str(error),
                },
            )

    def _log_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        timestamp = (event_time or datetime.now()).isoformat(timespec="seconds")
        events = self._read_yaml_list(self.log_file)
        events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
        self._write_yaml(self.log_file, events)

    def _to_records(self, rows: list[dict[str, Any]]) -> list[Reservation]:
        records: list[Reservation] = []
        for index, row in enumerate(rows):
            try:
                records.append(Reservation.from_dict(row))
            except (KeyError, TypeError, ValueError) as error:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(self.reservations_file.name),
                        "index": index,
                        "reason": f"unreadable reservation: {error}",
                    },
                )
        return records

    def list_reservations(self) -> list[Reservation]:
        with self._lock:
            rows = self._read_yaml_list(self.reservations_file)
            return self._to_records(rows)

    def get_reservation(self, reservation_id: str) -> Reservation | None:
        for record in self.list_reservations():
            if record.reservation_id == reservation_id:
                return record
        return None

    def room_version(self, room: Room) -> int:
        with self._lock:
            return self._read_versions().get(room.value, 0)

    def snapshot(self) -> tuple[list[Reservation], dict[Room, int]]:
        """Return all reservations together with the room versions they correspond to."""
        with self._lock:
            records = self._to_records(self._read_yaml_list(self.reservations_file))
            versions = self._read_versions()
        known = {room.value: room for room in Room}
        return (
            records,
            {known[key]: value for key, value in versions.items() if key in known},
        )

    def add_reservation(self, new: NewReservation, expected_version: int | None = None) -> Reservation:
        """Store *new* and return it with its assigned identifier.

        With *expected_version* the write only happens if the room is still at that version,
        otherwise ``StaleRoomVersionError`` is raised and nothing is written.
        """
        with self._lock:
            versions = self._read_versions()
            current_version = versions.get(new.room.value, 0)
            if expected_version is not None and expected_version != current_version:
                raise StaleRoomVersionError(new.room.value, expected_version, current_version)

            record = Reservation.from_new(str(uuid4()), new)
            rows = self._read_yaml_list(self.reservations_file)
            rows.append(record.to_dict())

            # version first: a bumped version without the row only forces writers to re-validate
            previous_versions = dict(versions)
            versions[new.room.value] = current_version + 1
            self._write_yaml(self.versions_file, versions)
            try:
                self._write_yaml(self.reservations_file, rows)
            except ReservationStorageError:
                self._restore_versions(previous_versions)
                raise

            try:
                self._log_event(
                    "RESERVATION_CREATED",
                    {
                        "reservation_id": record.reservation_id,
                        "room": record.room.value,
                        "reserver_room": record.reserver_room,
                        "start": record.start.isoformat(timespec="minutes"),
                        "end": record.end.isoformat(timespec="minutes"),
                    },
                    new.created_at,
                )
            except ReservationStorageError as error:
                logger.warning(f"Reservation {record.reservation_id} stored but not logged: {error}")
        return record

    def _restore_versions(self, versions: dict[str, int]) -> None:
        try:
            self._write_yaml(self.versions_file, versions)
        except ReservationStorageError as error:
            logger.warning(f"Could not restore room versions after a failed write: {error}")

    def update_raw_rows(
        self,
        transform: Callable[[dict[str, Any]], dict[str, Any] | None],
        event_type: str,
    ) -> tuple[int, int]:
        """Rewrite stored rows in place; *transform* returns the replacement row or None to keep it.

        Returns ``(changed, unchanged)`` counts and logs one *event_type* entry per changed row.
        """
        with self._lock:
            rows = self._read_yaml_list(self.reservations_file)
            changed: list[dict[str, Any]] = []
            result: list[dict[str, Any]] = []
            for row in rows:
                replacement = transform(dict(row))
                if replacement is None:
                    result.append(row)
                else:
                    result.append(replacement)
                    changed.append(replacement)

            if changed:
                self._write_yaml(self.reservations_file, result)
                for row in changed:
                    self._log_event(event_type, {"reservation_id": str(row.get("reservation_id"))})
        return len(changed), len(rows) - len(changed)
