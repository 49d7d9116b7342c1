import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest import mock

import yaml

from residence_reservations import (
    NewReservation,
    ReservationStorageError,
    ReservationYamlRepository,
    Room,
    StaleRoomVersionError,
)

UTC = timezone.utc
NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def _new(room: Room = Room.PARTY, start_hour: int = 18, hours: int = 2, **overrides) -> NewReservation:
    fields = dict(
        room=room,
        reserver_room="210",
        start=NOW.replace(hour=start_hour),
        end=NOW.replace(hour=start_hour) + timedelta(hours=hours),
        description="board games",
        created_at=NOW,
        is_open_invite=True,
    )
    fields.update(overrides)
    return NewReservation(**fields)


class TestReservationYamlRepository(unittest.TestCase):
    def test_creates_empty_files(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")

            self.assertTrue(repo.reservations_file.exists())
            self.assertTrue(repo.versions_file.exists())
            self.assertTrue(repo.log_file.exists())
            self.assertEqual(repo.list_reservations(), [])

    def test_add_assigns_id_and_round_trips_fields(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")
            created = repo.add_reservation(_new())

            reloaded = ReservationYamlRepository(Path(temp_dir) / "data").list_reservations()

            self.assertTrue(created.reservation_id)
            self.assertEqual(reloaded, [created])
            self.assertEqual(repo.get_reservation(created.reservation_id), created)
            self.assertIsNone(repo.get_reservation("missing"))

    def test_stored_file_never_contains_status(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")
            repo.add_reservation(_new())

            rows = yaml.safe_load(repo.reservations_file.read_text(encoding="utf-8"))
            self.assertNotIn("status", rows[0])

    def test_versions_are_per_room(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")
            repo.add_reservation(_new(Room.PARTY))
            repo.add_reservation(_new(Room.PARTY, start_hour=8))
            repo.add_reservation(_new(Room.FOYER))

            self.assertEqual(repo.room_version(Room.PARTY), 2)
            self.assertEqual(repo.room_version(Room.FOYER), 1)
            self.assertEqual(repo.room_version(Room.GUEST), 0)
            _records, versions = repo.snapshot()
            self.assertEqual(versions, {Room.PARTY: 2, Room.FOYER: 1})

    def test_conditional_add_rejects_stale_version(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")
            repo.add_reservation(_new(), expected_version=0)

            with self.assertRaises(StaleRoomVersionError):
                repo.add_reservation(_new(start_hour=8), expected_version=0)

            self.assertEqual(len(repo.list_reservations()), 1)
            self.assertEqual(repo.room_version(Room.PARTY), 1)
            repo.add_reservation(_new(Room.FOYER), expected_version=0)

    def test_logs_created_event(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")
            created = repo.add_reservation(_new())

            events = yaml.safe_load(repo.log_file.read_text(encoding="utf-8"))
            self.assertEqual(events[-1]["event_type"], "RESERVATION_CREATED")
            self.assertEqual(events[-1]["payload"]["reservation_id"], created.reservation_id)

    def test_recovers_corrupted_yaml(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")
            repo.reservations_file.write_text("- [unclosed\n  : broken", encoding="utf-8")

            self.assertEqual(repo.list_reservations(), [])
            backups = list(repo.base_dir.glob("reservations.corrupt.*.yaml"))
            self.assertEqual(len(backups), 1)
            self.assertIn("YAML_RECOVERED", repo.log_file.read_text(encoding="utf-8"))

    def test_skips_rows_that_are_not_reservations(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")
            created = repo.add_reservation(_new())
            rows = yaml.safe_load(repo.reservations_file.read_text(encoding="utf-8"))
            rows.extend(["not a mapping", {"reservation_id": "broken"}])
            repo.reservations_file.write_text(yaml.safe_dump(rows), encoding="utf-8")

            self.assertEqual(repo.list_reservations(), [created])
            events = yaml.safe_load(repo.log_file.read_text(encoding="utf-8"))
            skipped = [event for event in events if event["event_type"] == "YAML_ROW_SKIPPED"]
            self.assertEqual(len(skipped), 2)

    def test_reads_legacy_rows_without_open_invite_flag(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")
            row = {
                "reservation_id": "legacy-1",
                "room": "rooftop",
                "reserver_room": "402",
                "start": "2024-05-01T18:00:00+00:00",
                "end": "2024-05-01T22:00:00+00:00",
                "description": "BBQ",
                "created_at": "2024-04-20T09:00:00+00:00",
            }
            repo.reservations_file.write_text(yaml.safe_dump([row]), encoding="utf-8")

            (record,) = repo.list_reservations()
            self.assertEqual(record.room, Room.ROOFTOP)
            self.assertFalse(record.is_open_invite)
            self.assertEqual(record.start, datetime(2024, 5, 1, 18, 0, tzinfo=UTC))

    def test_write_failure_raises_storage_error(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")

            with mock.patch("pathlib.Path.replace", side_effect=OSError("read-only file system")):
                with self.assertRaises(ReservationStorageError):
                    repo.add_reservation(_new())

            self.assertEqual(repo.list_reservations(), [])
            self.assertFalse(list(repo.base_dir.glob("*.tmp")))

    def _fail_writes_to(self, repo: ReservationYamlRepository, target: Path):
        write_yaml = repo._write_yaml

        def failing_write(path, payload):
            if path == target:
                raise ReservationStorageError("disk full")
            return write_yaml(path, payload)

        return mock.patch.object(repo, "_write_yaml", side_effect=failing_write)

    def test_failed_version_write_stores_nothing(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")

            with self._fail_writes_to(repo, repo.versions_file):
                with self.assertRaises(ReservationStorageError):
                    repo.add_reservation(_new(), expected_version=0)

            self.assertEqual(repo.list_reservations(), [])
            self.assertEqual(repo.room_version(Room.PARTY), 0)

    def test_failed_row_write_restores_room_version(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")
            repo.add_reservation(_new(start_hour=8))

            with self._fail_writes_to(repo, repo.reservations_file):
                with self.assertRaises(ReservationStorageError):
                    repo.add_reservation(_new(), expected_version=1)

            self.assertEqual(len(repo.list_reservations()), 1)
            self.assertEqual(repo.room_version(Room.PARTY), 1)
            repo.add_reservation(_new(), expected_version=1)

    def test_failed_event_log_keeps_stored_reservation(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")

            with self._fail_writes_to(repo, repo.log_file):
                created = repo.add_reservation(_new(), expected_version=0)

            self.assertEqual(repo.list_reservations(), [created])
            self.assertEqual(repo.room_version(Room.PARTY), 1)

    def test_non_integer_room_version_is_recovered(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")
            repo.versions_file.write_text("party: lots\n", encoding="utf-8")

            self.assertEqual(repo.room_version(Room.PARTY), 0)
            self.assertEqual(len(list(repo.base_dir.glob("room_versions.corrupt.*.yaml"))), 1)
            self.assertIn("YAML_RECOVERED", repo.log_file.read_text(encoding="utf-8"))

            repo.add_reservation(_new(), expected_version=0)
            self.assertEqual(repo.room_version(Room.PARTY), 1)

    def test_open_invite_strings_are_read_as_flags(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")
            rows = []
            for reservation_id, flag in (("closed", "false"), ("open", "yes")):
                rows.append(
                    {
                        "reservation_id": reservation_id,
                        "room": "rooftop",
                        "reserver_room": "402",
                        "start": "2024-05-01T18:00:00+00:00",
                        "end": "2024-05-01T22:00:00+00:00",
                        "description": "BBQ",
                        "created_at": "2024-04-20T09:00:00+00:00",
                        "is_open_invite": flag,
                    }
                )
            repo.reservations_file.write_text(yaml.safe_dump(rows), encoding="utf-8")

            flags = {record.reservation_id: record.is_open_invite for record in repo.list_reservations()}
            self.assertEqual(flags, {"closed": False, "open": True})


if __name__ == "__main__":
    unittest.main()
