from __future__ import annotations

from pathlib import Path
import argparse
import logging
import sys

from residence_reservations import ReservationStorageError, ReservationYamlRepository, backfill_open_invites
from residence_reservations.config import data_dir


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Set is_open_invite on legacy reservations from their description.")
    parser.add_argument("--data-dir", type=Path, default=None, help="reservation data directory (default: $RESIDENCE_DATA_DIR or ./data)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")

    try:
        report = backfill_open_invites(ReservationYamlRepository(data_dir(args.data_dir)))
    except ReservationStorageError as error:
        logging.getLogger(__name__).error(f"Migration failed: {error}")
        return 1

    print(f"[OK] {report.updated} reservations updated, {report.skipped} already had the flag")
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
