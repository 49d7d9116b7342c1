"""One-time data migrations for reservations stored before a field existed.

Nothing in here runs on the submission path: new reservations always carry an explicit flag.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
import logging

from .yaml_store import ReservationYamlRepository

logger = logging.getLogger(__name__)

OPEN_INVITE_KEYWORDS = (
    "open for everyone",
    "everyone welcome",
    "welcome to join",
    "feel free to join",
    "open invitation",
    "open to all",
    "anyone can join",
)


@dataclass(frozen=True)
class BackfillReport:
    updated: int
    skipped: int


def infer_open_invite(description: str | None) -> bool:
    text = (description or "").lower()
    return any(keyword in text for keyword in OPEN_INVITE_KEYWORDS)


def backfill_open_invites(repository: ReservationYamlRepository) -> BackfillReport:
    """Set ``is_open_invite`` on legacy rows from their description text.

    Rows that already have the field are left alone, so running this twice is harmless.
    """

    def transform(row: dict[str, Any]) -> dict[str, Any] | None:
        if "is_open_invite" in row:
            return None
        row["is_open_invite"] = infer_open_invite(row.get("description"))
        logger.info(f"Backfilled {row.get('reservation_id')}: is_open_invite={row['is_open_invite']}")
        return row

    updated, skipped = repository.update_raw_rows(transform, "OPEN_INVITE_BACKFILLED")
    logger.info(f"Open invitation backfill finished: {updated} updated, {skipped} skipped")
    return BackfillReport(updated=updated, skipped=skipped)
