from __future__ import annotations

from datetime import timedelta, tzinfo
from pathlib import Path
import os
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Europe/Zurich"
DEFAULT_DATA_DIR = "data"

MAX_RESERVATION_DURATION = timedelta(hours=24)
CALENDAR_WINDOW_DAYS = 7
REFRESH_INTERVAL_SECONDS = 60
PAST_PAGE_SIZE = 10

TIMEZONE_ENV = "RESIDENCE_TIMEZONE"
DATA_DIR_ENV = "RESIDENCE_DATA_DIR"


def residence_timezone(name: str | None = None) -> tzinfo:
    """Return the zone used for naive form input and calendar days.

    An explicit *name* wins over ``RESIDENCE_TIMEZONE``, which wins over the default.
    """
    return ZoneInfo(name or os.environ.get(TIMEZONE_ENV) or DEFAULT_TIMEZONE)


def data_dir(path: str | Path | None = None) -> Path:
    return Path(path or os.environ.get(DATA_DIR_ENV) or DEFAULT_DATA_DIR)
