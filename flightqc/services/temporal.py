from __future__ import annotations

import math
import re
import warnings
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any

import pandas as pd

"""Date and duration parsing for flight records.

parse_date distinguishes an absent value (None / blank) from an invalid one
(a value that generic parsing rejects). parse_duration never fails: anything
it cannot read is 0 minutes, so callers must read 0 as "unknown or zero".
"""

__all__ = [
    "DateStatus",
    "DateInfo",
    "UNKNOWN",
    "INVALID_DATE_LABEL",
    "parse_date",
    "quarter_label",
    "parse_duration",
    "format_duration",
    "parse_clock_time",
    "flight_time_between",
]

UNKNOWN = "Unknown"
INVALID_DATE_LABEL = "Invalid Date"

_CLOCK_24H = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}(?:\.\d+)?))?$")
_CLOCK_12H_FORMATS = ("%I:%M %p", "%I:%M:%S %p", "%I:%M%p", "%I:%M:%S%p", "%I %p")


class DateStatus(Enum):
    VALID = "valid"
    ABSENT = "absent"
    INVALID = "invalid"


@dataclass(frozen=True)
class DateInfo:
    """Parsed mission date with its calendar buckets.

    Buckets are "Unknown" unless status is VALID; ``formatted`` is
    "Invalid Date" for unparseable input.
    """
    status: DateStatus
    value: datetime | None = None
    formatted: str = UNKNOWN
    month: str = UNKNOWN  # "Mar 2025"
    day_of_week: str = UNKNOWN  # "Sat"
    quarter: str = UNKNOWN  # "Q1 2025"
    full_date: str = UNKNOWN  # "Saturday, March 8, 2025"

    @property
    def is_valid(self) -> bool:
        return self.status is DateStatus.VALID

    @property
    def iso(self) -> str | None:
        """ISO string: date only at midnight, full datetime otherwise."""
        if self.value is None:
            return None
        if self.value.time() == time(0, 0):
            return self.value.date().isoformat()
        return self.value.isoformat()


_ABSENT = DateInfo(status=DateStatus.ABSENT)
_INVALID = DateInfo(status=DateStatus.INVALID, formatted=INVALID_DATE_LABEL)


def quarter_label(value: date) -> str:
    # 0-indexed month m0 -> ceil((m0 + 1) / 3)
    return f"Q{(value.month - 1) // 3 + 1} {value.year}"


def _to_naive(ts: pd.Timestamp) -> datetime:
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts.to_pydatetime()


def parse_date(value: Any) -> DateInfo:
    """Parse a mission date cell (str / date / datetime / Timestamp)."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return _ABSENT
    if isinstance(value, str) and value.strip() == "":
        return _ABSENT
    if isinstance(value, bool) or isinstance(value, (int, float)):
        # bare numbers are not dates (epoch offsets would be meaningless)
        return _INVALID
    if isinstance(value, date) and not isinstance(value, datetime):
        value = datetime.combine(value, time(0, 0))
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", UserWarning)
            ts = pd.to_datetime(value.strip() if isinstance(value, str) else value)
    except (ValueError, TypeError, OverflowError):
        return _INVALID
    if ts is pd.NaT or not isinstance(ts, pd.Timestamp):
        return _INVALID
    dt = _to_naive(ts)
    return DateInfo(
        status=DateStatus.VALID,
        value=dt,
        formatted=f"{dt:%b} {dt.day}, {dt.year}",
        month=f"{dt:%b} {dt.year}",
        day_of_week=f"{dt:%a}",
        quarter=quarter_label(dt),
        full_date=f"{dt:%A}, {dt:%B} {dt.day}, {dt.year}",
    )


def parse_duration(value: Any) -> float:
    """Convert a duration cell to minutes.

    Accepts ``H:MM:SS``, ``H:MM``, bare decimal minutes, ``datetime.time`` and
    ``timedelta``. Unreadable input yields 0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    if isinstance(value, time):
        return value.hour * 60 + value.minute + (value.second + value.microsecond / 1e6) / 60
    if isinstance(value, (timedelta, pd.Timedelta)):
        if pd.isna(value):
            return 0.0
        return value.total_seconds() / 60
    text = str(value).strip()
    if not text:
        return 0.0
    if ":" in text:
        parts = text.split(":")
        if len(parts) not in (2, 3):
            return 0.0
        try:
            nums = [float(p) for p in parts]
        except ValueError:
            return 0.0
        if not all(math.isfinite(n) for n in nums):
            return 0.0
        hours, minutes = nums[0], nums[1]
        seconds = nums[2] if len(nums) == 3 else 0.0
        return hours * 60 + minutes + seconds / 60
    try:
        minutes = float(text)
    except ValueError:
        return 0.0
    return minutes if math.isfinite(minutes) else 0.0


def format_duration(minutes: float) -> str:
    """Render minutes as ``H:MM:SS`` (seconds rounded)."""
    if not minutes or not math.isfinite(minutes) or minutes < 0:
        return "0:00:00"
    total_seconds = int(round(minutes * 60))
    hours, rem = divmod(total_seconds, 3600)
    mins, secs = divmod(rem, 60)
    return f"{hours}:{mins:02d}:{secs:02d}"


def parse_clock_time(value: Any) -> time | None:
    """Parse a time-of-day cell (24h ``HH:MM[:SS]`` or 12h with AM/PM)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.time()
    if isinstance(value, time):
        return value
    text = str(value).strip()
    if not text:
        return None
    m = _CLOCK_24H.match(text)
    if m:
        h, mi = int(m.group(1)), int(m.group(2))
        sec = float(m.group(3)) if m.group(3) else 0.0
        if h > 23 or mi > 59 or sec >= 60:
            return None
        return time(h, mi, int(sec))
    upper = text.upper()
    for fmt in _CLOCK_12H_FORMATS:
        try:
            return datetime.strptime(upper, fmt).time()
        except ValueError:
            continue
    return None


def flight_time_between(takeoff: Any, landing: Any) -> str | None:
    """Elapsed ``HH:MM:SS`` from take-off to landing, wrapping past midnight."""
    start = parse_clock_time(takeoff)
    end = parse_clock_time(landing)
    if start is None or end is None:
        return None
    anchor = date(1970, 1, 1)
    diff = (datetime.combine(anchor, end) - datetime.combine(anchor, start)).total_seconds()
    if diff < 0:
        diff += 24 * 3600  # overnight flight
    hours, rem = divmod(int(diff), 3600)
    mins, secs = divmod(rem, 60)
    return f"{hours:02d}:{mins:02d}:{secs:02d}"
