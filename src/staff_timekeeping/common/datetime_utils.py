from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional, Union

from ..core.constants import YEAR_MONTH_FORMAT
from ..core.enums import ValidationReason
from ..core.exceptions import ValidationError


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date (YYYY-MM-DD): {value!r}", reason=ValidationReason.BAD_DATE_FORMAT) from None


def parse_clock_time(value: Union[str, time, None]) -> Optional[time]:
    """Parse an "HH:MM" wall-clock string. Empty input means "not given"."""

    if value is None or isinstance(value, time):
        return value
    v = value.strip()
    if not v:
        return None
    try:
        return datetime.strptime(v, "%H:%M").time()
    except ValueError:
        raise ValidationError(f"Invalid time (HH:MM): {value!r}", reason=ValidationReason.BAD_TIME_FORMAT) from None


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()


def year_month_key(day: date) -> str:
    return day.strftime(YEAR_MONTH_FORMAT)


def day_key(day: date) -> str:
    # Documents key days without a leading zero ("7", not "07").
    return str(day.day)


def date_from_keys(year_month: str, day: str) -> date:
    try:
        parsed = datetime.strptime(year_month, YEAR_MONTH_FORMAT)
        return parsed.replace(day=int(day)).date()
    except (TypeError, ValueError):
        raise ValidationError(
            f"Invalid month/day key: {year_month!r}/{day!r}", reason=ValidationReason.BAD_SESSION_REF
        ) from None


def to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def from_iso(value) -> Optional[datetime]:
    """Parse a stored instant into naive local time, like `now_local`."""

    if value is None or value == "":
        return None
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed
