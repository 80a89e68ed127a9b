"""Rolling calendar range in which attendance may still be corrected.

The window is the current Monday-start week plus the following Monday.
On a Monday the window instead reaches back over the whole previous week
so weekend shifts can be fixed first thing, and stops after today.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Union

DateLike = Union[date, datetime]


@dataclass(frozen=True)
class EditableWindow:
    """Half-open date range [start, end)."""

    start: date
    end: date

    def contains(self, value: DateLike) -> bool:
        return is_date_editable(value, self)

    def to_dict(self) -> dict:
        return {
            "start": self.start.strftime("%Y-%m-%d"),
            "end": self.end.strftime("%Y-%m-%d"),
        }


def _as_date(value: DateLike) -> date:
    return value.date() if isinstance(value, datetime) else value


def start_of_week(value: DateLike) -> date:
    d = _as_date(value)
    return d - timedelta(days=d.weekday())


def compute_editable_window(now: DateLike) -> EditableWindow:
    today = _as_date(now)
    last_monday = start_of_week(today)

    if today.weekday() == 0:
        return EditableWindow(start=last_monday - timedelta(weeks=1), end=last_monday + timedelta(days=1))
    return EditableWindow(start=last_monday, end=last_monday + timedelta(weeks=1, days=1))


def is_date_editable(value: DateLike, window: EditableWindow) -> bool:
    return window.start <= _as_date(value) < window.end
