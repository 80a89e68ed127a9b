"""Month documents: one per (employee, "YYYY-MM"), days keyed "1".."31".

Python objects use snake_case; `to_document` / `from_document` produce the
camelCase shape the document store holds.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Optional

from ..common.datetime_utils import date_from_keys, day_key, from_iso, to_iso, year_month_key
from ..core.constants import DURATION_INCOMPLETE
from ..core.enums import SessionStatus, ValidationReason
from ..core.exceptions import ValidationError


def new_session_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Session:
    """One check-in/check-out interval."""

    check_in: Optional[datetime]
    check_out: Optional[datetime]
    worked_duration: str = DURATION_INCOMPLETE
    edited_by: Optional[str] = None
    edited_at: Optional[datetime] = None
    check_in_edited: bool = False
    check_out_edited: bool = False
    status: SessionStatus = SessionStatus.CLOSED
    # None only for sessions stored before ids existed, until their next write.
    session_id: Optional[str] = field(default_factory=new_session_id)

    @property
    def is_open(self) -> bool:
        return self.check_out is None

    def to_document(self) -> dict:
        return {
            "sessionId": self.session_id,
            "checkIn": to_iso(self.check_in),
            "checkOut": to_iso(self.check_out),
            "worked_hours": self.worked_duration,
            "editedBy": self.edited_by,
            "editedAt": to_iso(self.edited_at),
            "checkInEdited": self.check_in_edited,
            "checkOutEdited": self.check_out_edited,
            "status": self.status.value,
        }

    @classmethod
    def from_document(cls, doc: dict) -> "Session":
        check_out = from_iso(doc.get("checkOut"))
        status = doc.get("status") or (SessionStatus.OPEN.value if check_out is None else SessionStatus.CLOSED.value)
        return cls(
            check_in=from_iso(doc.get("checkIn")),
            check_out=check_out,
            worked_duration=doc.get("worked_hours") or doc.get("workedDuration") or DURATION_INCOMPLETE,
            edited_by=doc.get("editedBy"),
            edited_at=from_iso(doc.get("editedAt")),
            check_in_edited=bool(doc.get("checkInEdited", False)),
            check_out_edited=bool(doc.get("checkOutEdited", False)),
            status=SessionStatus(status),
            session_id=doc.get("sessionId") or None,
        )


@dataclass
class DayRecord:
    sessions: list[Session] = field(default_factory=list)
    is_clocked_in: bool = False

    def refresh_clock_state(self) -> None:
        self.is_clocked_in = any(s.is_open for s in self.sessions)

    def open_session_index(self) -> Optional[int]:
        for index, s in enumerate(self.sessions):
            if s.is_open:
                return index
        return None

    def to_document(self) -> dict:
        return {
            "sessions": [s.to_document() for s in self.sessions],
            "isClockedIn": self.is_clocked_in,
        }

    @classmethod
    def from_document(cls, doc: dict) -> "DayRecord":
        return cls(
            sessions=[Session.from_document(s) for s in (doc.get("sessions") or [])],
            is_clocked_in=bool(doc.get("isClockedIn", False)),
        )


@dataclass
class MonthRecord:
    days: dict[str, DayRecord] = field(default_factory=dict)
    created: Optional[datetime] = None
    last_updated: Optional[datetime] = None
    version: int = 0

    def day(self, key: str) -> Optional[DayRecord]:
        return self.days.get(str(key))

    def ensure_day(self, key: str) -> DayRecord:
        return self.days.setdefault(str(key), DayRecord())

    def drop_empty_days(self) -> None:
        for key in [k for k, d in self.days.items() if not d.sessions]:
            del self.days[key]

    def touch(self, now: datetime) -> None:
        """Stamp a write; sessions stored without an id get one persisted now."""

        self.created = self.created or now
        self.last_updated = now
        for day in self.days.values():
            day.sessions = [s if s.session_id else replace(s, session_id=new_session_id()) for s in day.sessions]

    def copy(self) -> "MonthRecord":
        return copy.deepcopy(self)

    def to_document(self) -> dict:
        return {
            "days": {k: d.to_document() for k, d in self.days.items()},
            "metadata": {
                "created": to_iso(self.created),
                "lastUpdated": to_iso(self.last_updated),
            },
            "version": self.version,
        }

    @classmethod
    def from_document(cls, doc: Optional[dict]) -> "MonthRecord":
        doc = doc or {}
        metadata = doc.get("metadata") or {}
        return cls(
            days={str(k): DayRecord.from_document(v) for k, v in (doc.get("days") or {}).items()},
            created=from_iso(metadata.get("created")),
            last_updated=from_iso(metadata.get("lastUpdated")),
            version=int(doc.get("version") or 0),
        )


@dataclass(frozen=True)
class SessionRef:
    """Address of a session: (employee, month, day, position).

    `index` shifts when an earlier sibling is deleted, so `session_id`
    is checked too whenever the caller has it.
    """

    employee_id: str
    year_month: str
    day: str
    index: int
    session_id: Optional[str] = None

    @property
    def work_date(self) -> date:
        return date_from_keys(self.year_month, self.day)

    @classmethod
    def for_date(cls, employee_id: str, work_date: date, index: int, session_id: Optional[str] = None) -> "SessionRef":
        return cls(
            employee_id=str(employee_id),
            year_month=year_month_key(work_date),
            day=day_key(work_date),
            index=int(index),
            session_id=session_id,
        )

    @classmethod
    def parse(cls, employee_id: str, value: str, session_id: Optional[str] = None) -> "SessionRef":
        """Parse the "YYYY-MM-D-I" form used by row keys."""

        parts = str(value or "").split("-")
        if len(parts) != 4 or not all(p.isdigit() for p in parts):
            raise ValidationError(f"Invalid session reference: {value!r}", reason=ValidationReason.BAD_SESSION_REF)
        ref = cls(
            employee_id=str(employee_id),
            year_month=f"{parts[0]}-{parts[1]}",
            day=str(int(parts[2])),
            index=int(parts[3]),
            session_id=session_id,
        )
        date_from_keys(ref.year_month, ref.day)
        return ref

    def __str__(self) -> str:
        return f"{self.year_month}-{self.day}-{self.index}"
