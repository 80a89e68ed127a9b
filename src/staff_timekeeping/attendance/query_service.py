from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Sequence, Union

from ..common.datetime_utils import day_key, year_month_key
from ..core.constants import DISPLAY_TIME_FORMAT, DURATION_INCOMPLETE, DURATION_INVALID, DURATION_NOT_AVAILABLE
from ..core.enums import STAFF_ROLES, Role, SortDirection, SortField, ValidationReason
from ..core.exceptions import NotFoundError, ValidationError
from ..timesheet.calculator import compute_worked_duration, format_minutes, parse_worked_duration_to_minutes
from ..users.model import Employee
from ..users.repository import EmployeeDirectory
from .model import MonthRecord, Session, SessionRef
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)

_NO_DURATION = frozenset({DURATION_INCOMPLETE, DURATION_INVALID, DURATION_NOT_AVAILABLE})


@dataclass(frozen=True)
class RosterRow:
    employee_id: str
    employee_name: str
    check_in_str: str
    check_out_str: str
    worked: str
    session_ref: SessionRef
    check_in_instant: Optional[datetime]
    check_in_edited: bool = False
    check_out_edited: bool = False

    def to_dict(self) -> dict:
        return {
            "employeeId": self.employee_id,
            "employeeName": self.employee_name,
            "checkInStr": self.check_in_str,
            "checkOutStr": self.check_out_str,
            "worked": self.worked,
            "sessionRef": str(self.session_ref),
            "sessionId": self.session_ref.session_id,
            "checkIn": self.check_in_instant.isoformat() if self.check_in_instant else None,
            "checkInEdited": self.check_in_edited,
            "checkOutEdited": self.check_out_edited,
        }


@dataclass(frozen=True)
class HistoryRow:
    date: Optional[date]
    check_in_str: str
    check_out_str: str
    worked: str
    check_in_edited: bool
    check_out_edited: bool
    check_in_instant: Optional[datetime] = None
    check_out_instant: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "date": self.date.strftime("%Y-%m-%d") if self.date else None,
            "checkInStr": self.check_in_str,
            "checkOutStr": self.check_out_str,
            "worked": self.worked,
            "checkInEdited": self.check_in_edited,
            "checkOutEdited": self.check_out_edited,
        }


@dataclass(frozen=True)
class HistoryView:
    rows: list[HistoryRow]
    total_worked_minutes: int

    @property
    def total_worked(self) -> str:
        return format_minutes(self.total_worked_minutes)


@dataclass(frozen=True)
class DateRange:
    """Inclusive [start, end] on calendar dates."""

    start: date
    end: date

    def __post_init__(self):
        if self.end < self.start:
            raise ValidationError("End date must not be before start date", reason=ValidationReason.INVALID_VALUE)

    def contains(self, value: Optional[datetime]) -> bool:
        if value is None:
            return False
        return self.start <= value.date() <= self.end


def _fmt_time(value: Optional[datetime]) -> str:
    return value.strftime(DISPLAY_TIME_FORMAT) if value else ""


def _worked(session: Session) -> str:
    return session.worked_duration or compute_worked_duration(session.check_in, session.check_out)


class AttendanceQueryService:
    """Read side: flatten month documents into display rows.

    Fetched records are never mutated; missing months are skipped.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        employees: EmployeeDirectory,
        *,
        max_concurrency: int = 0,
    ):
        self._attendance = attendance
        self._employees = employees
        # 0 keeps the fan-out unbounded (one read per employee at once).
        self._max_concurrency = max_concurrency

    async def daily_roster_view(
        self,
        day: date,
        caller_role: Union[Role, str],
        *,
        caller_employee_id: Optional[str] = None,
    ) -> list[RosterRow]:
        """Every session on `day` across staff, newest check-in first."""

        caller_role = Role.parse(caller_role)
        employees: Sequence[Employee] = await self._employees.list_employees(STAFF_ROLES)
        if caller_role is Role.TEAMMEMBER:
            employees = [e for e in employees if e.employee_id == str(caller_employee_id)]

        year_month = year_month_key(day)
        # Built per call: each async request may run on its own event loop.
        limit = self._fan_out_limit()
        records = await asyncio.gather(*(self._fetch_month(e.employee_id, year_month, limit) for e in employees))

        rows: list[RosterRow] = []
        for employee, record in zip(employees, records):
            day_record = record.day(day_key(day)) if record else None
            if not day_record:
                continue
            for index, session in enumerate(day_record.sessions):
                rows.append(
                    RosterRow(
                        employee_id=employee.employee_id,
                        employee_name=employee.display_name,
                        check_in_str=_fmt_time(session.check_in),
                        check_out_str=_fmt_time(session.check_out),
                        worked=_worked(session),
                        session_ref=SessionRef.for_date(employee.employee_id, day, index, session.session_id),
                        check_in_instant=session.check_in,
                        check_in_edited=session.check_in_edited,
                        check_out_edited=session.check_out_edited,
                    )
                )

        # Stable sort: rows without check-in go last, ties keep fetch order.
        rows.sort(key=lambda r: r.check_in_instant.timestamp() if r.check_in_instant else float("-inf"), reverse=True)
        logger.debug(f"Roster {day:%Y-%m-%d}: {len(rows)} rows from {len(employees)} employees")
        return rows

    async def self_history_view(
        self,
        employee_id: str,
        *,
        date_range: Optional[DateRange] = None,
        sort_field: Union[SortField, str] = SortField.DATE,
        sort_direction: Union[SortDirection, str] = SortDirection.DESC,
    ) -> HistoryView:
        try:
            sort_field = SortField(sort_field)
            sort_direction = SortDirection(sort_direction)
        except ValueError as e:
            raise ValidationError(str(e), reason=ValidationReason.INVALID_VALUE) from None
        employee_id = await self._resolve_employee(employee_id)

        year_months = sorted(await self._attendance.list_year_months(employee_id))
        limit = self._fan_out_limit()
        records = await asyncio.gather(*(self._fetch_month(employee_id, ym, limit) for ym in year_months))

        rows: list[HistoryRow] = []
        for record in records:
            if not record:
                continue
            for key in sorted(record.days, key=int):
                for session in record.days[key].sessions:
                    rows.append(
                        HistoryRow(
                            date=session.check_in.date() if session.check_in else None,
                            check_in_str=_fmt_time(session.check_in),
                            check_out_str=_fmt_time(session.check_out),
                            worked=_worked(session),
                            check_in_edited=session.check_in_edited,
                            check_out_edited=session.check_out_edited,
                            check_in_instant=session.check_in,
                            check_out_instant=session.check_out,
                        )
                    )

        if date_range is not None:
            rows = [r for r in rows if date_range.contains(r.check_in_instant)]

        rows = _sort_history(rows, sort_field, sort_direction)
        total = sum(parse_worked_duration_to_minutes(r.worked) for r in rows)
        return HistoryView(rows=rows, total_worked_minutes=total)

    async def _resolve_employee(self, employee_id: str) -> str:
        """Accept either a directory id or an employee code."""

        employee_id = str(employee_id)
        if await self._employees.get_employee(employee_id) is not None:
            return employee_id
        resolved = await self._employees.resolve_employee_id(employee_id)
        if not resolved:
            raise NotFoundError(f"Employee {employee_id} not found")
        return resolved

    def _fan_out_limit(self) -> Optional[asyncio.Semaphore]:
        return asyncio.Semaphore(self._max_concurrency) if self._max_concurrency > 0 else None

    async def _fetch_month(
        self, employee_id: str, year_month: str, limit: Optional[asyncio.Semaphore]
    ) -> Optional[MonthRecord]:
        if limit is None:
            return await self._attendance.get_month_record(employee_id, year_month)
        async with limit:
            return await self._attendance.get_month_record(employee_id, year_month)


def _sort_history(rows: list[HistoryRow], field: SortField, direction: SortDirection) -> list[HistoryRow]:
    """Stable sort on one field; rows missing the value always go last."""

    def key(row: HistoryRow):
        if field is SortField.DURATION:
            return None if row.worked in _NO_DURATION else parse_worked_duration_to_minutes(row.worked)
        if field is SortField.CHECK_OUT:
            return row.check_out_instant
        # DATE and CHECK_IN both order by the check-in instant.
        return row.check_in_instant

    present = [r for r in rows if key(r) is not None]
    missing = [r for r in rows if key(r) is None]
    present.sort(key=key, reverse=direction is SortDirection.DESC)
    return present + missing
