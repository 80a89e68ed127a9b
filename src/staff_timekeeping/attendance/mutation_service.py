from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional, Union

from ..common.datetime_utils import day_key, now_local, parse_clock_time, year_month_key
from ..common.validators import require_present
from ..core.constants import DISPLAY_TIME_FORMAT
from ..core.enums import Action, Role, SessionStatus, ValidationReason
from ..core.exceptions import NotFoundError, ValidationError
from ..policies.permissions import authorize
from ..timesheet.calculator import compute_worked_duration
from ..users.repository import EmployeeDirectory
from .model import DayRecord, MonthRecord, Session, SessionRef
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)

TimeInput = Union[str, time, None]


@dataclass(frozen=True)
class MutationResult:
    ref: SessionRef
    session: Optional[Session]
    version: int


def _same_minute(a: Optional[datetime], b: Optional[datetime]) -> bool:
    if a is None or b is None:
        return a is b
    return a.strftime(f"%Y-%m-%d {DISPLAY_TIME_FORMAT}") == b.strftime(f"%Y-%m-%d {DISPLAY_TIME_FORMAT}")


def _check_timing(check_in: datetime, check_out: datetime, now: datetime) -> None:
    if check_out > now:
        raise ValidationError("Check-out cannot be in the future", reason=ValidationReason.CHECK_OUT_IN_FUTURE)
    if check_in > now:
        raise ValidationError("Check-in cannot be in the future", reason=ValidationReason.CHECK_IN_IN_FUTURE)
    if check_out < check_in:
        raise ValidationError(
            "Check-out must be after check-in", reason=ValidationReason.CHECK_OUT_BEFORE_CHECK_IN
        )


class MutationService:
    """Add/edit/delete sessions inside an employee's month document.

    Every operation authorizes first (no I/O on refusal), then validates,
    then does a single read-modify-write of the month record. The write
    carries the version that was read, so a concurrent editor makes the
    second write fail with ConcurrentUpdateError instead of silently
    dropping the first one's change.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        employees: Optional[EmployeeDirectory] = None,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._attendance = attendance
        self._employees = employees
        self._clock = clock

    async def add(
        self,
        employee_id: str,
        shift_start_date: date,
        check_in_time: TimeInput,
        shift_end_date: Optional[date],
        check_out_time: TimeInput,
        acting_role: Union[Role, str],
        *,
        now: Optional[datetime] = None,
    ) -> MutationResult:
        role = Role.parse(acting_role)
        now = now or self._clock()
        require_present(shift_start_date, "Shift start date", ValidationReason.BAD_SHIFT_SPAN)

        authorize(role, shift_start_date, now).require(Action.ADD, role=role, target_date=shift_start_date)

        employee_id = require_present(employee_id, "Employee", ValidationReason.MISSING_EMPLOYEE)
        t_in = require_present(parse_clock_time(check_in_time), "Check-in time", ValidationReason.MISSING_CHECK_IN)
        t_out = require_present(parse_clock_time(check_out_time), "Check-out time", ValidationReason.MISSING_CHECK_OUT)

        shift_end_date = shift_end_date or shift_start_date
        if shift_end_date not in (shift_start_date, shift_start_date + timedelta(days=1)):
            raise ValidationError(
                "Check-out date must be the same as check-in or the next day",
                reason=ValidationReason.BAD_SHIFT_SPAN,
            )

        check_in = datetime.combine(shift_start_date, t_in)
        check_out = datetime.combine(shift_end_date, t_out)
        _check_timing(check_in, check_out, now)

        await self._require_employee(employee_id)

        year_month = year_month_key(shift_start_date)
        existing = await self._attendance.get_month_record(employee_id, year_month)
        record = existing.copy() if existing else MonthRecord()
        expected_version = existing.version if existing else 0

        session = Session(
            check_in=check_in,
            check_out=check_out,
            worked_duration=compute_worked_duration(check_in, check_out),
            edited_by=role.value,
            edited_at=now,
            status=SessionStatus.CLOSED,
        )
        day = record.ensure_day(day_key(shift_start_date))
        day.sessions.append(session)
        day.refresh_clock_state()
        record.touch(now)

        version = await self._attendance.put_month_record(
            employee_id, year_month, record, expected_version=expected_version
        )
        ref = SessionRef.for_date(employee_id, shift_start_date, len(day.sessions) - 1, session.session_id)
        logger.info(f"Session added: {ref} for {employee_id} by {role.value} ({session.worked_duration})")
        return MutationResult(ref=ref, session=session, version=version)

    async def edit(
        self,
        ref: SessionRef,
        new_check_in_time: TimeInput,
        new_check_out_time: TimeInput,
        acting_role: Union[Role, str],
        *,
        now: Optional[datetime] = None,
    ) -> MutationResult:
        role = Role.parse(acting_role)
        now = now or self._clock()
        work_date = ref.work_date

        authorize(role, work_date, now).require(Action.EDIT, role=role, target_date=work_date)

        t_in = require_present(parse_clock_time(new_check_in_time), "Check-in time", ValidationReason.MISSING_CHECK_IN)
        t_out = require_present(
            parse_clock_time(new_check_out_time), "Check-out time", ValidationReason.MISSING_CHECK_OUT
        )

        record, day, current = await self._load_session(ref)

        # Keep each side on the calendar day it was recorded on so overnight
        # shifts stay overnight.
        check_in = datetime.combine(current.check_in.date() if current.check_in else work_date, t_in)
        check_out = datetime.combine(current.check_out.date() if current.check_out else check_in.date(), t_out)
        if _same_minute(check_in, current.check_in):
            check_in = current.check_in
        if _same_minute(check_out, current.check_out):
            check_out = current.check_out

        _check_timing(check_in, check_out, now)

        updated = replace(
            current,
            check_in=check_in,
            check_out=check_out,
            worked_duration=compute_worked_duration(check_in, check_out),
            edited_by=role.value,
            edited_at=now,
            check_in_edited=current.check_in_edited or check_in != current.check_in,
            check_out_edited=current.check_out_edited or check_out != current.check_out,
            status=SessionStatus.CLOSED,
        )
        day.sessions[ref.index] = updated
        day.refresh_clock_state()
        record.touch(now)
        updated = day.sessions[ref.index]

        version = await self._attendance.put_month_record(
            ref.employee_id, ref.year_month, record, expected_version=record.version
        )
        logger.info(f"Session edited: {ref} for {ref.employee_id} by {role.value} ({updated.worked_duration})")
        return MutationResult(ref=replace(ref, session_id=updated.session_id), session=updated, version=version)

    async def delete(
        self,
        ref: SessionRef,
        acting_role: Union[Role, str],
        *,
        now: Optional[datetime] = None,
    ) -> MutationResult:
        role = Role.parse(acting_role)
        now = now or self._clock()
        work_date = ref.work_date

        authorize(role, work_date, now).require(Action.DELETE, role=role, target_date=work_date)

        record, day, removed = await self._load_session(ref)

        del day.sessions[ref.index]
        day.refresh_clock_state()
        record.drop_empty_days()
        record.touch(now)

        version = await self._attendance.put_month_record(
            ref.employee_id, ref.year_month, record, expected_version=record.version
        )
        logger.info(f"Session deleted: {ref} ({removed.session_id}) for {ref.employee_id} by {role.value}")
        return MutationResult(ref=ref, session=removed, version=version)

    async def clock_in(self, employee_id: str, *, now: Optional[datetime] = None) -> MutationResult:
        """Self-service punch: open a session for today."""

        now = now or self._clock()
        employee_id = require_present(employee_id, "Employee", ValidationReason.MISSING_EMPLOYEE)
        await self._require_employee(employee_id)

        today = now.date()
        year_month = year_month_key(today)
        existing = await self._attendance.get_month_record(employee_id, year_month)
        record = existing.copy() if existing else MonthRecord()
        expected_version = existing.version if existing else 0

        day = record.ensure_day(day_key(today))
        if day.open_session_index() is not None:
            raise ValidationError("Already clocked in", reason=ValidationReason.ALREADY_CLOCKED_IN)

        session = Session(check_in=now, check_out=None, status=SessionStatus.OPEN)
        day.sessions.append(session)
        day.refresh_clock_state()
        record.touch(now)

        version = await self._attendance.put_month_record(
            employee_id, year_month, record, expected_version=expected_version
        )
        ref = SessionRef.for_date(employee_id, today, len(day.sessions) - 1, session.session_id)
        logger.info(f"Clock-in: {employee_id} at {now:%Y-%m-%d %H:%M}")
        return MutationResult(ref=ref, session=session, version=version)

    async def clock_out(self, employee_id: str, *, now: Optional[datetime] = None) -> MutationResult:
        """Close the open session, looking back one day for overnight shifts."""

        now = now or self._clock()
        employee_id = require_present(employee_id, "Employee", ValidationReason.MISSING_EMPLOYEE)

        for work_date in (now.date(), now.date() - timedelta(days=1)):
            year_month = year_month_key(work_date)
            record = await self._attendance.get_month_record(employee_id, year_month)
            day = record.day(day_key(work_date)) if record else None
            index = day.open_session_index() if day else None
            if index is None:
                continue

            record = record.copy()
            day = record.days[day_key(work_date)]
            current = day.sessions[index]
            closed = replace(
                current,
                check_out=now,
                worked_duration=compute_worked_duration(current.check_in, now),
                status=SessionStatus.CLOSED,
            )
            day.sessions[index] = closed
            day.refresh_clock_state()
            record.touch(now)
            closed = day.sessions[index]

            version = await self._attendance.put_month_record(
                employee_id, year_month, record, expected_version=record.version
            )
            ref = SessionRef.for_date(employee_id, work_date, index, closed.session_id)
            logger.info(f"Clock-out: {employee_id} at {now:%Y-%m-%d %H:%M} ({closed.worked_duration})")
            return MutationResult(ref=ref, session=closed, version=version)

        raise ValidationError("Not clocked in", reason=ValidationReason.NOT_CLOCKED_IN)

    async def _require_employee(self, employee_id: str) -> None:
        if self._employees is None:
            return
        if await self._employees.get_employee(employee_id) is None:
            raise NotFoundError(f"Employee {employee_id} not found")

    async def _load_session(self, ref: SessionRef) -> tuple[MonthRecord, DayRecord, Session]:
        existing = await self._attendance.get_month_record(ref.employee_id, ref.year_month)
        if existing is None:
            raise NotFoundError(f"No attendance for {ref.employee_id} in {ref.year_month}")

        record = existing.copy()
        day = record.day(ref.day)
        if day is None or not day.sessions:
            raise NotFoundError(f"No sessions for {ref.employee_id} on {ref.work_date:%Y-%m-%d}")
        if not 0 <= ref.index < len(day.sessions):
            raise NotFoundError(f"Session {ref} no longer exists")

        session = day.sessions[ref.index]
        # Legacy sessions have no stored id yet; only their position can be checked.
        if ref.session_id and session.session_id and session.session_id != ref.session_id:
            raise NotFoundError(f"Session {ref} has moved or was deleted; reload and retry")
        return record, day, session
