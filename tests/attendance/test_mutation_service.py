from __future__ import annotations

import asyncio
from datetime import date, datetime, time

import pytest

from fakes import InMemoryAttendance, InMemoryEmployees, month_with
from staff_timekeeping.attendance.model import SessionRef
from staff_timekeeping.attendance.mutation_service import MutationService
from staff_timekeeping.core.enums import Role, SessionStatus, ValidationReason
from staff_timekeeping.core.exceptions import (
    ConcurrentUpdateError,
    ForbiddenError,
    NotFoundError,
    StoreError,
    ValidationError,
)

TUESDAY = date(2026, 3, 10)
TODAY = date(2026, 3, 11)


def seed_two_sessions(repo: InMemoryAttendance) -> None:
    repo.seed(
        "u-tm1",
        "2026-03",
        month_with(
            "10",
            (datetime(2026, 3, 10, 6, 0), datetime(2026, 3, 10, 10, 0)),
            (datetime(2026, 3, 10, 14, 0), datetime(2026, 3, 10, 22, 0)),
        ),
    )


@pytest.mark.asyncio
async def test_admin_adds_closed_session(mutations, attendance_repo, now):
    result = await mutations.add("u-tm1", TUESDAY, "09:00", TUESDAY, "17:00", Role.ADMIN)

    assert result.session.worked_duration == "7h 30m"
    assert result.session.status == SessionStatus.CLOSED
    assert result.ref == SessionRef("u-tm1", "2026-03", "10", 0, result.session.session_id)
    assert result.version == 1

    doc = attendance_repo.document("u-tm1", "2026-03")
    day = doc["days"]["10"]
    assert day["isClockedIn"] is False
    assert len(day["sessions"]) == 1
    stored = day["sessions"][0]
    assert stored["worked_hours"] == "7h 30m"
    assert stored["editedBy"] == "admin"
    assert stored["editedAt"] == now.isoformat()
    assert stored["checkInEdited"] is False
    assert stored["checkOutEdited"] is False
    assert stored["status"] == "closed"
    assert doc["metadata"]["created"] == now.isoformat()


@pytest.mark.asyncio
async def test_add_appends_after_existing_sessions(mutations, attendance_repo):
    seed_two_sessions(attendance_repo)

    result = await mutations.add("u-tm1", TUESDAY, "23:00", TUESDAY, "23:30", "admin")

    assert result.ref.index == 2
    assert len(attendance_repo.document("u-tm1", "2026-03")["days"]["10"]["sessions"]) == 3


@pytest.mark.asyncio
async def test_add_overnight_shift_lands_on_start_day(mutations, attendance_repo):
    result = await mutations.add("u-tm1", TUESDAY, "22:00", TODAY, "06:00", Role.ADMIN)

    assert result.session.check_out == datetime(2026, 3, 11, 6, 0)
    assert result.session.worked_duration == "7h 30m"
    assert list(attendance_repo.document("u-tm1", "2026-03")["days"]) == ["10"]


@pytest.mark.asyncio
@pytest.mark.parametrize("role", [Role.MANAGER, Role.TEAMLEADER, Role.TEAMMEMBER])
async def test_only_admin_may_add(mutations, attendance_repo, role):
    with pytest.raises(ForbiddenError):
        await mutations.add("u-tm1", TODAY, "09:00", TODAY, "10:00", role)
    assert attendance_repo.reads == attendance_repo.writes == 0


@pytest.mark.asyncio
async def test_admin_add_outside_window_is_forbidden_without_io(mutations, attendance_repo):
    with pytest.raises(ForbiddenError):
        await mutations.add("u-tm1", date(2026, 3, 6), "09:00", date(2026, 3, 6), "17:00", Role.ADMIN)
    assert attendance_repo.reads == attendance_repo.writes == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "args,reason",
    [
        (("", TUESDAY, "09:00", TUESDAY, "17:00"), ValidationReason.MISSING_EMPLOYEE),
        (("u-tm1", TUESDAY, "", TUESDAY, "17:00"), ValidationReason.MISSING_CHECK_IN),
        (("u-tm1", TUESDAY, "09:00", TUESDAY, None), ValidationReason.MISSING_CHECK_OUT),
        (("u-tm1", TUESDAY, "09:00", date(2026, 3, 12), "07:00"), ValidationReason.BAD_SHIFT_SPAN),
        (("u-tm1", TUESDAY, "09:00", date(2026, 3, 9), "17:00"), ValidationReason.BAD_SHIFT_SPAN),
        (("u-tm1", TODAY, "17:00", TODAY, "19:00"), ValidationReason.CHECK_OUT_IN_FUTURE),
        (("u-tm1", TODAY, "19:00", TODAY, "17:00"), ValidationReason.CHECK_IN_IN_FUTURE),
        (("u-tm1", TUESDAY, "17:00", TUESDAY, "09:00"), ValidationReason.CHECK_OUT_BEFORE_CHECK_IN),
        (("u-tm1", TUESDAY, "9am", TUESDAY, "17:00"), ValidationReason.BAD_TIME_FORMAT),
    ],
)
async def test_add_validation_reasons(mutations, attendance_repo, args, reason):
    with pytest.raises(ValidationError) as exc:
        await mutations.add(*args, Role.ADMIN)
    assert exc.value.reason == reason
    assert attendance_repo.writes == 0


@pytest.mark.asyncio
async def test_add_for_unknown_employee_is_not_found(mutations, attendance_repo):
    with pytest.raises(NotFoundError):
        await mutations.add("ghost", TUESDAY, "09:00", TUESDAY, "17:00", Role.ADMIN)
    assert attendance_repo.writes == 0


@pytest.mark.asyncio
async def test_add_accepts_time_objects_and_defaults_end_date(mutations):
    result = await mutations.add("u-tm1", TUESDAY, time(8, 0), None, time(12, 0), Role.ADMIN)
    assert result.session.check_out == datetime(2026, 3, 10, 12, 0)
    assert result.session.worked_duration == "4h 0m"


@pytest.mark.asyncio
async def test_delete_shifts_later_sessions_down(mutations, attendance_repo):
    seed_two_sessions(attendance_repo)
    before = attendance_repo.document("u-tm1", "2026-03")["days"]["10"]["sessions"]
    first_id, second_id = before[0]["sessionId"], before[1]["sessionId"]

    result = await mutations.delete(SessionRef("u-tm1", "2026-03", "10", 0, first_id), Role.ADMIN)

    assert result.session.session_id == first_id
    after = attendance_repo.document("u-tm1", "2026-03")["days"]["10"]["sessions"]
    assert len(after) == 1
    assert after[0]["sessionId"] == second_id

    # The old position of the surviving session is gone...
    with pytest.raises(NotFoundError):
        await mutations.edit(SessionRef("u-tm1", "2026-03", "10", 1), "14:00", "21:00", Role.ADMIN)
    # ...and a stale reference to the deleted one does not hit its sibling.
    with pytest.raises(NotFoundError):
        await mutations.delete(SessionRef("u-tm1", "2026-03", "10", 0, first_id), Role.ADMIN)
    assert len(attendance_repo.document("u-tm1", "2026-03")["days"]["10"]["sessions"]) == 1


@pytest.mark.asyncio
async def test_deleting_last_session_removes_day(mutations, attendance_repo):
    attendance_repo.seed("u-tm1", "2026-03", month_with("10", (datetime(2026, 3, 10, 9), datetime(2026, 3, 10, 17))))

    await mutations.delete(SessionRef("u-tm1", "2026-03", "10", 0), Role.ADMIN)

    assert attendance_repo.document("u-tm1", "2026-03")["days"] == {}


@pytest.mark.asyncio
async def test_delete_missing_month_or_day(mutations, attendance_repo):
    with pytest.raises(NotFoundError):
        await mutations.delete(SessionRef("u-tm1", "2026-03", "10", 0), Role.ADMIN)
    seed_two_sessions(attendance_repo)
    with pytest.raises(NotFoundError):
        await mutations.delete(SessionRef("u-tm1", "2026-03", "9", 0), Role.ADMIN)


@pytest.mark.asyncio
async def test_manager_cannot_delete(mutations, attendance_repo):
    with pytest.raises(ForbiddenError):
        await mutations.delete(SessionRef("u-tm1", "2026-03", "11", 0), Role.MANAGER)
    assert attendance_repo.reads == 0


@pytest.mark.asyncio
async def test_edit_with_same_values_changes_nothing(mutations, attendance_repo):
    attendance_repo.seed(
        "u-tm1",
        "2026-03",
        month_with("10", (datetime(2026, 3, 10, 9, 0, 41), datetime(2026, 3, 10, 17, 0, 12))),
    )
    before = attendance_repo.document("u-tm1", "2026-03")["days"]["10"]["sessions"][0]

    result = await mutations.edit(SessionRef("u-tm1", "2026-03", "10", 0), "09:00", "17:00", Role.ADMIN)

    assert result.session.check_in_edited is False
    assert result.session.check_out_edited is False
    assert result.session.worked_duration == before["worked_hours"]
    assert result.session.check_in == datetime(2026, 3, 10, 9, 0, 41)


@pytest.mark.asyncio
async def test_edit_flags_only_the_changed_side(mutations, attendance_repo):
    seed_two_sessions(attendance_repo)

    result = await mutations.edit(SessionRef("u-tm1", "2026-03", "10", 1), "14:00", "23:00", Role.ADMIN)

    assert result.session.check_in_edited is False
    assert result.session.check_out_edited is True
    assert result.session.worked_duration == "8h 30m"
    stored = attendance_repo.document("u-tm1", "2026-03")["days"]["10"]["sessions"]
    assert stored[1]["checkOut"] == "2026-03-10T23:00:00"
    assert stored[0]["checkOutEdited"] is False

    # A later no-op edit keeps the earlier flag.
    again = await mutations.edit(SessionRef("u-tm1", "2026-03", "10", 1), "14:00", "23:00", Role.ADMIN)
    assert again.session.check_out_edited is True


@pytest.mark.asyncio
async def test_edit_keeps_overnight_checkout_on_next_day(mutations, attendance_repo):
    attendance_repo.seed(
        "u-tm1", "2026-03", month_with("10", (datetime(2026, 3, 10, 22, 0), datetime(2026, 3, 11, 6, 0)))
    )

    result = await mutations.edit(SessionRef("u-tm1", "2026-03", "10", 0), "21:00", "06:00", Role.ADMIN)

    assert result.session.check_out == datetime(2026, 3, 11, 6, 0)
    assert result.session.worked_duration == "8h 30m"


@pytest.mark.asyncio
async def test_edit_rejects_check_out_before_check_in(mutations, attendance_repo):
    seed_two_sessions(attendance_repo)
    ref = SessionRef("u-tm1", "2026-03", "10", 0)

    with pytest.raises(ValidationError) as exc:
        await mutations.edit(ref, "10:00", "09:00", Role.ADMIN)
    assert exc.value.reason == ValidationReason.CHECK_OUT_BEFORE_CHECK_IN
    assert attendance_repo.writes == 0


@pytest.mark.asyncio
async def test_manager_edits_today_but_not_yesterday(mutations, attendance_repo):
    seed_two_sessions(attendance_repo)
    attendance_repo.seed(
        "u-tm2", "2026-03", month_with("11", (datetime(2026, 3, 11, 8), datetime(2026, 3, 11, 12)))
    )

    result = await mutations.edit(SessionRef("u-tm2", "2026-03", "11", 0), "08:30", "12:00", Role.MANAGER)
    assert result.session.edited_by == "manager"
    assert result.session.check_in_edited is True

    with pytest.raises(ForbiddenError):
        await mutations.edit(SessionRef("u-tm1", "2026-03", "10", 0), "06:30", "10:00", Role.MANAGER)


@pytest.mark.asyncio
async def test_concurrent_edits_on_same_month_fail_loudly(staff, now):
    repo = InMemoryAttendance(yield_on_read=True)
    seed_two_sessions(repo)
    service = MutationService(repo, InMemoryEmployees(staff), clock=lambda: now)

    results = await asyncio.gather(
        service.edit(SessionRef("u-tm1", "2026-03", "10", 0), "06:30", "10:00", Role.ADMIN),
        service.edit(SessionRef("u-tm1", "2026-03", "10", 1), "14:00", "21:00", Role.ADMIN),
        return_exceptions=True,
    )

    assert sum(isinstance(r, ConcurrentUpdateError) for r in results) == 1
    sessions = repo.document("u-tm1", "2026-03")["days"]["10"]["sessions"]
    assert sum(s["checkInEdited"] or s["checkOutEdited"] for s in sessions) == 1


@pytest.mark.asyncio
async def test_store_failure_surfaces(mutations, attendance_repo):
    attendance_repo.fail_with = StoreError("down")
    with pytest.raises(StoreError):
        await mutations.add("u-tm1", TUESDAY, "09:00", TUESDAY, "17:00", Role.ADMIN)


@pytest.mark.asyncio
async def test_clock_in_then_out(mutations, attendance_repo):
    opened = await mutations.clock_in("u-tm1", now=datetime(2026, 3, 11, 8, 0))
    assert opened.session.status == SessionStatus.OPEN
    assert opened.session.worked_duration == "Incomplete"
    assert attendance_repo.document("u-tm1", "2026-03")["days"]["11"]["isClockedIn"] is True

    with pytest.raises(ValidationError) as exc:
        await mutations.clock_in("u-tm1", now=datetime(2026, 3, 11, 9, 0))
    assert exc.value.reason == ValidationReason.ALREADY_CLOCKED_IN

    closed = await mutations.clock_out("u-tm1", now=datetime(2026, 3, 11, 16, 0))
    assert closed.ref.index == 0
    assert closed.session.session_id == opened.session.session_id
    assert closed.session.worked_duration == "7h 30m"
    day = attendance_repo.document("u-tm1", "2026-03")["days"]["11"]
    assert day["isClockedIn"] is False
    assert day["sessions"][0]["status"] == "closed"


@pytest.mark.asyncio
async def test_clock_out_closes_previous_days_shift(mutations, attendance_repo):
    await mutations.clock_in("u-tm1", now=datetime(2026, 2, 28, 22, 0))

    closed = await mutations.clock_out("u-tm1", now=datetime(2026, 3, 1, 6, 0))

    assert closed.ref == SessionRef("u-tm1", "2026-02", "28", 0, closed.session.session_id)
    assert closed.session.worked_duration == "7h 30m"
    assert attendance_repo.document("u-tm1", "2026-03") is None


@pytest.mark.asyncio
async def test_clock_out_without_open_session(mutations):
    with pytest.raises(ValidationError) as exc:
        await mutations.clock_out("u-tm1")
    assert exc.value.reason == ValidationReason.NOT_CLOCKED_IN


@pytest.mark.asyncio
async def test_clock_in_unknown_employee(mutations):
    with pytest.raises(NotFoundError):
        await mutations.clock_in("ghost")


LEGACY_MONTH = {
    "days": {
        "10": {
            "isClockedIn": False,
            "sessions": [
                {
                    "checkIn": "2026-03-10T09:00:00",
                    "checkOut": "2026-03-10T17:00:00",
                    "worked_hours": "7h 30m",
                    "editedBy": "Admin",
                    "checkInEdited": False,
                    "checkOutEdited": False,
                }
            ],
        }
    },
    "metadata": {"created": "2026-03-10T17:00:00", "lastUpdated": "2026-03-10T17:00:00"},
}


@pytest.mark.asyncio
async def test_session_stored_without_id_is_editable_from_roster_row(mutations, queries, attendance_repo):
    attendance_repo.seed_document("u-tm1", "2026-03", LEGACY_MONTH)

    rows = await queries.daily_roster_view(TUESDAY, Role.ADMIN)
    assert rows[0].session_ref.session_id is None

    result = await mutations.edit(rows[0].session_ref, "09:00", "16:00", "admin")

    assert result.session.worked_duration == "6h 30m"
    stored = attendance_repo.document("u-tm1", "2026-03")["days"]["10"]["sessions"][0]
    assert stored["sessionId"] == result.session.session_id == result.ref.session_id
    assert stored["checkOutEdited"] is True

    # From now on the id is stable between reads.
    again = await queries.daily_roster_view(TUESDAY, Role.ADMIN)
    assert again[0].session_ref == result.ref


@pytest.mark.asyncio
async def test_session_stored_without_id_is_deletable_from_roster_row(mutations, queries, attendance_repo):
    attendance_repo.seed_document("u-tm1", "2026-03", LEGACY_MONTH)
    rows = await queries.daily_roster_view(TUESDAY, Role.ADMIN)

    await mutations.delete(rows[0].session_ref, Role.ADMIN)

    assert attendance_repo.document("u-tm1", "2026-03")["days"] == {}


@pytest.mark.asyncio
async def test_edit_of_instants_stored_with_utc_offset(mutations, attendance_repo):
    check_in = datetime(2026, 3, 10, 9, 0).astimezone()
    check_out = datetime(2026, 3, 10, 17, 0).astimezone()
    attendance_repo.seed_document(
        "u-tm1",
        "2026-03",
        {
            "days": {
                "10": {
                    "isClockedIn": False,
                    "sessions": [{"checkIn": check_in.isoformat(), "checkOut": check_out.isoformat()}],
                }
            },
            "metadata": {},
        },
    )

    result = await mutations.edit(SessionRef("u-tm1", "2026-03", "10", 0), "09:00", "16:00", Role.ADMIN)

    assert result.session.check_in == datetime(2026, 3, 10, 9, 0)
    assert result.session.check_out == datetime(2026, 3, 10, 16, 0)
    assert result.session.check_in_edited is False
    assert result.session.check_out_edited is True
