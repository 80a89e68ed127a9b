"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime

import pytest

from fakes import InMemoryAttendance, InMemoryEmployees
from staff_timekeeping.attendance.mutation_service import MutationService
from staff_timekeeping.attendance.query_service import AttendanceQueryService
from staff_timekeeping.core.enums import Role
from staff_timekeeping.users.model import Employee

# Wednesday
NOW = datetime(2026, 3, 11, 18, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def staff():
    return [
        Employee("u-admin", "Alice Admin", Role.ADMIN, "E001"),
        Employee("u-mgr", "Mark Manager", Role.MANAGER, "E002"),
        Employee("u-lead", "Lena Lead", Role.TEAMLEADER, "E003"),
        Employee("u-tm1", "Tom Member", Role.TEAMMEMBER, "E004"),
        Employee("u-tm2", "Tina Member", Role.TEAMMEMBER, "E005"),
    ]


@pytest.fixture
def attendance_repo():
    return InMemoryAttendance()


@pytest.fixture
def employees_repo(staff):
    return InMemoryEmployees(staff)


@pytest.fixture
def mutations(attendance_repo, employees_repo, now):
    return MutationService(attendance_repo, employees_repo, clock=lambda: now)


@pytest.fixture
def queries(attendance_repo, employees_repo):
    return AttendanceQueryService(attendance_repo, employees_repo)
