from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .attendance.debounce import RosterViewLoader
from .attendance.mutation_service import MutationService
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.query_service import AttendanceQueryService
from .attendance.repository import AttendanceRepository
from .common.validators import require_non_negative
from .core.constants import DEFAULT_DEBOUNCE_SECONDS
from .database.connection import DatabaseConnection, DBConfig
from .users.mysql_employee_repository import MySQLEmployeeRepository
from .users.repository import EmployeeDirectory


@dataclass(frozen=True)
class Container:
    attendance_repo: AttendanceRepository
    employees_repo: EmployeeDirectory

    mutation_service: MutationService
    query_service: AttendanceQueryService

    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    conn: Optional[DatabaseConnection] = None

    _roster_loaders: dict[str, RosterViewLoader] = field(default_factory=dict, repr=False, compare=False)

    def new_roster_loader(self) -> RosterViewLoader:
        return RosterViewLoader(self.query_service, delay=self.debounce_seconds)

    def roster_loader_for(self, viewer_id: str) -> RosterViewLoader:
        """One loader per viewer; it tracks that viewer's latest request."""
        loader = self._roster_loaders.get(viewer_id)
        if loader is None:
            loader = self._roster_loaders.setdefault(viewer_id, self.new_roster_loader())
        return loader


def wire(
    attendance_repo: AttendanceRepository,
    employees_repo: EmployeeDirectory,
    *,
    max_concurrency: int = 0,
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    conn: Optional[DatabaseConnection] = None,
) -> Container:
    return Container(
        attendance_repo=attendance_repo,
        employees_repo=employees_repo,
        mutation_service=MutationService(attendance_repo, employees_repo),
        query_service=AttendanceQueryService(
            attendance_repo,
            employees_repo,
            max_concurrency=require_non_negative(max_concurrency, "ROSTER_MAX_CONCURRENCY"),
        ),
        debounce_seconds=float(debounce_seconds),
        conn=conn,
    )


def build_container(
    *,
    db_config: dict,
    max_concurrency: int = 0,
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_mapping(db_config))
    return wire(
        MySQLAttendanceRepository(conn),
        MySQLEmployeeRepository(conn),
        max_concurrency=max_concurrency,
        debounce_seconds=debounce_seconds,
        conn=conn,
    )
