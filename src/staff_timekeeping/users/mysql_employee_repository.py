from __future__ import annotations

from typing import Iterable, Optional, Sequence

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, run_blocking
from .model import Employee
from .repository import EmployeeDirectory


class MySQLEmployeeRepository(EmployeeDirectory):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    async def list_employees(self, role_filter: Optional[Iterable[Role]] = None) -> Sequence[Employee]:
        roles = sorted(Role.parse(r).value for r in role_filter) if role_filter is not None else None
        return await run_blocking("list_employees", self._list_employees, roles)

    async def get_employee(self, employee_id: str) -> Optional[Employee]:
        return await run_blocking("get_employee", self._get_employee, str(employee_id))

    async def resolve_employee_id(self, employee_code: str) -> Optional[str]:
        return await run_blocking("resolve_employee_id", self._resolve_employee_id, str(employee_code))

    def _list_employees(self, roles: Optional[list[str]]) -> Sequence[Employee]:
        with db_cursor(self._conn_factory) as (_, cur):
            if roles is None:
                cur.execute("SELECT employee_id, display_name, role, employee_code FROM employees ORDER BY display_name")
            elif not roles:
                return []
            else:
                placeholders = ",".join(["%s"] * len(roles))
                cur.execute(
                    f"""
                    SELECT employee_id, display_name, role, employee_code
                    FROM employees
                    WHERE LOWER(role) IN ({placeholders})
                    ORDER BY display_name
                    """,
                    tuple(roles),
                )
            return [self._to_employee(r) for r in fetchall(cur)]

    def _get_employee(self, employee_id: str) -> Optional[Employee]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT employee_id, display_name, role, employee_code FROM employees WHERE employee_id=%s",
                (employee_id,),
            )
            r = fetchone(cur)
            return self._to_employee(r) if r else None

    def _resolve_employee_id(self, employee_code: str) -> Optional[str]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT employee_id FROM employees WHERE employee_code=%s", (employee_code,))
            r = fetchone(cur)
            return str(r["employee_id"]) if r else None

    @staticmethod
    def _to_employee(r: dict) -> Employee:
        return Employee(
            employee_id=str(r["employee_id"]),
            display_name=r["display_name"],
            role=Role.parse(r["role"]),
            employee_code=r.get("employee_code"),
        )
