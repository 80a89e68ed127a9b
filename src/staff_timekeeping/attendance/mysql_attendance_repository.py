from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Optional, Sequence

from ..core.exceptions import ConcurrentUpdateError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, run_blocking
from .model import MonthRecord
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


class MySQLAttendanceRepository(AttendanceRepository):
    """Month documents stored as JSON rows in `attendance_months`."""

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    async def get_month_record(self, employee_id: str, year_month: str) -> Optional[MonthRecord]:
        return await run_blocking("get_month_record", self._get_month_record, str(employee_id), year_month)

    async def put_month_record(
        self,
        employee_id: str,
        year_month: str,
        record: MonthRecord,
        *,
        expected_version: Optional[int] = None,
    ) -> int:
        return await run_blocking(
            "put_month_record",
            self._put_month_record,
            str(employee_id),
            year_month,
            record,
            expected_version,
        )

    async def list_year_months(self, employee_id: str) -> Sequence[str]:
        return await run_blocking("list_year_months", self._list_year_months, str(employee_id))

    def _get_month_record(self, employee_id: str, year_month: str) -> Optional[MonthRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT days, created, last_updated, version
                FROM attendance_months
                WHERE employee_id=%s AND month_key=%s
                """,
                (employee_id, year_month),
            )
            r = fetchone(cur)
            if not r:
                return None
            return self._to_record(r)

    def _put_month_record(
        self,
        employee_id: str,
        year_month: str,
        record: MonthRecord,
        expected_version: Optional[int],
    ) -> int:
        doc = record.to_document()
        days_json = json.dumps(doc["days"])
        created = record.created or datetime.now()
        last_updated = record.last_updated or created

        with db_cursor(self._conn_factory) as (_, cur):
            if expected_version is None:
                cur.execute(
                    """
                    INSERT INTO attendance_months(employee_id, month_key, days, created, last_updated, version)
                    VALUES(%s,%s,%s,%s,%s,1)
                    ON DUPLICATE KEY UPDATE
                        days=VALUES(days),
                        last_updated=VALUES(last_updated),
                        version=version + 1
                    """,
                    (employee_id, year_month, days_json, created, last_updated),
                )
                cur.execute(
                    "SELECT version FROM attendance_months WHERE employee_id=%s AND month_key=%s",
                    (employee_id, year_month),
                )
                return int(fetchone(cur)["version"])

            cur.execute(
                """
                UPDATE attendance_months
                SET days=%s, last_updated=%s, version=version + 1
                WHERE employee_id=%s AND month_key=%s AND version=%s
                """,
                (days_json, last_updated, employee_id, year_month, int(expected_version)),
            )
            # Version 0 is both "never written" and the column default for
            # rows created elsewhere; create the row only if none matched.
            if cur.rowcount == 0 and expected_version == 0:
                cur.execute(
                    """
                    INSERT IGNORE INTO attendance_months(employee_id, month_key, days, created, last_updated, version)
                    VALUES(%s,%s,%s,%s,%s,1)
                    """,
                    (employee_id, year_month, days_json, created, last_updated),
                )
            if cur.rowcount == 0:
                logger.warning(f"Version conflict on {employee_id}/{year_month} (expected v{expected_version})")
                raise ConcurrentUpdateError(
                    f"Attendance for {employee_id} {year_month} was changed by someone else; reload and retry"
                )
            return int(expected_version) + 1

    def _list_year_months(self, employee_id: str) -> Sequence[str]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT month_key FROM attendance_months WHERE employee_id=%s ORDER BY month_key",
                (employee_id,),
            )
            return [r["month_key"] for r in fetchall(cur)]

    @staticmethod
    def _to_record(r: dict) -> MonthRecord:
        days = r.get("days")
        if isinstance(days, (bytes, bytearray)):
            days = days.decode("utf-8")
        if isinstance(days, str):
            days = json.loads(days or "{}")
        record = MonthRecord.from_document({"days": days or {}, "version": r.get("version")})
        record.created = r.get("created")
        record.last_updated = r.get("last_updated")
        return record
