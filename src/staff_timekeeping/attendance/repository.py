from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import MonthRecord


class AttendanceRepository(Protocol):
    """Narrow async contract onto the document store.

    Note (DIP): services depend on this interface, never on a concrete store.
    There are no transactions; callers read-modify-write whole month records.
    """

    async def get_month_record(self, employee_id: str, year_month: str) -> Optional[MonthRecord]:
        raise NotImplementedError

    async def put_month_record(
        self,
        employee_id: str,
        year_month: str,
        record: MonthRecord,
        *,
        expected_version: Optional[int] = None,
    ) -> int:
        """Merge-write `days`/metadata and return the new version.

        When `expected_version` is given and the stored version differs,
        raise ConcurrentUpdateError and write nothing.
        """

        raise NotImplementedError

    async def list_year_months(self, employee_id: str) -> Sequence[str]:
        raise NotImplementedError
