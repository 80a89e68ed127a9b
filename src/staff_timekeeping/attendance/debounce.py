"""Coalesce bursts of roster requests (e.g. a user clicking through dates).

Each request waits out the debounce delay; only the newest request of a
burst fetches. Ordering is last-requested-wins: a result that belongs to a
request superseded while it was waiting or fetching is discarded and its
caller gets StaleResultError.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Optional, Union

from ..core.constants import DEFAULT_DEBOUNCE_SECONDS
from ..core.enums import Role
from .query_service import AttendanceQueryService, RosterRow

logger = logging.getLogger(__name__)


class StaleResultError(Exception):
    """The request was superseded by a newer one before its result arrived."""


class RosterViewLoader:
    def __init__(self, queries: AttendanceQueryService, *, delay: float = DEFAULT_DEBOUNCE_SECONDS):
        self._queries = queries
        self._delay = float(delay)
        self._generation = 0
        self._latest: Optional[list[RosterRow]] = None

    @property
    def latest(self) -> Optional[list[RosterRow]]:
        """Rows of the most recent request that completed without being superseded."""
        return self._latest

    async def request(
        self,
        day: date,
        caller_role: Union[Role, str],
        *,
        caller_employee_id: Optional[str] = None,
    ) -> list[RosterRow]:
        self._generation += 1
        generation = self._generation

        await asyncio.sleep(self._delay)
        if generation != self._generation:
            logger.debug(f"Roster request for {day:%Y-%m-%d} coalesced into a newer one")
            raise StaleResultError(f"Roster request for {day:%Y-%m-%d} was superseded")

        rows = await self._queries.daily_roster_view(day, caller_role, caller_employee_id=caller_employee_id)
        if generation != self._generation:
            logger.debug(f"Discarding stale roster for {day:%Y-%m-%d}")
            raise StaleResultError(f"Roster request for {day:%Y-%m-%d} was superseded")

        self._latest = rows
        return rows
