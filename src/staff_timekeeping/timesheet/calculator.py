"""Worked-duration arithmetic for check-in/check-out sessions.

Durations travel as display strings ("7h 30m") because that is what the
month documents cache; `parse_worked_duration_to_minutes` turns them back
into numbers for sorting and totals.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

from ..core.constants import DURATION_INCOMPLETE, DURATION_INVALID, MAX_SESSION_DURATION
from .break_policy import BreakPolicy, StandardBreakPolicy

_DURATION_RE = re.compile(r"^\s*(-?\d+)\s*h\s+(-?\d+)\s*m\s*$")

_DEFAULT_POLICY = StandardBreakPolicy()


def compute_worked_duration(
    check_in: Optional[datetime],
    check_out: Optional[datetime],
    *,
    policy: Optional[BreakPolicy] = None,
) -> str:
    if not check_in or not check_out:
        return DURATION_INCOMPLETE
    if check_out < check_in:
        return DURATION_INVALID

    duration = min(check_out - check_in, MAX_SESSION_DURATION)
    duration -= (policy or _DEFAULT_POLICY).deduction(duration)

    total_minutes = int(duration.total_seconds() // 60)
    return format_minutes(total_minutes)


def format_minutes(total_minutes: int) -> str:
    hours, minutes = divmod(int(total_minutes), 60)
    return f"{hours}h {minutes}m"


def parse_worked_duration_to_minutes(text) -> int:
    """Inverse of format_minutes. Anything unparsable counts as 0."""

    if not isinstance(text, str):
        return 0
    match = _DURATION_RE.match(text)
    if not match:
        return 0
    hours, minutes = int(match.group(1)), int(match.group(2))
    return hours * 60 + minutes
