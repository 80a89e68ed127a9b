from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta

from ..core.constants import LONG_SHIFT_BREAK, LONG_SHIFT_THRESHOLD, SHORT_SHIFT_BREAK, SHORT_SHIFT_THRESHOLD


class BreakPolicy(ABC):
    """Break deduction interface (Strategy Pattern for worked time)."""

    @abstractmethod
    def deduction(self, duration: timedelta) -> timedelta:
        raise NotImplementedError


class StandardBreakPolicy(BreakPolicy):
    """Standard rule: >= 12h30 loses 1h, >= 4h30 loses 30 minutes."""

    def deduction(self, duration: timedelta) -> timedelta:
        if duration >= LONG_SHIFT_THRESHOLD:
            return LONG_SHIFT_BREAK
        if duration >= SHORT_SHIFT_THRESHOLD:
            return SHORT_SHIFT_BREAK
        return timedelta(0)
