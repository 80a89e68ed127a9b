from __future__ import annotations

from enum import Enum

from .exceptions import ValidationError


class Role(str, Enum):
    """Staff roles used for permission checks."""

    ADMIN = "admin"
    MANAGER = "manager"
    TEAMLEADER = "teamleader"
    TEAMMEMBER = "teammember"

    @classmethod
    def parse(cls, value) -> "Role":
        """Convert a free-form role string from the outside world.

        Stored documents and sessions mix "Admin", "admin " and "teamLeader";
        everything past this point compares enum members only.
        """

        if isinstance(value, Role):
            return value
        normalized = str(value or "").strip().lower().replace("_", "").replace(" ", "")
        try:
            return cls(normalized)
        except ValueError:
            raise ValidationError(f"Unknown role: {value!r}", reason=ValidationReason.UNKNOWN_ROLE) from None


STAFF_ROLES = frozenset(Role)


class SessionStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class SortField(str, Enum):
    DATE = "date"
    CHECK_IN = "checkIn"
    CHECK_OUT = "checkOut"
    DURATION = "duration"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class Action(str, Enum):
    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"


class ValidationReason(str, Enum):
    """Named failure reasons reported with a ValidationError."""

    MISSING_EMPLOYEE = "missing_employee"
    MISSING_CHECK_IN = "missing_check_in"
    MISSING_CHECK_OUT = "missing_check_out"
    BAD_SHIFT_SPAN = "bad_shift_span"
    CHECK_OUT_IN_FUTURE = "check_out_in_future"
    CHECK_IN_IN_FUTURE = "check_in_in_future"
    CHECK_OUT_BEFORE_CHECK_IN = "check_out_before_check_in"
    BAD_TIME_FORMAT = "bad_time_format"
    BAD_DATE_FORMAT = "bad_date_format"
    BAD_SESSION_REF = "bad_session_ref"
    UNKNOWN_ROLE = "unknown_role"
    ALREADY_CLOCKED_IN = "already_clocked_in"
    NOT_CLOCKED_IN = "not_clocked_in"
    INVALID_VALUE = "invalid_value"
