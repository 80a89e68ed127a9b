from __future__ import annotations

from ..core.enums import ValidationReason
from ..core.exceptions import ValidationError


def require_present(value, field_name: str, reason: ValidationReason):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field_name} is required", reason=reason)
    return value.strip() if isinstance(value, str) else value


def require_non_negative(value: int, field_name: str) -> int:
    if value is None or int(value) < 0:
        raise ValidationError(f"{field_name} must be >= 0", reason=ValidationReason.INVALID_VALUE)
    return int(value)
