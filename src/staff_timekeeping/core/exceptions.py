from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates timing rules.

    `reason` carries a ValidationReason so callers can attach the message to
    the right form field.
    """

    def __init__(self, message: str, *, reason: Optional[object] = None):
        super().__init__(message)
        self.reason = reason


class ForbiddenError(DomainError):
    """Raised when a role lacks permission for an action on a date."""


class NotFoundError(DomainError):
    """Raised when a referenced employee/month/day/session is absent."""


class StoreError(DomainError):
    """Raised when the underlying document store call fails."""


class ConcurrentUpdateError(StoreError):
    """Raised when a month record changed between read and write."""
