from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence

from ..core.enums import Role
from .model import Employee


class EmployeeDirectory(Protocol):
    """Read-only view of the external user-management collaborator."""

    async def list_employees(self, role_filter: Optional[Iterable[Role]] = None) -> Sequence[Employee]:
        raise NotImplementedError

    async def get_employee(self, employee_id: str) -> Optional[Employee]:
        raise NotImplementedError

    async def resolve_employee_id(self, employee_code: str) -> Optional[str]:
        raise NotImplementedError
