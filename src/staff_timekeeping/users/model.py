from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class Employee:
    """Domain entity: staff member as exposed by the employee directory.

    Read-only here; user management lives in another service.
    """

    employee_id: str
    display_name: str
    role: Role
    employee_code: Optional[str] = None
