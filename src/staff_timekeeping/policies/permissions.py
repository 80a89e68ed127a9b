from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union

from ..core.enums import Action, Role
from ..core.exceptions import ForbiddenError
from .edit_window import EditableWindow, compute_editable_window, is_date_editable


@dataclass(frozen=True)
class Permissions:
    can_add: bool = False
    can_edit: bool = False
    can_delete: bool = False

    @property
    def can_see_actions_column(self) -> bool:
        return self.can_edit or self.can_delete

    def allows(self, action: Action) -> bool:
        return {
            Action.ADD: self.can_add,
            Action.EDIT: self.can_edit,
            Action.DELETE: self.can_delete,
        }[action]

    def require(self, action: Action, *, role: Role, target_date: date) -> None:
        if not self.allows(action):
            raise ForbiddenError(f"{role.value} may not {action.value} attendance for {target_date:%Y-%m-%d}")

    def to_dict(self) -> dict:
        return {
            "canAdd": self.can_add,
            "canEdit": self.can_edit,
            "canDelete": self.can_delete,
            "canSeeActionsColumn": self.can_see_actions_column,
        }


NO_PERMISSIONS = Permissions()


def authorize(
    role: Union[Role, str],
    target_date: Union[date, datetime],
    today: Union[date, datetime],
    *,
    window: Optional[EditableWindow] = None,
) -> Permissions:
    """Role x date -> allowed session actions.

    Admins may add/edit/delete anything inside the editable window.
    Managers may only edit today's sessions. Team leaders and team members
    are view-only (team members additionally see only their own rows, which
    the query layer enforces).
    """

    role = Role.parse(role)
    if isinstance(target_date, datetime):
        target_date = target_date.date()
    if isinstance(today, datetime):
        today = today.date()

    if role is Role.ADMIN:
        window = window or compute_editable_window(today)
        allowed = is_date_editable(target_date, window)
        return Permissions(can_add=allowed, can_edit=allowed, can_delete=allowed)

    if role is Role.MANAGER:
        return Permissions(can_edit=target_date == today)

    return NO_PERMISSIONS
