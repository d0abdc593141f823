from __future__ import annotations

from app.models.enums import ORGANIZER_ROLES, PRIVILEGED_ROLES
from app.services.errors import NotOrganizer


def is_privileged(user) -> bool:
    return user.role in PRIVILEGED_ROLES


def is_organizer(user, event) -> bool:
    """Event creator or a privileged staff/admin role."""
    if user is None or event is None:
        return False
    if event.created_by_user_id == user.id:
        return True
    return is_privileged(user)


def ensure_organizer(user, event) -> None:
    if not is_organizer(user, event):
        raise NotOrganizer()


def ensure_organizer_role(user) -> None:
    if user.role not in ORGANIZER_ROLES:
        raise NotOrganizer("Organizer role required")
