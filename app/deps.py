# app/deps.py

from enum import Enum

from app.errors import AuthorizationError
from app.models import User
from app.schemas import UserRole


class Capability(str, Enum):
    manage_categories = "manage_categories"
    manage_services = "manage_services"
    manage_availability = "manage_availability"
    book_services = "book_services"
    view_all_bookings = "view_all_bookings"
    view_reports = "view_reports"


ROLE_CAPABILITIES = {
    UserRole.admin: frozenset(Capability),
    UserRole.provider: frozenset({
        Capability.manage_services,
        Capability.manage_availability,
        Capability.book_services,
    }),
    UserRole.user: frozenset({Capability.book_services}),
}


def has_capability(user: User, capability: Capability) -> bool:
    try:
        role = UserRole(user.role)
    except ValueError:
        return False
    return capability in ROLE_CAPABILITIES[role]


def require_capability(user: User, capability: Capability) -> None:
    if not has_capability(user, capability):
        raise AuthorizationError(f"Role '{user.role}' may not {capability.value.replace('_', ' ')}")


def is_admin(user: User) -> bool:
    return user.role == UserRole.admin.value
