"""Role-based permission policy.

Learn: Authorization is a lookup, not a chain of if/else. Each protected
operation names a Permission; POLICY says which roles may perform it.
Adding an operation means adding a row here, not touching route code.
"""

from enum import Enum

from userhub.db.models import Role, User
from userhub.errors import Forbidden


class Permission(str, Enum):
    """Operations that are gated by role."""

    # Own session / profile
    PROFILE_READ = "profile:read"
    SESSION_LOGOUT = "session:logout"

    # User administration
    USERS_LIST = "users:list"
    USERS_READ = "users:read"
    USERS_UPDATE = "users:update"
    USERS_DELETE = "users:delete"


_EVERYONE = frozenset(Role)
_ADMINS = frozenset({Role.ADMIN})

POLICY: dict[Permission, frozenset[Role]] = {
    Permission.PROFILE_READ: _EVERYONE,
    Permission.SESSION_LOGOUT: _EVERYONE,
    Permission.USERS_LIST: _ADMINS,
    Permission.USERS_READ: _ADMINS,
    Permission.USERS_UPDATE: _ADMINS,
    Permission.USERS_DELETE: _ADMINS,
}


def allowed_roles(permission: Permission) -> frozenset[Role]:
    # Unlisted permissions are closed to everyone.
    return POLICY.get(permission, frozenset())


def authorize(user: User, permission: Permission) -> None:
    """Raise Forbidden unless the user's role may perform `permission`.

    Pure function of (user.role, permission). Must only be called with a
    user that has already been authenticated.
    """
    if Role(user.role) not in allowed_roles(permission):
        raise Forbidden(
            f"User role {Role(user.role).value} is not authorized to access this route"
        )
