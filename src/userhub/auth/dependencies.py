"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to resolve and
check the caller. Order matters and is fixed by the dependency chain:

    require_permission(p) → get_current_user → Bearer header

so a missing or bad access token always fails with 401 before the role
policy is consulted, and a valid user with the wrong role gets 403.
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.auth.permissions import Permission, authorize
from userhub.db.engine import get_db
from userhub.db.models import User
from userhub.errors import Unauthenticated
from userhub.services.auth_service import AuthService


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return None


async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the Bearer access token to a user (401 if missing/invalid)."""
    token = _bearer_token(authorization)
    if not token:
        raise Unauthenticated("Not authorized, no token")
    return await AuthService(db).current_user(token)


def require_permission(permission: Permission):
    """Dependency factory: authenticated user whose role grants `permission`.

    Usage:
        user: User = Depends(require_permission(Permission.USERS_LIST))
    """

    async def dependency(user: User = Depends(get_current_user)) -> User:
        authorize(user, permission)
        return user

    return dependency
