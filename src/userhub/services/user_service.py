"""User service: admin operations on user accounts.

Learn: Service layer separates business logic from HTTP routing.
API routes call services, services call the database. Role checks are
not done here; routes gate every call through the permission policy
before a UserService method runs.
"""

import math
import uuid
from typing import Optional

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.db.models import User
from userhub.errors import DuplicateIdentity, NotFound, ValidationFailed
from userhub.schemas.user import Pagination, UserUpdate
from userhub.services import uploads
from userhub.services.user_store import UserStore

logger = structlog.get_logger()

SORTABLE_FIELDS = {
    "name": User.name,
    "email": User.email,
    "created_at": User.created_at,
    "state": User.state,
    "city": User.city,
}

# Keeps (page - 1) * limit inside a 64-bit OFFSET.
MAX_PAGE = 10**9


def _contains(term: str) -> str:
    """ILIKE pattern matching `term` literally anywhere in the column."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def parse_user_id(raw: str) -> uuid.UUID:
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise ValidationFailed("Invalid user ID")


class UserService:
    """Business logic for user administration."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = UserStore(db)

    async def list_users(
        self,
        page: int = 1,
        limit: int = 10,
        sort: str = "created_at",
        order: str = "desc",
        search: str = "",
        state: str = "",
        city: str = "",
    ) -> tuple[list[User], Pagination]:
        """One page of users, filtered and sorted, plus pagination info.

        `search` matches name or email; `state` and `city` are
        case-insensitive substring filters.
        """
        filters = []
        if search:
            pattern = _contains(search)
            filters.append(
                or_(
                    User.name.ilike(pattern, escape="\\"),
                    User.email.ilike(pattern, escape="\\"),
                )
            )
        if state:
            filters.append(User.state.ilike(_contains(state), escape="\\"))
        if city:
            filters.append(User.city.ilike(_contains(city), escape="\\"))

        column = SORTABLE_FIELDS[sort]
        ordering = column.asc() if order == "asc" else column.desc()

        result = await self.db.execute(
            select(User)
            .where(*filters)
            .order_by(ordering, User.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        users = list(result.scalars().all())

        total = await self.db.scalar(
            select(func.count()).select_from(User).where(*filters)
        )
        pagination = Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit),
        )
        return users, pagination

    async def get_user(self, user_id: uuid.UUID) -> User:
        user = await self.store.find_by_id(user_id)
        if not user:
            raise NotFound()
        return user

    async def update_user(
        self,
        user_id: uuid.UUID,
        body: UserUpdate,
        profile_image: Optional[str] = None,
    ) -> User:
        """Apply a partial update. A new image replaces (and deletes) the old one."""
        user = await self.get_user(user_id)
        changes = body.changes()

        if changes.get("email") or changes.get("phone"):
            conflict = await self.store.find_conflict(
                changes.get("email"), changes.get("phone"), exclude_id=user.id
            )
            if conflict:
                raise DuplicateIdentity("Email or phone already exists")

        old_image = None
        if profile_image:
            old_image = user.profile_image
            changes["profile_image"] = profile_image

        user = await self.store.update_fields(user, changes)
        if old_image:
            uploads.delete_image(old_image)

        logger.info("users.updated", user_id=str(user.id), fields=sorted(changes))
        return user

    async def delete_user(self, user_id: uuid.UUID) -> None:
        user = await self.get_user(user_id)
        image = user.profile_image
        await self.store.delete(user)
        uploads.delete_image(image)
        logger.info("users.deleted", user_id=str(user_id))
