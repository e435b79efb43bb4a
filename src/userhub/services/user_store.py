"""Credential store: persistence for users and their refresh token.

Learn: Every method here is a single statement against one row, so each
is atomic at the database. The refresh-token field is the only session
state in the system; there is no in-memory session table. Rotation is a
conditional UPDATE (compare-and-replace): if two requests race with the
same refresh token, exactly one UPDATE matches and the other sees zero
rows changed.
"""

import uuid
from typing import Any, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.db.models import User
from userhub.errors import DuplicateIdentity


class UserStore:
    """Row-level access to the users table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_email_or_phone(
        self, email: Optional[str] = None, phone: Optional[str] = None
    ) -> User | None:
        """Find a user matching either identifier. Both None matches nothing."""
        clauses = []
        if email:
            clauses.append(User.email == email)
        if phone:
            clauses.append(User.phone == phone)
        if not clauses:
            return None
        result = await self.db.execute(select(User).where(or_(*clauses)))
        return result.scalars().first()

    async def find_conflict(
        self,
        email: Optional[str],
        phone: Optional[str],
        exclude_id: uuid.UUID,
    ) -> User | None:
        """Find another user already holding `email` or `phone`."""
        clauses = []
        if email:
            clauses.append(User.email == email)
        if phone:
            clauses.append(User.phone == phone)
        if not clauses:
            return None
        result = await self.db.execute(
            select(User).where(or_(*clauses), User.id != exclude_id)
        )
        return result.scalars().first()

    async def find_by_id(self, user_id: uuid.UUID) -> User | None:
        result = await self.db.execute(
            select(User).where(User.id == user_id).execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def create(self, **fields: Any) -> User:
        """Insert a user. Unique email/phone violations become DuplicateIdentity."""
        user = User(**fields)
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateIdentity()
        await self.db.refresh(user)
        return user

    async def update_fields(self, user: User, changes: dict[str, Any]) -> User:
        for key, value in changes.items():
            setattr(user, key, value)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateIdentity("Email or phone already exists")
        await self.db.refresh(user)
        return user

    async def delete(self, user: User) -> None:
        await self.db.delete(user)
        await self.db.commit()

    async def update_refresh_token(
        self, user_id: uuid.UUID, token: Optional[str]
    ) -> bool:
        """Unconditionally set (or clear, with None) the stored refresh token.

        Returns False if no such user exists.
        """
        result = await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(refresh_token=token)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount == 1

    async def rotate_refresh_token(
        self, user_id: uuid.UUID, expected: str, replacement: str
    ) -> bool:
        """Replace the stored refresh token only if it still equals `expected`.

        Returns False when the stored token differs (already rotated,
        cleared by logout, superseded by a later login) or the user is gone.
        """
        result = await self.db.execute(
            update(User)
            .where(User.id == user_id, User.refresh_token == expected)
            .values(refresh_token=replacement)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount == 1
