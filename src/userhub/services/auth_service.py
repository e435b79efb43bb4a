"""Auth service: register, login, refresh, logout.

Learn: Session state per user is just the refresh_token column:
- NULL            → logged out
- a token string  → logged in; that exact token is the only one accepted

Login overwrites the column, so each login ends every earlier session
(one active session per user, a product decision). Refresh swaps the
column with a compare-and-replace, so a refresh token works exactly once.
Logout clears it.

Every failure is raised as a typed error from userhub.errors; nothing
here retries or recovers.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.auth.jwt import (
    TokenError,
    create_access_token,
    create_refresh_token,
    verify_access_token,
    verify_refresh_token,
)
from userhub.auth.password import hash_password, verify_password
from userhub.db.models import Role, User
from userhub.errors import (
    DuplicateIdentity,
    InvalidCredentials,
    InvalidToken,
    Unauthenticated,
    ValidationFailed,
)
from userhub.schemas.auth import AuthResult, TokenPair
from userhub.schemas.user import UserCreate, UserRead
from userhub.services.user_store import UserStore

logger = structlog.get_logger()


def _parse_user_id(raw: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(raw)
    except (TypeError, ValueError):
        return None


class AuthService:
    """Token lifecycle on top of the credential store."""

    def __init__(self, db: AsyncSession):
        self.store = UserStore(db)

    # ─── Register ───────────────────────────────────────

    async def register(
        self, body: UserCreate, profile_image: Optional[str] = None
    ) -> AuthResult:
        """Create a user with role "user" and start its first session."""
        if await self.store.find_by_email_or_phone(body.email, body.phone):
            raise DuplicateIdentity()

        user = await self.store.create(
            **body.profile_fields(),
            password_hash=hash_password(body.password),
            role=Role.USER,
            profile_image=profile_image,
        )
        result = await self._start_session(user)
        logger.info("auth.registered", user_id=str(user.id))
        return result

    # ─── Login ──────────────────────────────────────────

    async def login(
        self,
        password: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> AuthResult:
        """Check credentials and replace any existing session."""
        if not email and not phone:
            raise ValidationFailed("Please provide either email or phone")

        # Email wins when both are given.
        if email:
            user = await self.store.find_by_email_or_phone(email=email)
        else:
            user = await self.store.find_by_email_or_phone(phone=phone)

        # Same error either way: don't reveal which accounts exist.
        if not user or not verify_password(password, user.password_hash):
            logger.info("auth.login_rejected")
            raise InvalidCredentials()

        result = await self._start_session(user)
        logger.info("auth.login", user_id=str(user.id))
        return result

    # ─── Refresh ────────────────────────────────────────

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new pair, invalidating the old one."""
        try:
            user_id = _parse_user_id(verify_refresh_token(refresh_token))
        except TokenError as e:
            logger.info("auth.refresh_rejected", reason=str(e))
            raise InvalidToken()
        if user_id is None:
            raise InvalidToken()

        access_token = create_access_token(str(user_id))
        new_refresh_token = create_refresh_token(str(user_id))

        rotated = await self.store.rotate_refresh_token(
            user_id, expected=refresh_token, replacement=new_refresh_token
        )
        if not rotated:
            # Superseded by a later login/refresh, cleared by logout,
            # or the user no longer exists.
            logger.info("auth.refresh_rejected", user_id=str(user_id), reason="not current")
            raise InvalidToken()

        return TokenPair(access_token=access_token, refresh_token=new_refresh_token)

    # ─── Logout ─────────────────────────────────────────

    async def logout(self, user_id: uuid.UUID) -> None:
        """Clear the stored refresh token. Safe to call repeatedly."""
        await self.store.update_refresh_token(user_id, None)
        logger.info("auth.logout", user_id=str(user_id))

    # ─── Access tokens ──────────────────────────────────

    async def current_user(self, access_token: str) -> User:
        """Resolve a Bearer access token to its user, or raise Unauthenticated."""
        try:
            user_id = _parse_user_id(verify_access_token(access_token))
        except TokenError:
            raise Unauthenticated()
        if user_id is None:
            raise Unauthenticated()

        user = await self.store.find_by_id(user_id)
        if not user:
            raise Unauthenticated()
        return user

    # ─── Internal ───────────────────────────────────────

    async def _start_session(self, user: User) -> AuthResult:
        user_read = UserRead.model_validate(user)
        access_token = create_access_token(str(user.id))
        refresh_token = create_refresh_token(str(user.id))
        await self.store.update_refresh_token(user.id, refresh_token)
        return AuthResult(
            user=user_read,
            access_token=access_token,
            refresh_token=refresh_token,
        )
