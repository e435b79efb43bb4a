"""Auth API: registration, login, token refresh, logout.

Learn: Routes for the session lifecycle:
- POST /auth/register → create account (role "user") + first token pair
- POST /auth/login → email or phone + password → token pair
- POST /auth/refresh → refresh token → new pair; the old one stops working
- POST /auth/logout → clear the stored refresh token (needs access token)
- GET /auth/me → current user info

Tokens travel in the response body, never in cookies. Clients send the
access token back as "Authorization: Bearer <token>".
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.api.payload import ok, parse, read_payload
from userhub.auth.dependencies import require_permission
from userhub.auth.permissions import Permission
from userhub.db.engine import get_db
from userhub.db.models import User
from userhub.errors import AppError
from userhub.schemas.auth import LoginRequest, RefreshRequest
from userhub.schemas.user import UserCreate, UserRead
from userhub.services import uploads
from userhub.services.auth_service import AuthService

router = APIRouter(prefix="/auth")


# ─── Register ────────────────────────────────────────────


@router.post("/register", status_code=201)
async def register(request: Request, db: AsyncSession = Depends(get_db)):
    """Create a new user account and log it in."""
    fields, image = await read_payload(request)
    body = parse(UserCreate, fields)

    profile_image = await uploads.save_image(image) if image else None
    try:
        result = await AuthService(db).register(body, profile_image=profile_image)
    except AppError:
        uploads.delete_image(profile_image)
        raise

    return ok("User registered successfully", result.model_dump(mode="json"))


# ─── Login ───────────────────────────────────────────────


@router.post("/login")
async def login(request: Request, db: AsyncSession = Depends(get_db)):
    """Login with email or phone and password → JWT tokens."""
    fields, _ = await read_payload(request)
    body = parse(LoginRequest, fields)

    result = await AuthService(db).login(
        body.password, email=body.email, phone=body.phone
    )
    return ok("Login successful", result.model_dump(mode="json"))


# ─── Refresh ────────────────────────────────────────────


@router.post("/refresh")
async def refresh(request: Request, db: AsyncSession = Depends(get_db)):
    """Exchange a refresh token for a new access + refresh token pair."""
    fields, _ = await read_payload(request)
    body = parse(RefreshRequest, fields)

    pair = await AuthService(db).refresh(body.refresh_token)
    return ok(data=pair.model_dump(mode="json"))


# ─── Logout ─────────────────────────────────────────────


@router.post("/logout")
async def logout(
    user: User = Depends(require_permission(Permission.SESSION_LOGOUT)),
    db: AsyncSession = Depends(get_db),
):
    """End the current session by clearing the stored refresh token."""
    await AuthService(db).logout(user.id)
    return ok("Logged out successfully")


# ─── Current user ───────────────────────────────────────


@router.get("/me")
async def get_me(user: User = Depends(require_permission(Permission.PROFILE_READ))):
    """Get the current authenticated user's info."""
    return ok(data={"user": UserRead.model_validate(user).model_dump(mode="json")})
