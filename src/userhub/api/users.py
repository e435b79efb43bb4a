"""User administration API: admin-only CRUD on user accounts.

Learn: Every route declares the Permission it needs; require_permission
authenticates first (401) and then checks the role policy (403).
"""

from typing import Literal

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.api.payload import ok, parse, read_payload
from userhub.auth.dependencies import require_permission
from userhub.auth.permissions import Permission
from userhub.db.engine import get_db
from userhub.errors import AppError
from userhub.schemas.user import UserRead, UserUpdate
from userhub.services import uploads
from userhub.services.user_service import MAX_PAGE, UserService, parse_user_id

router = APIRouter(prefix="/users")


def _read(user) -> dict:
    return UserRead.model_validate(user).model_dump(mode="json")


@router.get("", dependencies=[Depends(require_permission(Permission.USERS_LIST))])
async def list_users(
    page: int = Query(1, ge=1, le=MAX_PAGE),
    limit: int = Query(10, ge=1, le=100),
    sort: Literal["name", "email", "created_at", "state", "city"] = "created_at",
    order: Literal["asc", "desc"] = "desc",
    search: str = "",
    state: str = "",
    city: str = "",
    db: AsyncSession = Depends(get_db),
):
    """Paginated, sortable, filterable user listing."""
    users, pagination = await UserService(db).list_users(
        page=page,
        limit=limit,
        sort=sort,
        order=order,
        search=search.strip(),
        state=state.strip(),
        city=city.strip(),
    )
    return ok(
        data={
            "users": [_read(u) for u in users],
            "pagination": pagination.model_dump(),
        }
    )


@router.get("/{user_id}", dependencies=[Depends(require_permission(Permission.USERS_READ))])
async def get_user(user_id: str, db: AsyncSession = Depends(get_db)):
    user = await UserService(db).get_user(parse_user_id(user_id))
    return ok(data={"user": _read(user)})


@router.put("/{user_id}", dependencies=[Depends(require_permission(Permission.USERS_UPDATE))])
async def update_user(
    user_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Partial update; accepts JSON or form data (multipart for a new image)."""
    uid = parse_user_id(user_id)
    fields, image = await read_payload(request)
    body = parse(UserUpdate, fields)

    profile_image = await uploads.save_image(image) if image else None
    try:
        user = await UserService(db).update_user(uid, body, profile_image=profile_image)
    except AppError:
        uploads.delete_image(profile_image)
        raise

    return ok("User updated successfully", {"user": _read(user)})


@router.delete("/{user_id}", dependencies=[Depends(require_permission(Permission.USERS_DELETE))])
async def delete_user(user_id: str, db: AsyncSession = Depends(get_db)):
    await UserService(db).delete_user(parse_user_id(user_id))
    return ok("User deleted successfully")
