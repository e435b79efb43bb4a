"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Health and auth routers are open at the router level; individual
auth routes (logout, me) and every users route declare their own
require_permission dependency, so the role each one needs is visible
next to the handler.
"""

from fastapi import APIRouter

from userhub.api.auth import router as auth_router
from userhub.api.health import router as health_router
from userhub.api.users import router as users_router

api_router = APIRouter(prefix="/api")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(users_router, tags=["users"])
