"""FastAPI application factory.

Learn: App factory pattern: create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown. Middleware, CORS, exception
handlers, the /uploads static mount, and routers are all registered here.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from userhub import __version__
from userhub.api import api_router
from userhub.api.payload import error_entries
from userhub.config import settings
from userhub.errors import AppError, ValidationFailed

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    logger.info(
        "userhub.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    # StaticFiles refuses to serve from a missing directory.
    from userhub.services.uploads import upload_root
    upload_root()

    yield

    logger.info("userhub.shutdown")

    from userhub.db.engine import engine
    await engine.dispose()


# ── Exception handlers ───────────────────────────────────────


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render a typed error as the failure envelope."""
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    if exc.status_code >= 500:
        logger.error("request.failed", path=request.url.path, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_envelope(),
        headers=headers,
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Query/path parameter errors are reported like body validation errors (400)."""
    return await app_error_handler(
        request, ValidationFailed(errors=error_entries(exc.errors()))
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log it and return a generic 500 envelope."""
    logger.exception("request.unhandled_error", path=request.url.path)
    content = {"success": False, "message": "Server error"}
    if settings.is_development:
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="userhub",
        description="Admin user management: JWT auth, role-gated user CRUD",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → CORS → handler

    from userhub.middleware.request_id import RequestIdMiddleware
    from userhub.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Mount API routes
    app.include_router(api_router)

    # Uploaded profile images
    app.mount(
        "/uploads",
        StaticFiles(directory=settings.upload_dir, check_dir=False),
        name="uploads",
    )

    return app


# Default app instance (used by uvicorn: userhub.main:app)
app = create_app()
