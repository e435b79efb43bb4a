"""userhub CLI: run the API server and bootstrap admin accounts.

Usage:
    userhub serve                                # uvicorn on USERHUB_HOST:USERHUB_PORT
    userhub serve --reload                       # auto-reload for development
    userhub create-admin --email a@x.com ...     # prompts for anything missing

Registration through the API always creates role "user", so the first
admin has to be created here (or promoted by another admin).
"""

from __future__ import annotations

import asyncio

import click
from pydantic import ValidationError

from userhub.api.payload import error_entries
from userhub.config import settings


def _fail(message: str) -> None:
    click.secho(f"Error: {message}", fg="red", err=True)
    raise SystemExit(1)


@click.group()
@click.version_option(package_name="userhub")
def cli():
    """userhub: admin user-management backend."""


@cli.command()
@click.option("--host", default=None, help="Bind address (default: USERHUB_HOST).")
@click.option("--port", default=None, type=int, help="Port (default: USERHUB_PORT).")
@click.option("--reload", is_flag=True, help="Reload on code changes.")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the API server with uvicorn."""
    import uvicorn

    uvicorn.run(
        "userhub.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@cli.command("create-admin")
@click.option("--name", prompt=True)
@click.option("--email", prompt=True)
@click.option("--phone", prompt=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--state", prompt=True)
@click.option("--city", prompt=True)
@click.option("--country", prompt=True)
@click.option("--pincode", prompt=True)
@click.option("--address", default="", show_default=False)
def create_admin(**fields):
    """Create a user with the admin role."""
    from userhub.schemas.user import UserCreate

    try:
        body = UserCreate.model_validate(fields)
    except ValidationError as e:
        for entry in error_entries(e.errors()):
            click.secho(f"  {entry['field']}: {entry['message']}", fg="red", err=True)
        _fail("invalid admin details")

    user_id = asyncio.run(_create_admin(body))
    click.secho(f"Created admin {body.email} ({user_id})", fg="green")


async def _create_admin(body) -> str:
    from userhub.auth.password import hash_password
    from userhub.db.engine import async_session_factory, engine
    from userhub.db.models import Role
    from userhub.errors import DuplicateIdentity
    from userhub.services.user_store import UserStore

    try:
        async with async_session_factory() as session:
            store = UserStore(session)
            if await store.find_by_email_or_phone(body.email, body.phone):
                _fail("a user with this email or phone already exists")
            try:
                user = await store.create(
                    **body.profile_fields(),
                    password_hash=hash_password(body.password),
                    role=Role.ADMIN,
                )
            except DuplicateIdentity as e:
                _fail(e.message)
            return str(user.id)
    finally:
        await engine.dispose()


def main():
    cli()


if __name__ == "__main__":
    main()
