"""Request body parsing and the response envelope.

Learn: Auth and user endpoints accept JSON, urlencoded forms, or
multipart forms (needed for profile_image uploads). read_payload()
normalizes all three to a plain dict plus an optional UploadFile, and
parse() runs the dict through a Pydantic model, turning its errors into
ValidationFailed with one {field, message} entry per problem.

Every response body uses the same envelope:
    {"success": bool, "message"?: str, "data"?: {...}, "errors"?: [...]}
"""

from typing import Any, Optional, TypeVar

from fastapi import Request
from pydantic import BaseModel, ValidationError
from starlette.datastructures import UploadFile

from userhub.errors import ValidationFailed

M = TypeVar("M", bound=BaseModel)

# Field-specific wording that replaces Pydantic's default message.
FIELD_MESSAGES = {
    "email": "Please provide a valid email",
}

FORM_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def ok(message: Optional[str] = None, data: Optional[dict[str, Any]] = None) -> dict:
    """Build a success envelope."""
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


def error_entries(errors: list[dict]) -> list[dict[str, str]]:
    """Convert Pydantic/FastAPI error dicts to [{field, message}]."""
    entries = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = loc[0] if loc else ""
        ctx = err.get("ctx") or {}
        if err.get("type") == "missing":
            message = f"{field.replace('_', ' ').capitalize()} is required"
        elif field in FIELD_MESSAGES:
            message = FIELD_MESSAGES[field]
        elif isinstance(ctx.get("error"), Exception):
            message = str(ctx["error"])
        else:
            message = err.get("msg", "Invalid value")
        entries.append({"field": field, "message": message})
    return entries


def parse(model: type[M], data: dict[str, Any]) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ValidationFailed(errors=error_entries(e.errors()))


async def read_payload(request: Request) -> tuple[dict[str, Any], Optional[UploadFile]]:
    """Read a JSON or form body. Returns (fields, profile_image upload)."""
    content_type = request.headers.get("content-type", "")

    if content_type.startswith(FORM_TYPES):
        form = await request.form()
        fields = {k: v for k, v in form.items() if not isinstance(v, UploadFile)}
        image = form.get("profile_image")
        if isinstance(image, UploadFile) and image.filename:
            return fields, image
        return fields, None

    raw = await request.body()
    if not raw:
        return {}, None
    if content_type and not content_type.startswith("application/json"):
        raise ValidationFailed(f"Unsupported content type: {content_type}")
    try:
        data = await request.json()
    except ValueError:
        raise ValidationFailed("Malformed JSON body")
    if not isinstance(data, dict):
        raise ValidationFailed("Request body must be a JSON object")
    return data, None
