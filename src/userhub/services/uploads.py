"""Profile-image uploads.

Learn: Images are written to settings.upload_dir under a random name and
served back by the static mount at /uploads. The rest of the app only ever
sees the "/uploads/<file>" path string stored on the user row.
"""

import uuid
from pathlib import Path
from typing import Optional

import structlog
from starlette.datastructures import UploadFile

from userhub.config import settings
from userhub.errors import ValidationFailed

logger = structlog.get_logger()

URL_PREFIX = "/uploads/"
ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".webp"}
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}
CHUNK_SIZE = 64 * 1024


def upload_root() -> Path:
    root = Path(settings.upload_dir)
    root.mkdir(parents=True, exist_ok=True)
    return root


async def save_image(file: UploadFile) -> str:
    """Validate and store an uploaded image; return its public path."""
    ext = Path(file.filename or "").suffix.lower()
    if ext not in ALLOWED_EXTENSIONS or (
        file.content_type and file.content_type not in ALLOWED_CONTENT_TYPES
    ):
        raise ValidationFailed.for_field(
            "profile_image", "Only image files are allowed (jpeg, jpg, png, gif, webp)"
        )

    # Reading stops one chunk past the limit.
    content = bytearray()
    while len(content) <= settings.max_upload_bytes:
        chunk = await file.read(CHUNK_SIZE)
        if not chunk:
            break
        content += chunk
    if len(content) > settings.max_upload_bytes:
        raise ValidationFailed.for_field(
            "profile_image",
            f"Image must not exceed {settings.max_upload_bytes} bytes",
        )

    filename = f"{uuid.uuid4().hex}{ext}"
    (upload_root() / filename).write_bytes(content)
    logger.info("uploads.saved", filename=filename, size=len(content))
    return URL_PREFIX + filename


def delete_image(path: Optional[str]) -> None:
    """Remove a previously saved image. Unknown or missing paths are ignored."""
    if not path or not path.startswith(URL_PREFIX):
        return
    # Only the bare file name is trusted, never directories from the stored path.
    target = upload_root() / Path(path[len(URL_PREFIX):]).name
    if target.is_file():
        target.unlink()
        logger.info("uploads.deleted", filename=target.name)
