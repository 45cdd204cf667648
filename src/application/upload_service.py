"""Avatar image storage.

Uploaded images are streamed to ``settings.upload_dir`` under a generated name
and served back from the ``/uploads`` mount.
"""

import uuid
from pathlib import Path
from typing import Final, Protocol

from ..config import settings
from ..domain.exceptions import UpstreamError, ValidationError
from ..logging_config import get_logger
from ..metrics import record_user_operation

logger: Final = get_logger(__name__)

_CHUNK_SIZE: Final = 64 * 1024

# Accepted content types and the extension files are stored with
IMAGE_EXTENSIONS: Final = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


class Upload(Protocol):
    """The part of Starlette's ``UploadFile`` the service relies on."""

    filename: str | None
    content_type: str | None

    async def read(self, size: int = -1) -> bytes: ...


def _safe_join(root: Path, filename: str) -> Path:
    root_abs = root.resolve()
    path = (root_abs / filename).resolve()
    if path.parent != root_abs:
        raise ValueError("Path traversal detected")
    return path


def public_url(filename: str) -> str:
    base = settings.public_base_url.rstrip("/")
    return f"{base}/uploads/{filename}"


async def store_avatar(upload: Upload | None) -> str:
    """Save an uploaded image and return the URL it is served from.

    Raises:
        ValidationError: If no file was sent, it is not a supported image, or it
            exceeds ``settings.max_upload_bytes``
        UpstreamError: If the file cannot be written
    """
    if upload is None or not upload.filename:
        raise ValidationError("No file provided", field="file")

    extension = IMAGE_EXTENSIONS.get((upload.content_type or "").lower())
    if extension is None:
        logger.warning(
            "Upload rejected - unsupported type",
            content_type=upload.content_type,
            filename=upload.filename,
        )
        raise ValidationError("File must be a PNG, JPEG, GIF or WebP image", "file")

    upload_dir = Path(settings.upload_dir)
    filename = f"{uuid.uuid4().hex}{extension}"

    try:
        upload_dir.mkdir(parents=True, exist_ok=True)
        dest = _safe_join(upload_dir, filename)
        written = 0
        with dest.open("wb") as out:
            while chunk := await upload.read(_CHUNK_SIZE):
                written += len(chunk)
                if written > settings.max_upload_bytes:
                    break
                out.write(chunk)
    except OSError as e:
        logger.error("Upload failed", filename=upload.filename, error=str(e))
        raise UpstreamError("Upload failed") from e

    if written > settings.max_upload_bytes:
        dest.unlink(missing_ok=True)
        logger.warning(
            "Upload rejected - too large",
            filename=upload.filename,
            limit=settings.max_upload_bytes,
        )
        raise ValidationError(
            f"File exceeds {settings.max_upload_bytes} bytes", field="file"
        )

    if written == 0:
        dest.unlink(missing_ok=True)
        raise ValidationError("Uploaded file is empty", field="file")

    record_user_operation("upload")
    logger.info("Avatar stored", filename=filename, size=written)
    return public_url(filename)
