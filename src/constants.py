"""Infrastructure and technical constants."""

from typing import Final

DEFAULT_PORT: Final = 8000
DEFAULT_MAX_UPLOAD_BYTES: Final = 5 * 1024 * 1024
DEFAULT_UNDO_WINDOW_SECONDS: Final = 5.0
API_PREFIX: Final = "/api"
UPLOADS_MOUNT: Final = "/uploads"
