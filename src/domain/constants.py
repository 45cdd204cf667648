"""Domain business rules and constants."""

from typing import Final

# Field limits
MAX_NAME_LENGTH: Final = 100
MAX_EMAIL_LENGTH: Final = 254
MAX_PHONE_LENGTH: Final = 32
MAX_ROLE_LENGTH: Final = 50
MAX_BIO_LENGTH: Final = 1000
MAX_URL_LENGTH: Final = 2048

# Suggested roles; the store accepts any non-empty role
SUGGESTED_ROLES: Final = ("admin", "editor", "user")

# Listing
SORT_FIELDS: Final = ("name", "email", "role", "createdAt")
SORT_ORDERS: Final = ("asc", "desc")
PER_PAGE_OPTIONS: Final = (5, 10, 25, 50, 100)
DEFAULT_SORT_FIELD: Final = "createdAt"
DEFAULT_SORT_ORDER: Final = "desc"
DEFAULT_PAGE: Final = 1
DEFAULT_PER_PAGE: Final = 10

# Identifiers are uuid4 hex strings
USER_ID_PATTERN: Final = r"^[0-9a-f]{32}$"

# CSV export column order: (header label, record attribute)
EXPORT_COLUMNS: Final = (
    ("ID", "id"),
    ("Name", "name"),
    ("Email", "email"),
    ("Phone Number", "phone_number"),
    ("Role", "role"),
    ("Active", "active"),
    ("Avatar", "avatar"),
    ("Bio", "bio"),
    ("Created At", "created_at"),
)
