"""Pure domain entities without infrastructure dependencies."""

import re
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Final

from .constants import (
    MAX_BIO_LENGTH,
    MAX_EMAIL_LENGTH,
    MAX_NAME_LENGTH,
    MAX_PHONE_LENGTH,
    MAX_ROLE_LENGTH,
    MAX_URL_LENGTH,
)
from .exceptions import ValidationError

_EMAIL_RE: Final = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_URL_RE: Final = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)

# Fields assigned by the service and never changed afterwards
IMMUTABLE_FIELDS: Final = frozenset({"id", "created_at"})


def validate_required_text(value: str | None, field: str, max_length: int) -> None:
    """Validate a mandatory free-text field.

    Args:
        value: The value to validate
        field: Field name used in error messages
        max_length: Maximum accepted length

    Raises:
        ValidationError: If value is empty, too long, or contains control characters
    """
    label = field.replace("_", " ").capitalize()
    if value is None or not value.strip():
        raise ValidationError(f"{label} cannot be empty", field=field)

    if len(value) > max_length:
        raise ValidationError(
            f"{label} cannot be longer than {max_length} characters", field=field
        )

    for char in value:
        if (ord(char) < 32 and char != " ") or ord(char) == 127:
            raise ValidationError(
                f"{label} cannot contain newlines, tabs, or other control characters",
                field=field,
            )


def validate_optional_text(value: str | None, field: str, max_length: int) -> None:
    if value is not None and len(value) > max_length:
        label = field.replace("_", " ").capitalize()
        raise ValidationError(
            f"{label} cannot be longer than {max_length} characters", field=field
        )


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass
class User:
    """Core business entity representing a user of the console."""

    id: str | None
    name: str
    email: str
    role: str
    active: bool = True
    phone_number: str | None = None
    avatar: str | None = None
    bio: str | None = None
    created_at: datetime | None = None

    def __post_init__(self):
        """Normalize whitespace and validate after initialization."""
        self.normalize()
        self.validate()

    def normalize(self) -> None:
        self.name = self.name.strip() if self.name else self.name
        self.email = self.email.strip() if self.email else self.email
        self.role = self.role.strip() if self.role else self.role
        self.phone_number = _blank_to_none(self.phone_number)
        self.avatar = _blank_to_none(self.avatar)
        self.bio = _blank_to_none(self.bio)

    def validate(self) -> None:
        """Validate user business rules."""
        validate_required_text(self.name, "name", MAX_NAME_LENGTH)
        validate_required_text(self.role, "role", MAX_ROLE_LENGTH)

        if not self.email or not _EMAIL_RE.match(self.email):
            raise ValidationError("Email must be a valid address", field="email")
        if len(self.email) > MAX_EMAIL_LENGTH:
            raise ValidationError(
                f"Email cannot be longer than {MAX_EMAIL_LENGTH} characters",
                field="email",
            )

        validate_optional_text(self.phone_number, "phone_number", MAX_PHONE_LENGTH)
        validate_optional_text(self.bio, "bio", MAX_BIO_LENGTH)

        if self.avatar is not None:
            if len(self.avatar) > MAX_URL_LENGTH or not _URL_RE.match(self.avatar):
                raise ValidationError("Avatar must be an http(s) URL", field="avatar")

    def apply_changes(self, changes: dict[str, Any]) -> None:
        """Apply a partial update in place.

        Raises:
            ValidationError: If an immutable or unknown field is present, or the
                resulting user breaks a business rule
        """
        known = {f.name for f in fields(self)}
        for key, value in changes.items():
            if key in IMMUTABLE_FIELDS:
                raise ValidationError(f"Field '{key}' cannot be changed", field=key)
            if key not in known:
                raise ValidationError(f"Unknown field '{key}'", field=key)
            setattr(self, key, value)

        self.normalize()
        self.validate()

    def snapshot_fields(self) -> dict[str, Any]:
        """Field values without id and creation timestamp."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in IMMUTABLE_FIELDS
        }
