"""Wire schemas shared by the HTTP API and the client data layer.

JSON payloads use camelCase keys (``phoneNumber``, ``createdAt``); the Python
attributes stay snake_case. Missing optional strings travel as ``""``.
"""

import math
from datetime import datetime
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    HttpUrl,
    TypeAdapter,
    field_validator,
)
from pydantic.alias_generators import to_camel

from .constants import (
    MAX_BIO_LENGTH,
    MAX_NAME_LENGTH,
    MAX_PHONE_LENGTH,
    MAX_ROLE_LENGTH,
)
from .entities import User

_http_url = TypeAdapter(HttpUrl)

_OPTIONAL_TEXT_FIELDS = ("phone_number", "avatar", "bio")


def _validate_avatar(value: str | None) -> str | None:
    if value is None:
        return None
    try:
        _http_url.validate_python(value)
    except ValueError:
        raise ValueError("Avatar must be an http(s) URL") from None
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class UserCreate(CamelModel):
    """Payload for creating a user. Server-assigned fields are ignored."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    email: EmailStr
    phone_number: str | None = Field(default=None, max_length=MAX_PHONE_LENGTH)
    role: str = Field(min_length=1, max_length=MAX_ROLE_LENGTH)
    active: bool = True
    avatar: str | None = None
    bio: str | None = Field(default=None, max_length=MAX_BIO_LENGTH)

    @field_validator(*_OPTIONAL_TEXT_FIELDS, mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("avatar")
    @classmethod
    def avatar_is_url(cls, v: str | None) -> str | None:
        return _validate_avatar(v)

    def to_domain(self) -> User:
        return User(id=None, created_at=None, **self.model_dump())


class UserUpdate(CamelModel):
    """Partial update. Unknown keys, ``id`` and ``createdAt`` are rejected."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=MAX_NAME_LENGTH)
    email: EmailStr | None = None
    phone_number: str | None = Field(default=None, max_length=MAX_PHONE_LENGTH)
    role: str | None = Field(default=None, min_length=1, max_length=MAX_ROLE_LENGTH)
    active: bool | None = None
    avatar: str | None = None
    bio: str | None = Field(default=None, max_length=MAX_BIO_LENGTH)

    @field_validator("name", "email", "role", "active")
    @classmethod
    def required_not_null(cls, v: Any, info) -> Any:
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator(*_OPTIONAL_TEXT_FIELDS, mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("avatar")
    @classmethod
    def avatar_is_url(cls, v: str | None) -> str | None:
        return _validate_avatar(v)

    def changes(self) -> dict[str, Any]:
        """Only the fields the caller actually sent, keyed by attribute name."""
        return self.model_dump(exclude_unset=True)


class UserRecord(CamelModel):
    """A persisted user as returned by the API."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str
    phone_number: str = ""
    role: str
    active: bool = True
    avatar: str = ""
    bio: str = ""
    created_at: datetime

    @classmethod
    def from_domain(cls, user: User) -> "UserRecord":
        if user.id is None or user.created_at is None:
            raise ValueError("User must be persisted before it can be rendered")
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            phone_number=user.phone_number or "",
            role=user.role,
            active=user.active,
            avatar=user.avatar or "",
            bio=user.bio or "",
            created_at=user.created_at,
        )

    @classmethod
    def from_create(
        cls, user_id: str, payload: UserCreate, created_at: datetime
    ) -> "UserRecord":
        values = payload.model_dump()
        for key in _OPTIONAL_TEXT_FIELDS:
            values[key] = values[key] or ""
        return cls(id=user_id, created_at=created_at, **values)

    def merged(self, update: UserUpdate) -> "UserRecord":
        """Copy of this record with the update applied."""
        changes = {
            key: "" if value is None else value
            for key, value in update.changes().items()
        }
        return self.model_copy(update=changes)

    def to_create(self) -> UserCreate:
        """Field snapshot usable to re-create an equivalent user."""
        return UserCreate(
            name=self.name,
            email=self.email,
            phone_number=self.phone_number or None,
            role=self.role,
            active=self.active,
            avatar=self.avatar or None,
            bio=self.bio or None,
        )


class Pagination(CamelModel):
    model_config = ConfigDict(frozen=True)

    page: int
    per_page: int
    total: int
    total_pages: int

    @classmethod
    def compute(cls, page: int, per_page: int, total: int) -> "Pagination":
        return cls(
            page=page,
            per_page=per_page,
            total=total,
            total_pages=max(1, math.ceil(total / per_page)),
        )


class UserPage(CamelModel):
    """List response envelope."""

    model_config = ConfigDict(frozen=True)

    data: tuple[UserRecord, ...]
    pagination: Pagination


class RoleCount(CamelModel):
    role: str
    count: int


class DateCount(CamelModel):
    date: str
    count: int


class UserStats(CamelModel):
    total: int
    active: int
    inactive: int
    by_role: list[RoleCount]
    signups_by_date: list[DateCount]


class DeleteResult(CamelModel):
    success: bool


class UploadResult(CamelModel):
    url: str
