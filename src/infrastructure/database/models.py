import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from ...domain.constants import (
    MAX_BIO_LENGTH,
    MAX_EMAIL_LENGTH,
    MAX_NAME_LENGTH,
    MAX_PHONE_LENGTH,
    MAX_ROLE_LENGTH,
    MAX_URL_LENGTH,
)
from ...domain.entities import User as DomainUser


def new_user_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> datetime:
    """Current UTC time without tzinfo, the form stored in the database."""
    return datetime.now(UTC).replace(tzinfo=None)


class User(SQLModel, table=True):  # type: ignore[call-arg]
    """A user record. Timestamps are stored as naive UTC."""

    __tablename__: str = "users"  # type: ignore[assignment]

    id: str = Field(default_factory=new_user_id, primary_key=True, max_length=32)
    name: str = Field(index=True, max_length=MAX_NAME_LENGTH)
    email: str = Field(unique=True, index=True, max_length=MAX_EMAIL_LENGTH)
    phone_number: str | None = Field(default=None, max_length=MAX_PHONE_LENGTH)
    role: str = Field(index=True, max_length=MAX_ROLE_LENGTH)
    active: bool = Field(default=True)
    avatar: str | None = Field(default=None, max_length=MAX_URL_LENGTH)
    bio: str | None = Field(default=None, max_length=MAX_BIO_LENGTH)
    created_at: datetime = Field(
        default_factory=utc_now, index=True, sa_type=DateTime(timezone=False)
    )

    @classmethod
    def from_domain(cls, domain_user: DomainUser) -> "User":
        """Convert a new domain entity to a persistence model.

        Identifier and creation timestamp are always generated here, whatever
        the caller supplied.
        """
        return cls(
            name=domain_user.name,
            email=domain_user.email,
            phone_number=domain_user.phone_number,
            role=domain_user.role,
            active=domain_user.active,
            avatar=domain_user.avatar,
            bio=domain_user.bio,
        )

    def apply_domain(self, domain_user: DomainUser) -> None:
        """Copy mutable fields from a domain entity onto this row."""
        for key, value in domain_user.snapshot_fields().items():
            setattr(self, key, value)

    def to_domain(self) -> DomainUser:
        """Convert persistence model to domain entity."""
        created_at = self.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)
        return DomainUser(
            id=self.id,
            name=self.name,
            email=self.email,
            phone_number=self.phone_number,
            role=self.role,
            active=self.active,
            avatar=self.avatar,
            bio=self.bio,
            created_at=created_at,
        )
