"""Filter, sort and pagination for user listings.

``ListQuery`` is parsed from query-string parameters and is shared by the API
and the client cache: the API turns it into SQL predicates, the client uses
``matches`` to decide whether a new record belongs in a cached page.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Any, Final, Literal

from pydantic import ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.sql import ColumnElement
from sqlmodel import col, or_

from ..domain.constants import (
    DEFAULT_PAGE,
    DEFAULT_PER_PAGE,
    DEFAULT_SORT_FIELD,
    DEFAULT_SORT_ORDER,
    PER_PAGE_OPTIONS,
)
from ..domain.exceptions import ValidationError
from ..domain.schemas import CamelModel, UserRecord
from ..infrastructure.database.models import User
from ..logging_utils import log_validation_error

SortField = Literal["name", "email", "role", "createdAt"]
SortOrder = Literal["asc", "desc"]

_SORT_COLUMNS: Final = {
    "name": User.name,
    "email": User.email,
    "role": User.role,
    "createdAt": User.created_at,
}


class ListQuery(CamelModel):
    """Normalized listing parameters. Immutable and hashable."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    search: str | None = None
    role: str | None = None
    sort_by: SortField = DEFAULT_SORT_FIELD
    order: SortOrder = DEFAULT_SORT_ORDER
    date_from: date | None = None
    date_to: date | None = None
    page: int = Field(default=DEFAULT_PAGE, ge=1)
    per_page: int = DEFAULT_PER_PAGE

    @field_validator("per_page")
    @classmethod
    def per_page_is_offered(cls, v: int) -> int:
        if v not in PER_PAGE_OPTIONS:
            options = ", ".join(str(o) for o in PER_PAGE_OPTIONS)
            raise ValueError(f"perPage must be one of {options}")
        return v

    @model_validator(mode="after")
    def dates_in_order(self) -> "ListQuery":
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("dateTo must not be before dateFrom")
        return self

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> "ListQuery":
        """Parse query-string parameters.

        Absent or blank parameters take their defaults; present but malformed
        ones are rejected.

        Raises:
            ValidationError: Naming the first offending parameter
        """
        values = {key: value for key, value in params.items() if value.strip()}
        try:
            return cls.model_validate(values)
        except PydanticValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(loc) for loc in error["loc"]) or "dateTo"
            message = str(error["msg"]).removeprefix("Value error, ")
            log_validation_error(field, values.get(field), message)
            raise ValidationError(f"Invalid {field}: {message}", field=field) from e

    def to_params(self) -> dict[str, str]:
        """Query-string form, omitting unset filters."""
        dumped = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        return {key: str(value) for key, value in dumped.items()}

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    def created_after(self) -> datetime | None:
        if self.date_from is None:
            return None
        return datetime.combine(self.date_from, time.min)

    def created_before(self) -> datetime | None:
        """Exclusive upper bound covering the whole ``date_to`` day."""
        if self.date_to is None:
            return None
        return datetime.combine(self.date_to + timedelta(days=1), time.min)

    def matches(self, record: UserRecord) -> bool:
        """Whether ``record`` passes this query's filters (pagination aside)."""
        if self.search:
            needle = self.search.lower()
            haystacks = (record.name, record.email, record.phone_number)
            if not any(needle in h.lower() for h in haystacks):
                return False

        if self.role and record.role != self.role:
            return False

        created = record.created_at
        if created.tzinfo is not None:
            created = created.astimezone(UTC).replace(tzinfo=None)
        lower = self.created_after()
        if lower and created < lower:
            return False
        upper = self.created_before()
        if upper and created >= upper:
            return False

        return True


@dataclass(frozen=True)
class UserListSpec:
    """SQL pieces for one listing request."""

    where: list[ColumnElement[bool]]
    order_by: list[Any]
    offset: int
    limit: int


def build_filters(query: ListQuery) -> list[ColumnElement[bool]]:
    filters: list[ColumnElement[bool]] = []

    if query.search:
        filters.append(
            or_(
                col(User.name).icontains(query.search, autoescape=True),
                col(User.email).icontains(query.search, autoescape=True),
                col(User.phone_number).icontains(query.search, autoescape=True),
            )
        )

    if query.role:
        filters.append(col(User.role) == query.role)

    lower = query.created_after()
    if lower is not None:
        filters.append(col(User.created_at) >= lower)

    upper = query.created_before()
    if upper is not None:
        filters.append(col(User.created_at) < upper)

    return filters


def build_order_by(query: ListQuery) -> list[Any]:
    column = col(_SORT_COLUMNS[query.sort_by])
    tiebreak = col(User.id)
    if query.order == "asc":
        return [column.asc(), tiebreak.asc()]
    return [column.desc(), tiebreak.desc()]


def build_list_spec(query: ListQuery) -> UserListSpec:
    return UserListSpec(
        where=build_filters(query),
        order_by=build_order_by(query),
        offset=query.offset,
        limit=query.per_page,
    )
