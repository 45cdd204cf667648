"""Application service for user records.

Translates validated requests into repository calls and keeps the store's
errors inside the domain taxonomy.
"""

import csv
import io
from collections import Counter
from datetime import UTC, datetime
from typing import Final

from sqlmodel import Session

from ..domain.constants import EXPORT_COLUMNS
from ..domain.entities import User
from ..domain.exceptions import UserAlreadyExistsError, UserNotFoundError
from ..domain.schemas import (
    DateCount,
    Pagination,
    RoleCount,
    UserCreate,
    UserPage,
    UserRecord,
    UserStats,
    UserUpdate,
)
from ..infrastructure.database.repositories import UserRepository
from ..logging_config import get_logger
from ..logging_utils import log_database_operation
from ..metrics import record_user_operation
from .query_builder import ListQuery, build_list_spec
from .validation import domain_user_with_logging, validate_user_id

logger: Final = get_logger(__name__)


def _csv_value(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def export_filename(today: datetime | None = None) -> str:
    day = (today or datetime.now(UTC)).date().isoformat()
    return f"users_{day}.csv"


class UserService:
    """Application service for User operations."""

    def __init__(self, session: Session):
        self.user_repo = UserRepository(session)

    def create_user(self, payload: UserCreate) -> User:
        """Create a new user. Email uniqueness is checked before writing."""
        logger.debug("Creating user", email=payload.email)
        domain_user = domain_user_with_logging(payload)

        try:
            user = self.user_repo.add(domain_user)
        except UserAlreadyExistsError:
            logger.warning("User creation failed - email taken", email=payload.email)
            raise

        log_database_operation(
            operation="create", table="users", success=True, user_id=user.id
        )
        record_user_operation("create")
        logger.info("User created successfully", user_id=user.id, role=user.role)
        return user

    def get_user(self, user_id: str) -> User:
        validate_user_id(user_id)
        user = self.user_repo.find_by_id(user_id)
        if user is None:
            logger.debug("User lookup failed - not found", user_id=user_id)
            raise UserNotFoundError(user_id)
        return user

    def update_user(self, user_id: str, payload: UserUpdate) -> User:
        validate_user_id(user_id)
        changes = payload.changes()
        logger.debug("Updating user", user_id=user_id, fields=sorted(changes))

        try:
            user = self.user_repo.update(user_id, changes)
        except UserNotFoundError:
            logger.warning("User update failed - not found", user_id=user_id)
            raise
        except UserAlreadyExistsError as e:
            logger.warning(
                "User update failed - email taken", user_id=user_id, email=e.email
            )
            raise

        log_database_operation(
            operation="update", table="users", success=True, user_id=user_id
        )
        record_user_operation("update")
        logger.info("User updated successfully", user_id=user_id)
        return user

    def delete_user(self, user_id: str) -> None:
        """Permanently delete a user.

        Raises:
            UserNotFoundError: If the user does not exist
        """
        validate_user_id(user_id)
        if not self.user_repo.delete(user_id):
            logger.warning("User deletion failed - not found", user_id=user_id)
            raise UserNotFoundError(user_id)

        log_database_operation(
            operation="delete", table="users", success=True, user_id=user_id
        )
        record_user_operation("delete")
        logger.info("User deleted successfully", user_id=user_id)

    def list_users(self, query: ListQuery) -> UserPage:
        spec = build_list_spec(query)
        users, total = self.user_repo.find_page(
            spec.where, spec.order_by, spec.offset, spec.limit
        )
        logger.debug(
            "Listed users",
            total=total,
            returned=len(users),
            page=query.page,
            per_page=query.per_page,
        )
        return UserPage(
            data=tuple(UserRecord.from_domain(user) for user in users),
            pagination=Pagination.compute(query.page, query.per_page, total),
        )

    def export_csv(self) -> str:
        """All users as CSV with a fixed column order."""
        users = self.user_repo.find_all()

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow([label for label, _ in EXPORT_COLUMNS])
        for user in users:
            writer.writerow(
                [_csv_value(getattr(user, attr)) for _, attr in EXPORT_COLUMNS]
            )

        record_user_operation("export")
        logger.info("Users exported", count=len(users))
        return buffer.getvalue()

    def get_stats(self) -> UserStats:
        users = self.user_repo.find_all()
        active = sum(1 for user in users if user.active)
        roles = Counter(user.role for user in users)
        signups = Counter(
            user.created_at.date().isoformat() for user in users if user.created_at
        )

        return UserStats(
            total=len(users),
            active=active,
            inactive=len(users) - active,
            by_role=[
                RoleCount(role=role, count=count)
                for role, count in sorted(roles.items())
            ],
            signups_by_date=[
                DateCount(date=day, count=count)
                for day, count in sorted(signups.items())
            ],
        )
