"""Infrastructure layer - Repository implementations."""

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.sql import ColumnElement
from sqlmodel import Session, col, select

from ...domain.entities import User as DomainUser
from ...domain.exceptions import UserAlreadyExistsError, UserNotFoundError
from .models import User as UserModel


class UserRepository:
    """Repository for User persistence operations."""

    def __init__(self, session: Session):
        self.session = session

    def _commit_or_conflict(self, email: str) -> None:
        # The unique index on email is the authoritative guard against races
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise UserAlreadyExistsError(email) from e

    def add(
        self, domain_user: DomainUser, created_at: datetime | None = None
    ) -> DomainUser:
        """Persist a new user. The identifier is generated here.

        ``created_at`` (naive UTC) backdates seeded rows; API writes never pass it.
        """
        if self.find_by_email(domain_user.email):
            raise UserAlreadyExistsError(domain_user.email)

        user_model = UserModel.from_domain(domain_user)
        if created_at is not None:
            user_model.created_at = created_at
        self.session.add(user_model)
        self._commit_or_conflict(domain_user.email)
        self.session.refresh(user_model)

        return user_model.to_domain()

    def find_by_id(self, user_id: str) -> DomainUser | None:
        user_model = self.session.get(UserModel, user_id)
        return user_model.to_domain() if user_model else None

    def find_by_email(self, email: str) -> DomainUser | None:
        user_model = self.session.exec(
            select(UserModel).where(UserModel.email == email)
        ).first()
        return user_model.to_domain() if user_model else None

    def update(self, user_id: str, changes: dict[str, Any]) -> DomainUser:
        """Apply a partial update.

        Raises:
            UserNotFoundError: If the user does not exist
            UserAlreadyExistsError: If the new email belongs to another user
            ValidationError: If the changes break a business rule
        """
        user_model = self.session.get(UserModel, user_id)
        if user_model is None:
            raise UserNotFoundError(user_id)

        domain_user = user_model.to_domain()
        domain_user.apply_changes(changes)

        if domain_user.email != user_model.email:
            other = self.find_by_email(domain_user.email)
            if other and other.id != user_id:
                raise UserAlreadyExistsError(domain_user.email)

        user_model.apply_domain(domain_user)
        self.session.add(user_model)
        self._commit_or_conflict(domain_user.email)
        self.session.refresh(user_model)

        return user_model.to_domain()

    def delete(self, user_id: str) -> bool:
        user_model = self.session.get(UserModel, user_id)
        if user_model:
            self.session.delete(user_model)
            self.session.commit()
            return True
        return False

    def find_page(
        self,
        where: Sequence[ColumnElement[bool]],
        order_by: Sequence[Any],
        offset: int,
        limit: int,
    ) -> tuple[list[DomainUser], int]:
        """Return one page of matching users plus the total match count."""
        total = self.session.exec(
            select(func.count()).select_from(UserModel).where(*where)
        ).one()

        statement = (
            select(UserModel)
            .where(*where)
            .order_by(*order_by)
            .offset(offset)
            .limit(limit)
        )
        users = self.session.exec(statement).all()
        return [user.to_domain() for user in users], int(total)

    def find_all(self) -> list[DomainUser]:
        """All users, newest first."""
        users = self.session.exec(
            select(UserModel).order_by(
                col(UserModel.created_at).desc(), col(UserModel.id).desc()
            )
        ).all()
        return [user.to_domain() for user in users]

    def count(self) -> int:
        return int(
            self.session.exec(select(func.count()).select_from(UserModel)).one()
        )
