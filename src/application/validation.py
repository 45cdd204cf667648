"""Shared validation utilities for application layer."""

import re
from typing import Final

from ..domain.constants import USER_ID_PATTERN
from ..domain.entities import User
from ..domain.exceptions import ValidationError
from ..domain.schemas import UserCreate
from ..logging_config import get_logger
from ..logging_utils import log_validation_error

logger = get_logger(__name__)

_USER_ID_RE: Final = re.compile(USER_ID_PATTERN)


def validate_user_id(user_id: str) -> str:
    """Check an identifier's format before it is used against the store.

    Raises:
        ValidationError: If the identifier is not a 32-character hex string
    """
    if not _USER_ID_RE.match(user_id):
        log_validation_error("id", user_id, "malformed user id")
        raise ValidationError("Invalid id", field="id")
    return user_id


def domain_user_with_logging(payload: UserCreate) -> User:
    """Build a domain user from a create payload, logging rule violations.

    Raises:
        ValidationError: If the payload breaks a business rule
    """
    try:
        return payload.to_domain()
    except ValidationError as e:
        logger.warning(
            f"User creation failed - invalid {e.field or 'input'}",
            field=e.field,
            reason=str(e),
        )
        raise
