"""Domain-specific exceptions."""


class DomainError(Exception):
    """Base exception for domain errors."""

    pass


class ValidationError(DomainError):
    """Raised when input fails validation. Never reaches the store."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class UserAlreadyExistsError(DomainError):
    """Raised when an email is already taken by another user."""

    def __init__(self, email: str):
        super().__init__(f"Email '{email}' already exists")
        self.email = email


class UserNotFoundError(DomainError):
    """Raised when a user identifier does not resolve."""

    def __init__(self, user_id: str):
        super().__init__(f"User '{user_id}' not found")
        self.user_id = user_id


class UpstreamError(DomainError):
    """Raised for store or network failures that have no better classification."""

    pass
