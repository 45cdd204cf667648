"""Non-blocking user notifications (toasts)."""

from typing import Final, Protocol

from ..logging_config import get_logger

logger: Final = get_logger(__name__)


class Notifier(Protocol):
    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...


class LoggingNotifier:
    """Default notifier for headless use: every toast becomes a log event."""

    def success(self, message: str) -> None:
        logger.info(message, toast="success")

    def error(self, message: str) -> None:
        logger.warning(message, toast="error")

    def info(self, message: str) -> None:
        logger.info(message, toast="info")
