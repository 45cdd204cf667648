"""Session-scoped persistence for the pending undo snapshot.

The snapshot carries an absolute expiry so a restarted controller resumes the
undo window with whatever time is left instead of a fresh window.
"""

import os
import re
from datetime import datetime, timedelta
from pathlib import Path
from typing import Final, Protocol

from pydantic import AwareDatetime, BaseModel, ConfigDict

from ..config import settings
from ..domain.schemas import UserCreate
from ..logging_config import get_logger

logger: Final = get_logger(__name__)

_SESSION_ID_PATTERN: Final = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class PendingUndo(BaseModel):
    """Field snapshots of deleted users plus the moment undo stops being offered."""

    model_config = ConfigDict(frozen=True)

    users: tuple[UserCreate, ...]
    expires_at: AwareDatetime

    def remaining(self, now: datetime) -> timedelta:
        return max(self.expires_at - now, timedelta(0))

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class PendingUndoStore(Protocol):
    def load(self) -> PendingUndo | None: ...

    def save(self, pending: PendingUndo) -> None: ...

    def clear(self) -> None: ...


class MemoryUndoStore:
    """Keeps the snapshot for the lifetime of the process."""

    def __init__(self) -> None:
        self._pending: PendingUndo | None = None

    def load(self) -> PendingUndo | None:
        return self._pending

    def save(self, pending: PendingUndo) -> None:
        self._pending = pending

    def clear(self) -> None:
        self._pending = None


class FileUndoStore:
    """One JSON file per client session."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    @classmethod
    def for_session(
        cls, session_id: str, directory: Path | str | None = None
    ) -> "FileUndoStore":
        if not _SESSION_ID_PATTERN.match(session_id):
            raise ValueError(f"Invalid session id: {session_id!r}")
        base = Path(directory if directory is not None else settings.undo_state_dir)
        return cls(base / f"pending-undo-{session_id}.json")

    def load(self) -> PendingUndo | None:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

        try:
            return PendingUndo.model_validate_json(raw)
        except ValueError as e:
            logger.warning(
                "Discarding unreadable undo state", path=str(self.path), error=str(e)
            )
            self.clear()
            return None

    def save(self, pending: PendingUndo) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(pending.model_dump_json(), encoding="utf-8")
        os.replace(tmp, self.path)
        logger.debug(
            "Undo state saved",
            path=str(self.path),
            users=len(pending.users),
            expires_at=pending.expires_at.isoformat(),
        )

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
