"""Bulk delete workflow with a time-boxed undo.

Deletion is permanent on the server. Undo re-creates users from field
snapshots taken before deletion, so restored users get new ids and creation
timestamps.
"""

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Final

from ..config import settings
from ..domain.exceptions import DomainError
from ..domain.schemas import UserCreate, UserRecord
from ..logging_config import get_logger
from ..metrics import record_bulk_delete
from .notifications import LoggingNotifier, Notifier
from .undo_store import PendingUndo, PendingUndoStore
from .users import UserDataLayer

logger: Final = get_logger(__name__)

MSG_ALREADY_RUNNING: Final = "Bulk delete already in progress"
MSG_NOTHING_SELECTED: Final = "No users selected"
MSG_DELETE_FAILED: Final = "Failed to delete a user; rolled back"
MSG_DELETED: Final = "Users deleted. Undo available for a few seconds"
MSG_FINALIZED: Final = "Deletion finalized"
MSG_RESTORED: Final = "Users restored"
MSG_RESTORE_FAILED: Final = "Failed to restore some users"


class BulkDeletePhase(StrEnum):
    IDLE = "idle"
    CONFIRMING = "confirming"
    RUNNING = "running"
    UNDO_WINDOW_OPEN = "undo_window_open"
    FINALIZED = "finalized"


class BulkDeleteStateError(RuntimeError):
    """An operation was attempted in a phase that does not allow it."""


@dataclass
class BulkDeleteResult:
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


@dataclass
class UndoResult:
    restored: list[UserRecord] = field(default_factory=list)
    failed: list[UserCreate] = field(default_factory=list)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class BulkDeleteController:
    """Drives one console session's delete / undo lifecycle."""

    def __init__(
        self,
        users: UserDataLayer,
        store: PendingUndoStore,
        notifier: Notifier | None = None,
        undo_window_seconds: float | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.users = users
        self.store = store
        self.notifier = notifier if notifier is not None else LoggingNotifier()
        self.undo_window = timedelta(
            seconds=(
                undo_window_seconds
                if undo_window_seconds is not None
                else settings.undo_window_seconds
            )
        )
        self.clock = clock

        self.phase = BulkDeletePhase.IDLE
        self._requested: list[str] = []
        self._syncing: set[str] = set()
        self._running = False
        self._pending: PendingUndo | None = None
        self._timer: asyncio.TimerHandle | None = None

    @property
    def syncing_ids(self) -> frozenset[str]:
        """Ids whose delete request is currently in flight."""
        return frozenset(self._syncing)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def requested_ids(self) -> tuple[str, ...]:
        return tuple(self._requested)

    @property
    def pending(self) -> PendingUndo | None:
        return self._pending

    @property
    def remaining_seconds(self) -> float:
        if self._pending is None:
            return 0.0
        return self._pending.remaining(self.clock()).total_seconds()

    # Confirmation

    def request_delete(self, user_ids: Iterable[str]) -> bool:
        """Ask for confirmation. Returns False when the request is refused."""
        if self._running:
            self.notifier.info(MSG_ALREADY_RUNNING)
            return False

        ids = list(dict.fromkeys(user_ids))
        if not ids:
            self.notifier.info(MSG_NOTHING_SELECTED)
            return False

        self._requested = ids
        self.phase = BulkDeletePhase.CONFIRMING
        logger.debug("Bulk delete requested", count=len(ids))
        return True

    def cancel(self) -> None:
        if self.phase != BulkDeletePhase.CONFIRMING:
            return
        self._requested = []
        self.phase = (
            BulkDeletePhase.UNDO_WINDOW_OPEN
            if self._pending is not None
            else BulkDeletePhase.IDLE
        )

    # Deletion

    async def _snapshot(
        self, user_ids: list[str], known: Iterable[UserRecord]
    ) -> tuple[dict[str, UserCreate], list[str]]:
        by_id = {record.id: record for record in known}
        snapshots: dict[str, UserCreate] = {}
        missing: list[str] = []
        for user_id in user_ids:
            record = by_id.get(user_id)
            if record is None:
                try:
                    record = await self.users.get_user(user_id)
                except DomainError as e:
                    logger.warning(
                        "Could not snapshot user before delete",
                        user_id=user_id,
                        error=str(e),
                    )
                    missing.append(user_id)
                    continue
            snapshots[user_id] = record.to_create()
        return snapshots, missing

    async def confirm(
        self, known: Iterable[UserRecord] = ()
    ) -> BulkDeleteResult | None:
        """Delete the requested users one after another.

        ``known`` are records the caller already holds (the visible page);
        anything else is fetched so it can be snapshotted first. Users that
        cannot be snapshotted are not deleted.
        """
        if self._running:
            self.notifier.info(MSG_ALREADY_RUNNING)
            return None
        if self.phase != BulkDeletePhase.CONFIRMING:
            raise BulkDeleteStateError(f"Cannot confirm while {self.phase}")

        self._running = True
        self.phase = BulkDeletePhase.RUNNING
        user_ids, self._requested = self._requested, []
        result = BulkDeleteResult()
        deleted: list[UserCreate] = []

        try:
            # A new window replaces the previous one, which is committed first
            if self._pending is not None:
                self.finalize()

            snapshots, result.failed = await self._snapshot(user_ids, known)

            for user_id in user_ids:
                snapshot = snapshots.get(user_id)
                if snapshot is None:
                    continue
                self._syncing.add(user_id)
                try:
                    await self.users.delete_user(user_id)
                except DomainError as e:
                    logger.warning(
                        "Bulk delete item failed", user_id=user_id, error=str(e)
                    )
                    self.notifier.error(MSG_DELETE_FAILED)
                    result.failed.append(user_id)
                else:
                    result.deleted.append(user_id)
                    deleted.append(snapshot)
                finally:
                    self._syncing.discard(user_id)
        finally:
            # Users already deleted keep their undo even if the batch is cut short
            self._running = False
            if deleted:
                expires_at = self.clock() + self.undo_window
                self._open_window(
                    PendingUndo(users=tuple(deleted), expires_at=expires_at)
                )
                self.notifier.success(MSG_DELETED)
            else:
                self.phase = BulkDeletePhase.IDLE

        record_bulk_delete("deleted", len(result.deleted))
        record_bulk_delete("failed", len(result.failed))
        logger.info(
            "Bulk delete finished",
            deleted=len(result.deleted),
            failed=len(result.failed),
        )
        return result

    async def execute_bulk_delete(
        self, user_ids: Iterable[str], known: Iterable[UserRecord] = ()
    ) -> BulkDeleteResult | None:
        """Request and immediately confirm."""
        if not self.request_delete(user_ids):
            return None
        return await self.confirm(known)

    async def execute_single_delete(
        self, user_id: str, known: UserRecord | None = None
    ) -> BulkDeleteResult | None:
        return await self.execute_bulk_delete(
            [user_id], [known] if known is not None else ()
        )

    # Undo window

    def _open_window(self, pending: PendingUndo) -> None:
        self._pending = pending
        self.store.save(pending)
        delay = pending.remaining(self.clock()).total_seconds()
        self._timer = asyncio.get_running_loop().call_later(delay, self.finalize)
        self.phase = BulkDeletePhase.UNDO_WINDOW_OPEN
        logger.debug("Undo window opened", users=len(pending.users), seconds=delay)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def finalize(self) -> None:
        """Close the undo window; the deletions become final."""
        self._cancel_timer()
        if self._pending is None:
            return
        count = len(self._pending.users)
        self._pending = None
        self.store.clear()
        if self.phase == BulkDeletePhase.UNDO_WINDOW_OPEN:
            self.phase = BulkDeletePhase.FINALIZED
        self.notifier.info(MSG_FINALIZED)
        logger.info("Deletion finalized", users=count)

    async def undo(self) -> UndoResult:
        """Re-create every snapshotted user. Partial failures are reported."""
        if self.phase != BulkDeletePhase.UNDO_WINDOW_OPEN or self._pending is None:
            raise BulkDeleteStateError("No deletion to undo")
        if self._pending.is_expired(self.clock()):
            self.finalize()
            raise BulkDeleteStateError("Undo window has expired")

        # The window closes now; restores run against a detached snapshot
        self._cancel_timer()
        pending, self._pending = self._pending, None
        self.store.clear()
        self.phase = BulkDeletePhase.FINALIZED
        self._running = True
        result = UndoResult()
        try:
            for snapshot in pending.users:
                try:
                    result.restored.append(await self.users.create_user(snapshot))
                except DomainError as e:
                    logger.warning(
                        "Restore failed", email=snapshot.email, error=str(e)
                    )
                    result.failed.append(snapshot)
        finally:
            self._running = False

        record_bulk_delete("restored", len(result.restored))
        if result.failed:
            self.notifier.error(MSG_RESTORE_FAILED)
        else:
            self.notifier.success(MSG_RESTORED)
        logger.info(
            "Undo finished", restored=len(result.restored), failed=len(result.failed)
        )
        return result

    def rehydrate(self) -> bool:
        """Resume a persisted undo window. Returns True if one was reopened."""
        pending = self.store.load()
        if pending is None:
            return False
        if pending.is_expired(self.clock()):
            logger.info("Discarding expired undo state", users=len(pending.users))
            self.store.clear()
            return False

        self._open_window(pending)
        return True

    def close(self) -> None:
        """Stop the timer without touching persisted state."""
        self._cancel_timer()
