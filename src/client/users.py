"""Cached reads and optimistic mutations for user records.

Each mutation rewrites the affected cache entries before its request is sent,
restores them if the request fails, and invalidates every user entry once it
settles so the next read reconciles with the server.
"""

import asyncio
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Final

from ..application.query_builder import ListQuery
from ..domain.exceptions import UserNotFoundError
from ..domain.schemas import Pagination, UserCreate, UserPage, UserRecord, UserUpdate
from ..logging_config import get_logger
from ..metrics import record_rollback
from .api import UsersApi
from .cache import CacheSnapshot, QueryCache, QueryKey, users_keys
from .notifications import Notifier

logger: Final = get_logger(__name__)

TEMP_ID_PREFIX: Final = "temp-"

# Failures that must roll back an optimistic update before propagating
_ROLLBACK_ON: Final = (Exception, asyncio.CancelledError)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _with_data(page: UserPage, data: tuple[UserRecord, ...], total: int) -> UserPage:
    pagination = Pagination.compute(
        page.pagination.page, page.pagination.per_page, max(0, total)
    )
    return UserPage(data=data, pagination=pagination)


def prepend_record(page: UserPage, record: UserRecord) -> UserPage:
    per_page = page.pagination.per_page
    data = (record, *page.data)[:per_page]
    return _with_data(page, data, page.pagination.total + 1)


def replace_record(page: UserPage, record: UserRecord) -> UserPage:
    data = tuple(record if user.id == record.id else user for user in page.data)
    return _with_data(page, data, page.pagination.total)


def remove_record(page: UserPage, user_id: str) -> UserPage:
    data = tuple(user for user in page.data if user.id != user_id)
    removed = len(page.data) - len(data)
    return _with_data(page, data, page.pagination.total - removed)


def _contains(page: UserPage, user_id: str) -> bool:
    return any(user.id == user_id for user in page.data)


class UserDataLayer:
    """Client-side source of user data for the console."""

    def __init__(
        self,
        api: UsersApi,
        cache: QueryCache | None = None,
        clock: Callable[[], datetime] = _utc_now,
        notifier: Notifier | None = None,
    ):
        self.api = api
        self.cache = cache if cache is not None else QueryCache()
        self.clock = clock
        self.notifier = notifier

    # Reads

    async def list_users(self, query: ListQuery) -> UserPage:
        return await self.cache.fetch(
            users_keys.list(query), lambda: self.api.list_users(query)
        )

    async def get_user(self, user_id: str) -> UserRecord:
        return await self.cache.fetch(
            users_keys.detail(user_id), lambda: self.api.get_user(user_id)
        )

    async def reconcile(self) -> int:
        """Refetch every stale entry. Returns how many were refreshed."""
        refreshed = 0
        for key in self.cache.keys(users_keys.all):
            if not self.cache.is_stale(key):
                continue
            kind, arg = key[1], key[2]
            if kind == "list":
                await self.list_users(arg)
            else:
                try:
                    await self.get_user(arg)
                except UserNotFoundError:
                    self.cache.remove(key)
                    continue
            refreshed += 1
        return refreshed

    # Optimistic mutations

    def _rollback(self, mutation: str, snapshot: CacheSnapshot) -> None:
        self.cache.restore(snapshot)
        record_rollback(mutation)
        logger.info(
            "Optimistic update rolled back", mutation=mutation, entries=len(snapshot)
        )
        if self.notifier is not None:
            self.notifier.error(f"Failed to {mutation} user; changes rolled back")

    def _settle(self) -> None:
        self.cache.invalidate(users_keys.all)

    def _lists_where(
        self, predicate: Callable[[ListQuery, UserPage], bool]
    ) -> list[QueryKey]:
        return [
            key
            for key, page in self.cache.items(users_keys.lists)
            if predicate(key[2], page)
        ]

    async def create_user(self, payload: UserCreate) -> UserRecord:
        temp = UserRecord.from_create(
            f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}", payload, self.clock()
        )

        # A new record is the newest one, so it can only appear on a first page
        touched = self._lists_where(
            lambda query, _page: query.page == 1 and query.matches(temp)
        )
        snapshot = self.cache.snapshot(touched)
        for key in touched:
            self.cache.update_data(key, lambda page: prepend_record(page, temp))

        try:
            created = await self.api.create_user(payload)
        except _ROLLBACK_ON:
            self._rollback("create", snapshot)
            raise
        finally:
            self._settle()

        logger.debug("User created", user_id=created.id, optimistic_lists=len(touched))
        return created

    async def update_user(self, user_id: str, payload: UserUpdate) -> UserRecord:
        touched = self._lists_where(lambda _query, page: _contains(page, user_id))
        detail_key = users_keys.detail(user_id)
        if self.cache.get_entry(detail_key) is not None:
            touched.append(detail_key)
        snapshot = self.cache.snapshot(touched)

        for key in touched:
            if key == detail_key:
                self.cache.update_data(key, lambda user: user.merged(payload))
            else:
                self.cache.update_data(
                    key,
                    lambda page: replace_record(
                        page,
                        next(u for u in page.data if u.id == user_id).merged(payload),
                    ),
                )

        try:
            updated = await self.api.update_user(user_id, payload)
        except _ROLLBACK_ON:
            self._rollback("update", snapshot)
            raise
        finally:
            self._settle()

        return updated

    async def delete_user(self, user_id: str) -> None:
        # The detail entry stays as it is; it is only refreshed by invalidation
        touched = self._lists_where(lambda _query, page: _contains(page, user_id))
        snapshot = self.cache.snapshot(touched)
        for key in touched:
            self.cache.update_data(key, lambda page: remove_record(page, user_id))

        try:
            await self.api.delete_user(user_id)
        except _ROLLBACK_ON:
            self._rollback("delete", snapshot)
            raise
        finally:
            self._settle()
