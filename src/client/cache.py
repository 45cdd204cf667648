"""Key-addressed cache of list and detail results.

Cached values are immutable; every rewrite replaces the entry, so a snapshot
is simply the set of entries held at the moment it was taken and restoring it
never aliases state that changed afterwards.
"""

import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field, replace
from typing import Any, Final, TypeVar

from ..application.query_builder import ListQuery
from ..logging_config import get_logger

logger: Final = get_logger(__name__)

T = TypeVar("T")

QueryKey = tuple[Any, ...]
CacheSnapshot = dict[QueryKey, "CacheEntry | None"]


class UsersKeys:
    """Key factory for user queries."""

    all: Final[QueryKey] = ("users",)
    lists: Final[QueryKey] = ("users", "list")
    details: Final[QueryKey] = ("users", "detail")

    @classmethod
    def list(cls, query: ListQuery) -> QueryKey:
        return (*cls.lists, query)

    @classmethod
    def detail(cls, user_id: str) -> QueryKey:
        return (*cls.details, user_id)


users_keys: Final = UsersKeys()


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    updated_at: float
    stale: bool = False


def _matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == prefix


@dataclass
class QueryCache:
    """In-memory cache. Only the client data layer writes to it."""

    clock: Callable[[], float] = time.monotonic
    _entries: dict[QueryKey, CacheEntry] = field(default_factory=dict)

    def get_entry(self, key: QueryKey) -> CacheEntry | None:
        return self._entries.get(key)

    def get_data(self, key: QueryKey) -> Any | None:
        entry = self._entries.get(key)
        return entry.value if entry else None

    def set_data(self, key: QueryKey, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, updated_at=self.clock())

    def update_data(self, key: QueryKey, updater: Callable[[Any], Any]) -> bool:
        """Replace a cached value with ``updater(old)``; keeps the stale flag."""
        entry = self._entries.get(key)
        if entry is None:
            return False
        self._entries[key] = replace(
            entry, value=updater(entry.value), updated_at=self.clock()
        )
        return True

    def remove(self, key: QueryKey) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def keys(self, prefix: QueryKey = ()) -> list[QueryKey]:
        return [key for key in self._entries if _matches(key, prefix)]

    def items(self, prefix: QueryKey = ()) -> list[tuple[QueryKey, Any]]:
        return [
            (key, entry.value)
            for key, entry in self._entries.items()
            if _matches(key, prefix)
        ]

    def snapshot(self, keys: Iterable[QueryKey]) -> CacheSnapshot:
        """Current entries for ``keys``; absent keys are recorded as ``None``."""
        return {key: self._entries.get(key) for key in keys}

    def restore(self, snapshot: CacheSnapshot) -> None:
        for key, entry in snapshot.items():
            if entry is None:
                self._entries.pop(key, None)
            else:
                self._entries[key] = entry

    def invalidate(self, prefix: QueryKey = ()) -> int:
        """Mark matching entries stale so the next read refetches them."""
        count = 0
        for key, entry in list(self._entries.items()):
            if _matches(key, prefix) and not entry.stale:
                self._entries[key] = replace(entry, stale=True)
                count += 1
        if count:
            logger.debug("Cache invalidated", prefix=prefix, entries=count)
        return count

    def is_stale(self, key: QueryKey) -> bool:
        entry = self._entries.get(key)
        return entry is None or entry.stale

    async def fetch(self, key: QueryKey, loader: Callable[[], Awaitable[T]]) -> T:
        """Serve a fresh entry, or load, store and return a new value."""
        entry = self._entries.get(key)
        if entry is not None and not entry.stale:
            return entry.value  # type: ignore[no-any-return]

        value = await loader()
        self.set_data(key, value)
        return value
