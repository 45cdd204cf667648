"""Row selection for the user table."""

from collections.abc import Iterable


class UserSelection:
    """Selected user ids, kept in the order they were selected."""

    def __init__(self) -> None:
        self._ids: dict[str, None] = {}

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    @property
    def selected_ids(self) -> list[str]:
        return list(self._ids)

    def toggle_one(self, user_id: str) -> bool:
        """Flip one row. Returns whether it is now selected."""
        if user_id in self._ids:
            del self._ids[user_id]
            return False
        self._ids[user_id] = None
        return True

    def all_selected(self, visible: Iterable[str]) -> bool:
        ids = list(visible)
        return bool(ids) and all(user_id in self._ids for user_id in ids)

    def toggle_all(self, visible: Iterable[str]) -> None:
        """Select every visible row, or clear them if all are selected already."""
        ids = list(visible)
        if self.all_selected(ids):
            for user_id in ids:
                self._ids.pop(user_id, None)
        else:
            for user_id in ids:
                self._ids.setdefault(user_id, None)

    def retain(self, visible: Iterable[str]) -> None:
        """Drop ids that are no longer visible (after a refetch or page change)."""
        keep = set(visible)
        self._ids = {user_id: None for user_id in self._ids if user_id in keep}

    def clear(self) -> None:
        self._ids.clear()
