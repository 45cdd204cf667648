from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from src.client.undo_store import FileUndoStore, MemoryUndoStore, PendingUndo
from src.domain.schemas import UserCreate

NOW = datetime(2025, 6, 1, 9, 30, tzinfo=UTC)


def _pending(seconds: float = 5) -> PendingUndo:
    return PendingUndo(
        users=(
            UserCreate(
                name="Alex Lee",
                email="alex@example.com",
                role="user",
                phone_number="+1-555-0101",
                avatar="https://i.pravatar.cc/100?img=3",
            ),
            UserCreate(
                name="Sam Kim", email="sam@example.com", role="admin", active=False
            ),
        ),
        expires_at=NOW + timedelta(seconds=seconds),
    )


def test_remaining_time():
    pending = _pending(5)
    assert pending.remaining(NOW) == timedelta(seconds=5)
    assert pending.remaining(NOW + timedelta(seconds=9)) == timedelta(0)
    assert not pending.is_expired(NOW)
    assert pending.is_expired(NOW + timedelta(seconds=5))


def test_memory_store():
    store = MemoryUndoStore()
    assert store.load() is None
    store.save(_pending())
    assert store.load() == _pending()
    store.clear()
    assert store.load() is None


def test_file_store_survives_new_instance(tmp_path: Path):
    FileUndoStore.for_session("tab-1", tmp_path).save(_pending())

    loaded = FileUndoStore.for_session("tab-1", tmp_path).load()

    assert loaded == _pending()
    assert FileUndoStore.for_session("tab-2", tmp_path).load() is None


def test_file_store_clear_is_idempotent(tmp_path: Path):
    store = FileUndoStore.for_session("tab-1", tmp_path)
    store.save(_pending())
    store.clear()
    store.clear()
    assert store.load() is None
    assert not store.path.exists()


def test_file_store_discards_corrupt_state(tmp_path: Path):
    store = FileUndoStore.for_session("tab-1", tmp_path)
    store.path.parent.mkdir(parents=True, exist_ok=True)
    store.path.write_text("{not json", encoding="utf-8")

    assert store.load() is None
    assert not store.path.exists()


def test_session_id_must_be_a_plain_name(tmp_path: Path):
    with pytest.raises(ValueError):
        FileUndoStore.for_session("../escape", tmp_path)
