from itertools import count

from src.application.query_builder import ListQuery
from src.client.cache import QueryCache, users_keys


def _cache() -> QueryCache:
    ticks = count()
    return QueryCache(clock=lambda: float(next(ticks)))


def test_keys_are_prefixed_by_kind():
    query = ListQuery(role="admin")
    assert users_keys.list(query) == ("users", "list", query)
    assert users_keys.detail("abc") == ("users", "detail", "abc")
    assert users_keys.list(query)[:1] == users_keys.all


def test_equal_queries_share_an_entry():
    cache = _cache()
    cache.set_data(users_keys.list(ListQuery.from_params({"perPage": "5"})), "page")
    assert cache.get_data(users_keys.list(ListQuery(per_page=5))) == "page"


def test_snapshot_restore_is_not_aliased():
    cache = _cache()
    key = users_keys.detail("a")
    other = users_keys.detail("b")
    cache.set_data(key, ("original",))

    snapshot = cache.snapshot([key, other])
    cache.update_data(key, lambda value: (*value, "changed"))
    cache.set_data(other, "new")
    cache.restore(snapshot)

    assert cache.get_data(key) == ("original",)
    assert cache.get_entry(other) is None


def test_update_missing_key_is_noop():
    cache = _cache()
    assert cache.update_data(users_keys.detail("x"), lambda v: v) is False
    assert cache.keys() == []


def test_invalidate_marks_matching_entries_stale():
    cache = _cache()
    list_key = users_keys.list(ListQuery())
    detail_key = users_keys.detail("a")
    cache.set_data(list_key, "page")
    cache.set_data(detail_key, "user")
    cache.set_data(("settings",), "other")

    assert cache.invalidate(users_keys.lists) == 1
    assert cache.is_stale(list_key)
    assert not cache.is_stale(detail_key)

    assert cache.invalidate(users_keys.all) == 1
    assert cache.is_stale(detail_key)
    assert not cache.is_stale(("settings",))
    # Stale entries keep serving their last value
    assert cache.get_data(list_key) == "page"


async def test_fetch_loads_only_when_missing_or_stale():
    cache = _cache()
    key = users_keys.detail("a")
    calls = []

    async def loader():
        calls.append(1)
        return f"value-{len(calls)}"

    assert await cache.fetch(key, loader) == "value-1"
    assert await cache.fetch(key, loader) == "value-1"
    cache.invalidate(users_keys.all)
    assert await cache.fetch(key, loader) == "value-2"
    assert not cache.is_stale(key)
    assert len(calls) == 2
