"""Optimistic cache updates in the client data layer, against the real app."""

import asyncio

import pytest

from src.application.query_builder import ListQuery
from src.client.cache import users_keys
from src.client.users import TEMP_ID_PREFIX, UserDataLayer
from src.domain.exceptions import (
    UpstreamError,
    UserAlreadyExistsError,
    UserNotFoundError,
    ValidationError,
)
from src.domain.schemas import UserUpdate


class _Toasts:
    def __init__(self):
        self.errors: list[str] = []

    def success(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def error(self, message: str) -> None:
        self.errors.append(message)


async def test_list_and_detail_are_cached(users: UserDataLayer, make_user, transport):
    created = await users.api.create_user(make_user("Alex Lee"))
    query = ListQuery()

    page = await users.list_users(query)
    again = await users.list_users(query)
    detail = await users.get_user(created.id)
    await users.get_user(created.id)

    assert page is again
    assert [u.id for u in page.data] == [created.id]
    assert detail == created
    assert transport.requests.count(("GET", "/api/users")) == 1
    assert transport.requests.count(("GET", f"/api/users/{created.id}")) == 1


async def test_create_inserts_optimistically(users: UserDataLayer, make_user):
    await users.api.create_user(make_user("Existing"))
    first_page = ListQuery(per_page=5)
    admins = ListQuery(role="admin")
    second_page = ListQuery(page=2, per_page=5)
    for query in (first_page, admins, second_page):
        await users.list_users(query)

    observed = {}
    original_create = users.api.create_user

    async def spy_create(payload):
        observed["first"] = users.cache.get_data(users_keys.list(first_page))
        observed["admins"] = users.cache.get_data(users_keys.list(admins))
        observed["second"] = users.cache.get_data(users_keys.list(second_page))
        return await original_create(payload)

    users.api.create_user = spy_create  # type: ignore[method-assign]
    created = await users.create_user(make_user("Newcomer"))

    first = observed["first"]
    assert first.data[0].name == "Newcomer"
    assert first.data[0].id.startswith(TEMP_ID_PREFIX)
    assert first.pagination.total == 2
    # Non-matching filters and later pages are left alone
    assert observed["admins"].pagination.total == 0
    assert observed["second"].pagination.total == 1

    assert not created.id.startswith(TEMP_ID_PREFIX)
    assert users.cache.is_stale(users_keys.list(first_page))

    refreshed = await users.list_users(first_page)
    assert [u.id for u in refreshed.data][0] == created.id


async def test_create_trims_full_first_page(users: UserDataLayer, make_user):
    for n in range(5):
        await users.api.create_user(make_user(f"User {n}"))
    query = ListQuery(per_page=5)
    await users.list_users(query)

    seen = {}
    original_create = users.api.create_user

    async def spy_create(payload):
        seen["page"] = users.cache.get_data(users_keys.list(query))
        return await original_create(payload)

    users.api.create_user = spy_create  # type: ignore[method-assign]
    await users.create_user(make_user("Sixth"))

    page = seen["page"]
    assert len(page.data) == 5
    assert page.pagination.total == 6
    assert page.pagination.total_pages == 2


async def test_create_conflict_rolls_back(users: UserDataLayer, make_user):
    existing = await users.api.create_user(make_user("Alex Lee"))
    query = ListQuery()
    before = await users.list_users(query)

    with pytest.raises(UserAlreadyExistsError):
        await users.create_user(make_user("Duplicate", email=existing.email))

    entry = users.cache.get_entry(users_keys.list(query))
    assert entry is not None
    assert entry.value is before
    assert entry.stale

    after = await users.list_users(query)
    assert after.pagination.total == 1


async def test_update_is_optimistic_and_rolls_back(
    users: UserDataLayer, make_user, transport
):
    user = await users.api.create_user(make_user("Before", bio="bio"))
    query = ListQuery()
    await users.list_users(query)
    await users.get_user(user.id)

    transport.fail("PUT", f"/api/users/{user.id}", mode="connect")
    with pytest.raises(UpstreamError):
        await users.update_user(user.id, UserUpdate(name="After"))

    assert users.cache.get_data(users_keys.detail(user.id)).name == "Before"
    assert users.cache.get_data(users_keys.list(query)).data[0].name == "Before"

    updated = await users.update_user(user.id, UserUpdate(name="After", bio=""))
    assert updated.name == "After"
    assert updated.bio == ""
    assert (await users.get_user(user.id)).name == "After"
    assert (await users.list_users(query)).data[0].name == "After"


async def test_update_validation_error_rolls_back(users: UserDataLayer, make_user):
    user = await users.api.create_user(make_user("Valid"))
    await users.get_user(user.id)

    with pytest.raises(ValidationError):
        await users.update_user(user.id, UserUpdate(name="Bad\tName"))
    assert users.cache.get_data(users_keys.detail(user.id)).name == "Valid"


async def test_delete_removes_from_lists(users: UserDataLayer, make_user):
    keep = await users.api.create_user(make_user("Keep"))
    gone = await users.api.create_user(make_user("Gone"))
    query = ListQuery()
    await users.list_users(query)

    await users.delete_user(gone.id)

    page = users.cache.get_data(users_keys.list(query))
    assert [u.id for u in page.data] == [keep.id]
    assert page.pagination.total == 1
    with pytest.raises(UserNotFoundError):
        await users.api.get_user(gone.id)


async def test_delete_failure_restores_record(
    users: UserDataLayer, make_user, transport
):
    user = await users.api.create_user(make_user("Sticky"))
    query = ListQuery()
    before = await users.list_users(query)

    toasts = _Toasts()
    users.notifier = toasts

    transport.fail("DELETE", "/api/users/")
    with pytest.raises(UpstreamError):
        await users.delete_user(user.id)

    assert users.cache.get_data(users_keys.list(query)) is before
    assert toasts.errors == ["Failed to delete user; changes rolled back"]
    assert (await users.list_users(query)).pagination.total == 1


async def test_cancelled_mutation_rolls_back(users: UserDataLayer, make_user):
    user = await users.api.create_user(make_user("Cancelled"))
    query = ListQuery()
    before = await users.list_users(query)
    started = asyncio.Event()

    async def hang(_user_id):
        started.set()
        await asyncio.sleep(10)

    users.api.delete_user = hang  # type: ignore[method-assign]
    task = asyncio.create_task(users.delete_user(user.id))
    await started.wait()
    assert users.cache.get_data(users_keys.list(query)).pagination.total == 0

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert users.cache.get_data(users_keys.list(query)) is before


async def test_reconcile_refetches_stale_entries(users: UserDataLayer, make_user):
    user = await users.api.create_user(make_user("Detail"))
    await users.list_users(ListQuery())
    await users.get_user(user.id)
    await users.api.delete_user(user.id)

    users.cache.invalidate(users_keys.all)
    refreshed = await users.reconcile()

    assert refreshed == 1
    assert users.cache.get_entry(users_keys.detail(user.id)) is None
    assert users.cache.get_data(users_keys.list(ListQuery())).data == ()
