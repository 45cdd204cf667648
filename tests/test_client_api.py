import httpx
import pytest

from src.application.query_builder import ListQuery
from src.client.api import UsersApi, raise_for_error
from src.config import settings
from src.domain.exceptions import (
    UpstreamError,
    UserAlreadyExistsError,
    UserNotFoundError,
    ValidationError,
)
from src.domain.schemas import UserCreate, UserUpdate


def _response(status_code: int, **kwargs) -> httpx.Response:
    request = httpx.Request("GET", "http://test/api/users/abc")
    return httpx.Response(status_code, request=request, **kwargs)


def test_raise_for_error_mapping():
    raise_for_error(_response(200, json={}))

    with pytest.raises(ValidationError) as exc_info:
        raise_for_error(
            _response(
                400,
                json={
                    "error": {
                        "message": "Invalid perPage",
                        "fields": [
                            {
                                "field": "perPage",
                                "code": "field_invalid",
                                "message": "x",
                            }
                        ],
                    }
                },
            )
        )
    assert exc_info.value.field == "perPage"
    assert str(exc_info.value) == "Invalid perPage"

    with pytest.raises(UserNotFoundError) as not_found:
        raise_for_error(_response(404, json={"error": "Not found"}), user_id="abc")
    assert not_found.value.user_id == "abc"

    with pytest.raises(UserAlreadyExistsError):
        raise_for_error(_response(409, json={"error": "Email already exists"}))

    with pytest.raises(UpstreamError, match="502"):
        raise_for_error(_response(502, text="Bad gateway"))


async def test_round_trip_through_app(api: UsersApi, make_user):
    created = await api.create_user(make_user("Alex Lee", bio="Hi"))
    assert created.bio == "Hi"

    page = await api.list_users(ListQuery(search="alex", per_page=5))
    assert [u.id for u in page.data] == [created.id]

    updated = await api.update_user(created.id, UserUpdate(bio=None))
    assert updated.bio == ""

    with pytest.raises(ValidationError):
        await api.list_users(ListQuery(role="user").model_copy(update={"per_page": 7}))


async def test_alex_lee_flow(api: UsersApi):
    alex = await api.create_user(
        UserCreate(name="Alex Lee", email="alex@example.com", role="user", active=True)
    )
    await api.create_user(
        UserCreate(name="Zoe Brown", email="zoe@example.com", role="user")
    )
    assert len(alex.id) == 32

    with pytest.raises(UserAlreadyExistsError):
        await api.create_user(
            UserCreate(name="Alex Again", email="alex@example.com", role="user")
        )

    page = await api.list_users(
        ListQuery(role="user", sort_by="name", order="asc")
    )
    assert [u.name for u in page.data] == ["Alex Lee", "Zoe Brown"]

    await api.delete_user(alex.id)
    with pytest.raises(UserNotFoundError):
        await api.get_user(alex.id)


async def test_export_and_upload(api: UsersApi, make_user, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path))
    monkeypatch.setattr(settings, "public_base_url", "")
    await api.create_user(make_user("Exported"))

    filename, text = await api.export_csv()
    assert filename.startswith("users_") and filename.endswith(".csv")
    assert text.splitlines()[0].startswith("ID,Name,Email")

    url = await api.upload_avatar("me.gif", b"GIF89a", "image/gif")
    assert url.startswith("/uploads/") and url.endswith(".gif")


async def test_network_failure_is_upstream_error(api: UsersApi, transport):
    transport.fail("GET", "/api/users", mode="connect")
    with pytest.raises(UpstreamError):
        await api.list_users(ListQuery())
