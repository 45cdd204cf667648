"""Tests for the API's error bodies and status mapping."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError, OperationalError

from src.domain.exceptions import (
    UpstreamError,
    UserAlreadyExistsError,
    UserNotFoundError,
    ValidationError,
)
from src.main import app
from src.presentation.api_routes import get_user_service
from src.presentation.error_handlers import format_user_message


class _FailingService:
    def __init__(self, error: Exception):
        self.error = error

    def get_stats(self):
        raise self.error


@pytest.fixture
def failing_client():
    def _make(error: Exception) -> TestClient:
        app.dependency_overrides[get_user_service] = lambda: _FailingService(error)
        return TestClient(app, raise_server_exceptions=False)

    yield _make
    app.dependency_overrides.clear()


def test_validation_error_has_field_details(client: TestClient):
    response = client.post("/api/users", json={"name": "", "role": "user"})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["message"] == "Request validation failed"
    by_field = {f["field"]: f for f in error["fields"]}
    assert by_field["email"]["code"] == "field_required"
    assert by_field["name"]["code"] == "field_invalid"
    assert all(f["message"] for f in error["fields"])


def test_domain_validation_error_body(client: TestClient):
    response = client.get("/api/users", params={"perPage": "3"})

    assert response.status_code == 400
    error = response.json()["error"]
    assert "perPage" in error["message"]
    assert error["fields"] == [
        {"field": "perPage", "code": "field_invalid", "message": error["message"]}
    ]


def test_not_found_body(client: TestClient):
    response = client.delete(f"/api/users/{'a' * 32}")
    assert response.status_code == 404
    assert response.json() == {"error": "Not found"}


def test_upstream_error_is_500(failing_client):
    response = failing_client(UpstreamError("Database unavailable")).get(
        "/api/users/stats"
    )
    assert response.status_code == 500
    assert response.json() == {"error": "Database unavailable"}


def test_unexpected_error_is_generic_500(failing_client):
    response = failing_client(RuntimeError("secret detail")).get("/api/users/stats")
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_database_errors(failing_client):
    integrity = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
    response = failing_client(integrity).get("/api/users/stats")
    assert response.status_code == 409
    assert response.json() == {"error": "Email already exists"}

    operational = OperationalError("SELECT", {}, Exception("disk I/O error"))
    response = failing_client(operational).get("/api/users/stats")
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (UserAlreadyExistsError("a@example.com"), "Email already exists"),
        (UserNotFoundError("abc"), "Not found"),
        (ValidationError("Name is required", field="name"), "Name is required"),
        (UpstreamError(""), "Internal server error"),
    ],
)
def test_format_user_message(error, expected):
    assert format_user_message(error) == expected


def test_upload_without_file(client: TestClient):
    response = client.post("/api/upload", data={"note": "no file"})
    assert response.status_code == 400
    assert response.json()["error"]["fields"][0]["field"] == "file"
