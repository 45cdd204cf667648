from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from src.config import settings

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture(autouse=True)
def upload_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path))
    monkeypatch.setattr(settings, "public_base_url", "")
    return tmp_path


def test_upload_avatar(client: TestClient, upload_dir: Path):
    response = client.post(
        "/api/upload", files={"file": ("me.png", PNG_BYTES, "image/png")}
    )

    assert response.status_code == 200
    url = response.json()["url"]
    assert url.startswith("/uploads/")
    assert url.endswith(".png")

    stored = upload_dir / url.rsplit("/", 1)[1]
    assert stored.read_bytes() == PNG_BYTES


def test_upload_url_uses_public_base(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
):
    monkeypatch.setattr(settings, "public_base_url", "https://cdn.example.com/")
    response = client.post(
        "/api/upload", files={"file": ("me.jpg", b"\xff\xd8\xff", "image/jpeg")}
    )

    assert response.status_code == 200
    assert response.json()["url"].startswith("https://cdn.example.com/uploads/")


def test_uploaded_url_is_a_valid_avatar(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
):
    monkeypatch.setattr(settings, "public_base_url", "http://localhost:8000")
    url = client.post(
        "/api/upload", files={"file": ("me.png", PNG_BYTES, "image/png")}
    ).json()["url"]

    response = client.post(
        "/api/users",
        json={"name": "Pic", "email": "pic@example.com", "role": "user", "avatar": url},
    )
    assert response.status_code == 201
    assert response.json()["avatar"] == url


def test_upload_rejects_non_images(client: TestClient, upload_dir: Path):
    response = client.post(
        "/api/upload", files={"file": ("notes.txt", b"hello", "text/plain")}
    )

    assert response.status_code == 400
    assert response.json()["error"]["fields"][0]["field"] == "file"
    assert list(upload_dir.iterdir()) == []


def test_upload_rejects_oversized(
    client: TestClient, upload_dir: Path, monkeypatch: pytest.MonkeyPatch
):
    monkeypatch.setattr(settings, "max_upload_bytes", 16)
    response = client.post(
        "/api/upload", files={"file": ("big.png", PNG_BYTES, "image/png")}
    )

    assert response.status_code == 400
    assert list(upload_dir.iterdir()) == []


def test_upload_rejects_empty(client: TestClient, upload_dir: Path):
    response = client.post(
        "/api/upload", files={"file": ("empty.png", b"", "image/png")}
    )

    assert response.status_code == 400
    assert list(upload_dir.iterdir()) == []
