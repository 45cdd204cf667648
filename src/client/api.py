"""Async HTTP client for the users API.

Responses are parsed into the shared wire schemas and HTTP failures are mapped
back onto the domain exception taxonomy, so callers handle the same errors the
service raises.
"""

from typing import Any, Final

import httpx

from ..application.query_builder import ListQuery
from ..config import settings
from ..domain.exceptions import (
    UpstreamError,
    UserAlreadyExistsError,
    UserNotFoundError,
    ValidationError,
)
from ..domain.schemas import UploadResult, UserCreate, UserPage, UserRecord, UserUpdate
from ..logging_config import get_logger

logger: Final = get_logger(__name__)

_OPTIONAL_WIRE_FIELDS: Final = ("phoneNumber", "avatar", "bio")


def _error_detail(response: httpx.Response) -> tuple[str, str | None]:
    """Message and first offending field from an error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase, None

    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        fields = error.get("fields") or []
        field = fields[0].get("field") if fields else None
        return str(error.get("message", "Validation failed")), field
    if error:
        return str(error), None
    return response.reason_phrase, None


def raise_for_error(
    response: httpx.Response, user_id: str | None = None, email: str | None = None
) -> None:
    """Translate an error response into a domain exception."""
    if response.is_success:
        return

    message, field = _error_detail(response)
    if response.status_code == 400:
        raise ValidationError(message, field=field)
    if response.status_code == 404:
        raise UserNotFoundError(user_id or response.request.url.path)
    if response.status_code == 409:
        raise UserAlreadyExistsError(email or "")
    raise UpstreamError(f"{response.status_code}: {message}")


class UsersApi:
    """Thin typed wrapper around ``httpx.AsyncClient``."""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    @classmethod
    def from_settings(cls) -> "UsersApi":
        client = httpx.AsyncClient(
            base_url=settings.api_base_url, timeout=settings.api_timeout_seconds
        )
        return cls(client)

    async def __aenter__(self) -> "UsersApi":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        *,
        user_id: str | None = None,
        email: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("API request failed", method=method, url=url, error=str(e))
            raise UpstreamError(f"Request to {url} failed: {e}") from e

        logger.debug(
            "API request", method=method, url=url, status_code=response.status_code
        )
        raise_for_error(response, user_id=user_id, email=email)
        return response

    async def list_users(self, query: ListQuery) -> UserPage:
        response = await self._request("GET", "/users", params=query.to_params())
        return UserPage.model_validate(response.json())

    async def get_user(self, user_id: str) -> UserRecord:
        response = await self._request("GET", f"/users/{user_id}", user_id=user_id)
        return UserRecord.model_validate(response.json())

    async def create_user(self, payload: UserCreate) -> UserRecord:
        body = payload.model_dump(mode="json", by_alias=True, exclude_none=True)
        response = await self._request(
            "POST", "/users", json=body, email=payload.email
        )
        return UserRecord.model_validate(response.json())

    async def update_user(self, user_id: str, payload: UserUpdate) -> UserRecord:
        body = payload.model_dump(mode="json", by_alias=True, exclude_unset=True)
        # A cleared optional field travels as an empty string
        for key in _OPTIONAL_WIRE_FIELDS:
            if key in body and body[key] is None:
                body[key] = ""
        response = await self._request(
            "PUT", f"/users/{user_id}", json=body, user_id=user_id, email=payload.email
        )
        return UserRecord.model_validate(response.json())

    async def delete_user(self, user_id: str) -> None:
        await self._request("DELETE", f"/users/{user_id}", user_id=user_id)

    async def export_csv(self) -> tuple[str, str]:
        """Return ``(filename, csv_text)``."""
        response = await self._request("GET", "/users/export")
        disposition = response.headers.get("content-disposition", "")
        filename = disposition.partition("filename=")[2].strip('"') or "users.csv"
        return filename, response.text

    async def upload_avatar(
        self, filename: str, content: bytes, content_type: str
    ) -> str:
        response = await self._request(
            "POST", "/upload", files={"file": (filename, content, content_type)}
        )
        return UploadResult.model_validate(response.json()).url
