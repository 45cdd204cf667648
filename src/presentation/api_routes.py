from typing import Final

from fastapi import APIRouter, Depends, File, Path, Query, UploadFile, status
from fastapi.responses import Response
from sqlmodel import Session

from ..application.query_builder import ListQuery
from ..application.upload_service import store_avatar
from ..application.user_service import UserService, export_filename
from ..constants import API_PREFIX
from ..domain.schemas import (
    DeleteResult,
    UploadResult,
    UserCreate,
    UserPage,
    UserRecord,
    UserStats,
    UserUpdate,
)
from ..infrastructure.database.database import get_session
from .error_handlers import ErrorResponse

api_router: Final = APIRouter(
    prefix=API_PREFIX,
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request - Invalid input"},
        500: {"model": ErrorResponse, "description": "Unclassified failure"},
    },
)

_NOT_FOUND: Final = {
    404: {"model": ErrorResponse, "description": "User does not exist"}
}
_CONFLICT: Final = {
    409: {"model": ErrorResponse, "description": "Email already exists"}
}

_USER_EXAMPLE: Final = {
    "id": "3f2b8c1e9a4d4e0f8b7a6c5d4e3f2a1b",
    "name": "Alex Lee",
    "email": "alex@example.com",
    "phoneNumber": "+1-555-0101",
    "role": "user",
    "active": True,
    "avatar": "",
    "bio": "Enjoys building web apps and APIs.",
    "createdAt": "2025-01-01T12:00:00+00:00",
}


def get_user_service(session: Session = Depends(get_session)) -> UserService:
    return UserService(session)


@api_router.get(
    "/users",
    response_model=UserPage,
    tags=["users"],
    summary="List users",
    description="""
    Filter, sort and paginate users.

    **Search** matches name, email or phone number, case-insensitively.
    **Dates** (`YYYY-MM-DD`) bound the creation timestamp inclusively.
    Absent parameters take their defaults; malformed ones are rejected with 400.

    The envelope always carries `pagination` with `total` counting every match
    and `totalPages` of at least 1.
    """,
)
async def api_list_users(
    *,
    service: UserService = Depends(get_user_service),
    search: str | None = Query(None, description="Free-text search"),
    role: str | None = Query(None, description="Exact role match"),
    sort_by: str | None = Query(
        None, alias="sortBy", description="name, email, role or createdAt"
    ),
    order: str | None = Query(None, description="asc or desc"),
    date_from: str | None = Query(None, alias="dateFrom", examples=["2025-01-01"]),
    date_to: str | None = Query(None, alias="dateTo", examples=["2025-01-31"]),
    page: str | None = Query(None, description="Page number, from 1"),
    per_page: str | None = Query(
        None, alias="perPage", description="One of 5, 10, 25, 50, 100"
    ),
) -> UserPage:
    """List users matching the query parameters."""
    params = {
        "search": search,
        "role": role,
        "sortBy": sort_by,
        "order": order,
        "dateFrom": date_from,
        "dateTo": date_to,
        "page": page,
        "perPage": per_page,
    }
    query = ListQuery.from_params(
        {key: value for key, value in params.items() if value is not None}
    )
    return service.list_users(query)


@api_router.post(
    "/users",
    response_model=UserRecord,
    status_code=status.HTTP_201_CREATED,
    tags=["users"],
    summary="Create a user",
    description="""
    Create a user. `id` and `createdAt` are generated by the server; values sent
    for them are ignored. `active` defaults to true.

    Fails with 409 when the email is already taken.
    """,
    responses={
        **_CONFLICT,
        201: {
            "description": "User created",
            "content": {"application/json": {"example": _USER_EXAMPLE}},
        },
    },
)
async def api_create_user(
    *, service: UserService = Depends(get_user_service), payload: UserCreate
) -> UserRecord:
    """Create a new user."""
    return UserRecord.from_domain(service.create_user(payload))


@api_router.get(
    "/users/export",
    tags=["users"],
    summary="Export all users as CSV",
    description="""
    Download every user (newest first) as CSV with columns
    `ID, Name, Email, Phone Number, Role, Active, Avatar, Bio, Created At`.
    Missing optional values are empty strings.
    """,
    response_class=Response,
    responses={200: {"content": {"text/csv": {}}}},
)
async def api_export_users(
    *, service: UserService = Depends(get_user_service)
) -> Response:
    """Export all users as a CSV attachment."""
    csv_text = service.export_csv()
    return Response(
        content=csv_text,
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{export_filename()}"',
            "Cache-Control": "no-store",
        },
    )


@api_router.get(
    "/users/stats",
    response_model=UserStats,
    tags=["users"],
    summary="User statistics",
    description="Counts by role, active versus inactive, and sign-ups per day.",
)
async def api_user_stats(
    *, service: UserService = Depends(get_user_service)
) -> UserStats:
    """Aggregate figures for the analytics panel."""
    return service.get_stats()


@api_router.get(
    "/users/{user_id}",
    response_model=UserRecord,
    tags=["users"],
    summary="Get a user",
    responses=_NOT_FOUND,
)
async def api_get_user(
    *,
    service: UserService = Depends(get_user_service),
    user_id: str = Path(description="User identifier"),
) -> UserRecord:
    """Retrieve a single user."""
    return UserRecord.from_domain(service.get_user(user_id))


@api_router.put(
    "/users/{user_id}",
    response_model=UserRecord,
    tags=["users"],
    summary="Update a user",
    description="""
    Partially update a user. Only the fields sent are changed; `id` and
    `createdAt` cannot be sent. Empty strings clear optional fields.
    """,
    responses={**_NOT_FOUND, **_CONFLICT},
)
async def api_update_user(
    *,
    service: UserService = Depends(get_user_service),
    user_id: str = Path(description="User identifier"),
    payload: UserUpdate,
) -> UserRecord:
    """Apply a partial update to a user."""
    return UserRecord.from_domain(service.update_user(user_id, payload))


@api_router.delete(
    "/users/{user_id}",
    response_model=DeleteResult,
    tags=["users"],
    summary="Delete a user",
    description="Permanently delete a user. Deleting a missing user is a 404.",
    responses=_NOT_FOUND,
)
async def api_delete_user(
    *,
    service: UserService = Depends(get_user_service),
    user_id: str = Path(description="User identifier"),
) -> DeleteResult:
    """Delete a user."""
    service.delete_user(user_id)
    return DeleteResult(success=True)


@api_router.post(
    "/upload",
    response_model=UploadResult,
    tags=["uploads"],
    summary="Upload an avatar image",
    description="""
    Multipart upload with a single `file` field. Returns the URL the image is
    served from, suitable for a user's `avatar`.
    """,
)
async def api_upload_avatar(file: UploadFile | None = File(None)) -> UploadResult:
    """Store an avatar image and return its URL."""
    return UploadResult(url=await store_avatar(file))
