import socket
from contextlib import asynccontextmanager
from typing import Final

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .config import settings
from .constants import UPLOADS_MOUNT
from .domain.exceptions import DomainError, UpstreamError, ValidationError
from .infrastructure.database.database import (
    dispose_engine,
    get_main_engine,
    init_db,
)
from .logging_config import get_logger, setup_logging
from .logging_utils import log_system_info
from .middleware import log_requests_middleware
from .presentation.api_routes import api_router
from .presentation.error_handlers import (
    GENERIC_FAILURE,
    error_response,
    handle_domain_error,
    handle_request_validation_error,
)
from .telemetry import setup_telemetry


@asynccontextmanager
async def lifespan(_app: FastAPI):
    setup_logging()
    logger = get_logger(__name__)

    init_db(get_main_engine())
    logger.info("Database initialized", url=settings.database_url.split("@")[-1])

    hostname = socket.gethostname()
    try:
        ip_addr = socket.gethostbyname(hostname)
    except OSError:
        ip_addr = "unknown"
    log_system_info(hostname, ip_addr, settings.debug)

    yield

    dispose_engine()
    logger.info("Application shutdown completed")


app: Final = FastAPI(
    title=settings.app_name,
    version=settings.version,
    debug=settings.debug,
    lifespan=lifespan,
    description="""
**User Console** - REST API behind a user-management console.

## Features

- **Listing** with free-text search, role and date filters, sorting and pagination
- **Create, edit and delete** users with unique email enforcement
- **CSV export** of every user
- **Avatar upload** returning a hosted image URL
- **Statistics** for the analytics panel

Bulk delete with undo is a client-side workflow built on these endpoints: the
client snapshots users before deleting them and re-creates them on undo.

## Errors

Errors are returned as `{"error": "..."}` with status 404 (not found),
409 (email conflict) or 500. Validation failures return 400 with
`{"error": {"message": ..., "fields": [...]}}`.
    """.strip(),
    openapi_tags=[
        {"name": "users", "description": "User records"},
        {"name": "uploads", "description": "Avatar image uploads"},
    ],
)

app.mount(
    UPLOADS_MOUNT,
    StaticFiles(directory=settings.upload_dir, check_dir=False),
    name="uploads",
)

setup_telemetry(app)

app.middleware("http")(log_requests_middleware)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    """Global handler for domain-specific errors."""
    logger = get_logger(__name__)
    log = logger.error if isinstance(exc, UpstreamError) else logger.warning
    log(
        "Domain error occurred",
        error_type=type(exc).__name__,
        error_message=str(exc),
        field=exc.field if isinstance(exc, ValidationError) else None,
        path=request.url.path,
        method=request.method,
    )
    return handle_domain_error(exc, request)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Global handler for request-shape validation errors."""
    logger = get_logger(__name__)
    logger.warning(
        "Request validation error occurred",
        errors=[{"loc": e["loc"], "type": e["type"]} for e in exc.errors()],
        path=request.url.path,
        method=request.method,
    )
    return handle_request_validation_error(exc, request)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    """Global handler for database errors that escaped the repository."""
    logger = get_logger(__name__)
    logger.error(
        "Database error occurred",
        error_type=type(exc).__name__,
        error_message=str(exc),
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )

    if isinstance(exc, IntegrityError):
        return error_response(status.HTTP_409_CONFLICT, "Email already exists")
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_FAILURE)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Global handler for unexpected errors."""
    logger = get_logger(__name__)
    logger.error(
        "Unexpected error occurred",
        error_type=type(exc).__name__,
        error_message=str(exc),
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_FAILURE)


app.include_router(api_router)
