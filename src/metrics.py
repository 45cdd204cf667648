"""Business metrics for the user console."""

from opentelemetry import metrics

from .logging_config import get_logger

logger = get_logger(__name__)

# Get meter for creating instruments
meter = metrics.get_meter(__name__)

# HTTP Request Metrics
http_request_duration = meter.create_histogram(
    name="http_request_duration_seconds",
    description="Duration of HTTP requests in seconds",
    unit="s",
)

http_requests_total = meter.create_counter(
    name="http_requests_total",
    description="Total number of HTTP requests",
)

http_request_errors = meter.create_counter(
    name="http_request_errors_total",
    description="Total number of HTTP request errors",
)

# Business Metrics
user_operations_total = meter.create_counter(
    name="user_operations_total",
    description="Total number of user create/update/delete/export/upload operations",
)

users_stored_delta = meter.create_up_down_counter(
    name="users_stored_delta",
    description="Users created minus users deleted since process start",
)

# Client data layer
optimistic_rollbacks_total = meter.create_counter(
    name="optimistic_rollbacks_total",
    description="Optimistic cache updates rolled back after a failed mutation",
)

bulk_deletes_total = meter.create_counter(
    name="bulk_deletes_total",
    description="Bulk delete outcomes per record",
)


def record_http_request(method: str, endpoint: str, status_code: int, duration: float):
    """Record HTTP request metrics."""
    labels = {"method": method, "endpoint": endpoint, "status_code": str(status_code)}

    http_request_duration.record(duration, labels)
    http_requests_total.add(1, labels)

    if status_code >= 400:
        http_request_errors.add(1, labels)


def record_user_operation(operation: str):
    """Record a successful user operation."""
    user_operations_total.add(1, {"operation": operation})
    if operation == "create":
        users_stored_delta.add(1)
    elif operation == "delete":
        users_stored_delta.add(-1)


def record_rollback(mutation: str):
    optimistic_rollbacks_total.add(1, {"mutation": mutation})


def record_bulk_delete(outcome: str, count: int = 1):
    if count:
        bulk_deletes_total.add(count, {"outcome": outcome})


logger.info("Business metrics instruments created")
