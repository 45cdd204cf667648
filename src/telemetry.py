"""OpenTelemetry configuration for the user console."""

import os
import sys

from opentelemetry import metrics, trace
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from prometheus_client import start_http_server

from .infrastructure.database.database import get_main_engine
from .logging_config import get_logger

logger = get_logger(__name__)

_METRICS_PORTS = (8080, 8081)


def _start_metrics_server() -> int:
    for port in _METRICS_PORTS:
        try:
            start_http_server(port)
        except OSError:
            logger.warning("Prometheus port busy", port=port)
            continue
        return port
    raise OSError(f"No free Prometheus port in {_METRICS_PORTS}")


def setup_telemetry(app) -> None:
    """Configure OpenTelemetry tracing and metrics for the FastAPI application.

    Enabled with ``ENABLE_TELEMETRY=1``; never enabled under pytest.
    """
    if not os.getenv("ENABLE_TELEMETRY"):
        return

    if "pytest" in sys.modules or os.getenv("TESTING"):
        logger.info("Skipping OpenTelemetry setup during tests")
        return

    try:
        prometheus_reader = PrometheusMetricReader()
        metrics.set_meter_provider(MeterProvider(metric_readers=[prometheus_reader]))
        port = _start_metrics_server()
        logger.info("Prometheus metrics server started", port=port)

        tracer_provider = TracerProvider()
        tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        trace.set_tracer_provider(tracer_provider)

        FastAPIInstrumentor.instrument_app(app)
        SQLAlchemyInstrumentor().instrument(engine=get_main_engine())
        logger.info("OpenTelemetry tracing and metrics setup completed")

    except Exception as e:
        # Telemetry is optional; the API keeps serving without it
        logger.error("Failed to setup OpenTelemetry", error=str(e))
