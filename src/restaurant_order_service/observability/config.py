"""OpenTelemetry and logging configuration."""

import logging
import os
from typing import Any

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.botocore import BotocoreInstrumentor
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from pythonjsonlogger import jsonlogger

logger = logging.getLogger(__name__)

# Third-party loggers that are too chatty at INFO inside Lambda
NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "httpx", "httpcore")


def get_service_resource() -> Resource:
    """Create OpenTelemetry resource with service identification.

    Returns:
        Resource with service name and environment attributes
    """
    return Resource.create(
        {
            "service.name": os.getenv("OTEL_SERVICE_NAME", "order-svc"),
            "deployment.environment": os.getenv("ENVIRONMENT", "development"),
        }
    )


def setup_providers(resource: Resource, enable_exporters: bool) -> None:
    """Install global tracer and meter providers.

    With exporters enabled, spans go through a batch processor and metrics are
    pushed every minute to the OTLP/HTTP endpoint. Without exporters the
    providers still exist so spans and instruments are valid no-ops.

    Args:
        resource: Service resource for identification
        enable_exporters: Whether to attach OTLP exporters
    """
    tracer_provider = TracerProvider(resource=resource)

    if enable_exporters:
        otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4318")
        tracer_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{otlp_endpoint}/v1/traces"))
        )
        reader = PeriodicExportingMetricReader(
            OTLPMetricExporter(endpoint=f"{otlp_endpoint}/v1/metrics"),
            export_interval_millis=60000,
        )
        meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
        logger.info(f"OpenTelemetry exporters configured with endpoint: {otlp_endpoint}")
    else:
        meter_provider = MeterProvider(resource=resource)

    trace.set_tracer_provider(tracer_provider)
    metrics.set_meter_provider(meter_provider)


def setup_observability(app: Any = None, enable_exporters: bool = True) -> None:
    """Initialize OpenTelemetry with tracing, metrics, and auto-instrumentation.

    Args:
        app: Optional FastAPI application to instrument
        enable_exporters: Whether to enable OTLP exporters (always off when ENVIRONMENT=test)
    """
    if os.getenv("ENVIRONMENT", "development") == "test":
        enable_exporters = False

    setup_providers(get_service_resource(), enable_exporters)

    # Bot-check verification calls and DynamoDB operations
    HTTPXClientInstrumentor().instrument()
    BotocoreInstrumentor().instrument()

    if app is not None:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("FastAPI application instrumented")

    logger.info("OpenTelemetry observability fully configured")


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structured JSON logging on the root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL);
            LOG_LEVEL in the environment takes precedence
    """
    level_str = os.getenv("LOG_LEVEL", log_level).upper()
    level = getattr(logging, level_str, logging.INFO)

    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        rename_fields={"levelname": "level"},
        timestamp=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Lambda pre-installs a handler; replace it so every line is JSON
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logger.info(f"Structured JSON logging configured at {level_str} level")
