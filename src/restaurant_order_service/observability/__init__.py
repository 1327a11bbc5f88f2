"""Logging, OpenTelemetry instrumentation, and metrics for the order service."""

from restaurant_order_service.observability.config import configure_logging, setup_observability
from restaurant_order_service.observability.decorators import traced

__all__ = ["setup_observability", "configure_logging", "traced"]
