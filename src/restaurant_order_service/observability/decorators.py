"""OpenTelemetry tracing decorators."""

import asyncio
import contextlib
import functools
from collections.abc import Callable, Iterator
from typing import Any, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Span

from restaurant_order_service.errors import OrderPlacementError

# Type variable for generic function signatures
F = TypeVar("F", bound=Callable[..., Any])


@contextlib.contextmanager
def _stage_span(tracer: trace.Tracer, name: str, service_name: str, func_name: str) -> Iterator[Span]:
    """Open a span for one pipeline stage and record how it ended.

    Expected rejections (OrderPlacementError) are tagged with their error kind
    but not recorded as exceptions, so traces only flag genuine faults.
    """
    with tracer.start_as_current_span(name) as span:
        span.set_attribute("service.name", service_name)
        span.set_attribute("function.name", func_name)
        try:
            yield span
            span.set_attribute("success", True)
        except OrderPlacementError as e:
            span.set_attribute("success", False)
            span.set_attribute("error.kind", e.error_kind)
            raise
        except Exception as e:
            span.set_attribute("success", False)
            span.set_attribute("error.type", type(e).__name__)
            span.set_attribute("error.message", str(e))
            span.record_exception(e)
            raise


def traced(span_name: str | None = None, service_name: str = "order-svc") -> Callable[[F], F]:
    """Decorator to add OpenTelemetry tracing to a function.

    Creates a new span for the decorated function. Async functions are supported.

    Args:
        span_name: Name for the span (defaults to function name if not provided)
        service_name: Service name for span attributes

    Returns:
        Decorated function with tracing

    Example:
        @traced("price_order", service_name="order-svc")
        def price(self, restaurant_id: str, lines: list[ResolvedLine]) -> PricedOrder:
            ...
    """

    def decorator(func: F) -> F:
        name = span_name or func.__name__
        tracer = trace.get_tracer(service_name)

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            with _stage_span(tracer, name, service_name, func.__name__):
                return await func(*args, **kwargs)

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with _stage_span(tracer, name, service_name, func.__name__):
                return func(*args, **kwargs)

        if asyncio.iscoroutinefunction(func):
            return async_wrapper  # type: ignore
        return sync_wrapper  # type: ignore

    return decorator
