"""Custom metrics for the order placement service."""

from opentelemetry import metrics

# Get meter for order service
meter = metrics.get_meter("order-svc")

orders_placed_counter = meter.create_counter(
    name="orders_placed_total",
    description="Total number of orders placed by restaurant",
    unit="1",
)

order_rejections_counter = meter.create_counter(
    name="order_rejections_total",
    description="Total number of rejected order placements by error kind",
    unit="1",
)

coupon_redemptions_counter = meter.create_counter(
    name="coupon_redemptions_total",
    description="Coupon redemption attempts by outcome",
    unit="1",
)

rollback_failures_counter = meter.create_counter(
    name="order_rollback_failures_total",
    description="Order headers left without lines after a failed compensating delete",
    unit="1",
)

order_value_histogram = meter.create_histogram(
    name="order_value_cents",
    description="Final total of placed orders",
    unit="{cent}",
)

placement_duration_histogram = meter.create_histogram(
    name="order_placement_duration_seconds",
    description="Duration of order placement requests",
    unit="s",
)


def record_order_placed(restaurant_id: str, total_cents: int) -> None:
    """Record a successfully placed order.

    Args:
        restaurant_id: Restaurant the order was placed with
        total_cents: Final order total in cents
    """
    orders_placed_counter.add(1, {"restaurant_id": restaurant_id})
    order_value_histogram.record(total_cents, {"restaurant_id": restaurant_id})


def record_order_rejected(error_kind: str) -> None:
    """Record a rejected order placement.

    Args:
        error_kind: Error kind that ended the pipeline (e.g. "RateLimited")
    """
    order_rejections_counter.add(1, {"error_kind": error_kind})


def record_coupon_redemption(outcome: str) -> None:
    """Record a coupon redemption attempt.

    Args:
        outcome: One of "redeemed", "rejected", "released", "error"
    """
    coupon_redemptions_counter.add(1, {"outcome": outcome})


def record_rollback_failure(restaurant_id: str) -> None:
    """Record an order header that could not be rolled back."""
    rollback_failures_counter.add(1, {"restaurant_id": restaurant_id})


def record_placement_duration(duration_seconds: float, success: bool) -> None:
    """Record the duration of an order placement.

    Args:
        duration_seconds: Duration in seconds
        success: Whether the order was placed
    """
    placement_duration_histogram.record(duration_seconds, {"success": success})
