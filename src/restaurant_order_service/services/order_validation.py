"""Boundary validation for order placement requests.

The storefront payload is an untrusted, loosely typed envelope. It is parsed
into an OrderRequest before any business logic touches it, and cart size rules
are enforced here so they can be shared by every stage that needs them.
"""

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from restaurant_order_service.errors import InvalidRequestShape
from restaurant_order_service.models.order_models import CartLine, OrderRequest

logger = logging.getLogger(__name__)

# Largest integer that survives a round trip through an IEEE 754 double,
# which is how JSON clients represent numbers.
MAX_SAFE_INTEGER = 2**53 - 1


@dataclass(frozen=True)
class OrderLimits:
    """Ceilings applied to every order.

    Attributes:
        max_lines: Maximum number of distinct cart lines
        min_quantity: Minimum quantity per line
        max_quantity: Maximum quantity per line
        max_total_items: Maximum sum of quantities across all lines
        max_order_value_cents: Maximum subtotal in cents ($10,000)
        max_safe_integer: Overflow guard for line totals and the running subtotal
    """

    max_lines: int = 50
    min_quantity: int = 1
    max_quantity: int = 100
    max_total_items: int = 500
    max_order_value_cents: int = 1_000_000
    max_safe_integer: int = MAX_SAFE_INTEGER


def _describe_validation_error(error: ValidationError) -> str:
    """Build a short client-facing message from the first pydantic error."""
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "Invalid value")
    if first.get("type") == "missing":
        return f"Missing required field: {location}"
    return f"Invalid field {location}: {message}" if location else message


def parse_order_request(payload: Any) -> OrderRequest:
    """Parse a decoded JSON body into an OrderRequest.

    Args:
        payload: Decoded JSON body

    Returns:
        OrderRequest: Validated request envelope

    Raises:
        InvalidRequestShape: If the payload is not an object or fails validation
    """
    if not isinstance(payload, dict):
        raise InvalidRequestShape("Request body must be a JSON object")

    try:
        return OrderRequest.model_validate(payload)
    except ValidationError as e:
        message = _describe_validation_error(e)
        logger.warning(f"Rejected malformed order request: {message}")
        raise InvalidRequestShape(message) from e


def validate_cart_limits(lines: list[CartLine], limits: OrderLimits) -> int:
    """Check cart size rules.

    Args:
        lines: Parsed cart lines
        limits: Order ceilings to apply

    Returns:
        int: Total quantity across all lines

    Raises:
        InvalidRequestShape: If any rule is violated
    """
    if not lines:
        raise InvalidRequestShape("Order must contain at least one item")

    if len(lines) > limits.max_lines:
        raise InvalidRequestShape(
            f"Order cannot contain more than {limits.max_lines} different items"
        )

    total_quantity = 0
    for line in lines:
        if line.quantity < limits.min_quantity:
            raise InvalidRequestShape(
                f"Quantity must be a positive integer (minimum {limits.min_quantity})"
            )

        if line.quantity > limits.max_quantity:
            raise InvalidRequestShape(f"Quantity cannot exceed {limits.max_quantity} per item")

        total_quantity += line.quantity

    if total_quantity > limits.max_total_items:
        raise InvalidRequestShape(
            f"Total items in order cannot exceed {limits.max_total_items}"
        )

    return total_quantity
