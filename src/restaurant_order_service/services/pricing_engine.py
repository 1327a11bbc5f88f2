"""Order pricing from resolved catalog lines."""

import logging

from restaurant_order_service.errors import OrderTooLarge
from restaurant_order_service.models.order_models import PricedLine, PricedOrder, ResolvedLine
from restaurant_order_service.observability import traced
from restaurant_order_service.services.order_validation import OrderLimits

logger = logging.getLogger(__name__)


class PricingEngine:
    """Computes unit prices, line totals, and the order subtotal.

    unit price = (variant price if selected, else base price) + sum(add-on prices)
    line total = unit price * quantity

    Python integers do not wrap, but totals are still bounded by the largest
    safe integer so they stay exact for JSON clients. The bound is checked per
    line and for the running subtotal; the maximum order value is checked once
    the subtotal is complete.
    """

    def __init__(self, limits: OrderLimits | None = None) -> None:
        self.limits = limits or OrderLimits()

    @staticmethod
    def unit_price(line: ResolvedLine) -> int:
        """Authoritative unit price of a resolved line in cents."""
        base = line.variant_price_cents if line.variant_price_cents is not None else line.base_price_cents
        return base + sum(addon.price_cents for addon in line.addons)

    @traced("price_order", service_name="order-svc")
    def price(self, restaurant_id: str, resolved_lines: list[ResolvedLine]) -> PricedOrder:
        """Price a list of resolved lines.

        Args:
            restaurant_id: Restaurant the order is placed with
            resolved_lines: Lines produced by the catalog revaluator

        Returns:
            PricedOrder: Persistable lines and subtotal, with no discount applied

        Raises:
            OrderTooLarge: If a line total or the subtotal exceeds the safe range,
                or the subtotal exceeds the maximum order value
        """
        subtotal = 0
        priced_lines: list[PricedLine] = []

        for line in resolved_lines:
            unit_price = self.unit_price(line)
            line_total = unit_price * line.quantity

            if unit_price > self.limits.max_safe_integer or line_total > self.limits.max_safe_integer:
                logger.warning(f"Line total overflow for item {line.menu_item_id}")
                raise OrderTooLarge()

            subtotal += line_total
            if subtotal > self.limits.max_safe_integer:
                logger.warning("Order subtotal overflow")
                raise OrderTooLarge()

            priced_lines.append(
                PricedLine(
                    menu_item_id=line.menu_item_id,
                    quantity=line.quantity,
                    unit_price_cents=unit_price,
                    line_total_cents=line_total,
                    name_snapshot=line.name_snapshot,
                    variant_id=line.variant_id,
                    addons=list(line.addons),
                    notes=line.notes,
                )
            )

        if subtotal > self.limits.max_order_value_cents:
            max_value = self.limits.max_order_value_cents // 100
            raise OrderTooLarge(f"Order value cannot exceed ${max_value:,}")

        return PricedOrder(restaurant_id=restaurant_id, lines=priced_lines, subtotal_cents=subtotal)
