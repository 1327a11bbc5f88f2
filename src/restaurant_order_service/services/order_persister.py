"""Order persistence with compensating rollback.

The order store offers atomicity per call, not across the header and line
tables, so an order is written as a small saga:

    insert header -> insert all lines (one transaction) -> on failure delete header

The compensation is best effort. When the delete itself fails the orphaned
header is logged at CRITICAL for manual reconciliation and counted in metrics;
the caller still receives the original persistence error.
"""

import logging
import secrets
import uuid

from restaurant_order_service.errors import PersistenceFailure
from restaurant_order_service.models.order_models import (
    Order,
    OrderLine,
    OrderStatusEnum,
    PricedOrder,
)
from restaurant_order_service.models.timestamps import utc_now
from restaurant_order_service.observability import traced
from restaurant_order_service.observability.metrics import record_rollback_failure
from restaurant_order_service.repositories.order_repositories import (
    OrderLineRepository,
    OrderRepository,
)

logger = logging.getLogger(__name__)


def generate_order_token() -> str:
    """Create an unguessable tracking token (256 bits of randomness)."""
    return secrets.token_urlsafe(32)


class OrderPersister:
    """Writes an order header and its lines as one logical unit."""

    def __init__(
        self,
        order_repository: OrderRepository,
        line_repository: OrderLineRepository,
    ) -> None:
        """Initialize the persister.

        Args:
            order_repository: Repository for order headers
            line_repository: Repository for order lines
        """
        self.order_repository = order_repository
        self.line_repository = line_repository

    def build_order(self, priced_order: PricedOrder) -> Order:
        """Build the pending order header for a priced order."""
        coupon = priced_order.coupon
        return Order(
            order_id=str(uuid.uuid4()),
            restaurant_id=priced_order.restaurant_id,
            status=OrderStatusEnum.PENDING,
            subtotal_cents=priced_order.subtotal_cents,
            discount_cents=priced_order.discount_cents,
            total_cents=priced_order.total_cents,
            currency_code=priced_order.currency_code,
            coupon_id=coupon.coupon_id if coupon else None,
            coupon_code=coupon.code if coupon else None,
            discount_type=coupon.discount_type if coupon else None,
            ip_address=priced_order.ip_address,
            table_label=priced_order.table_label,
            order_token=generate_order_token(),
            payment_method=priced_order.payment_method,
            created_at=utc_now(),
        )

    @staticmethod
    def build_lines(order: Order, priced_order: PricedOrder) -> list[OrderLine]:
        """Build the order lines referencing the header id."""
        return [
            OrderLine(
                order_id=order.order_id,
                line_number=index,
                restaurant_id=order.restaurant_id,
                menu_item_id=line.menu_item_id,
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                line_total_cents=line.line_total_cents,
                name_snapshot=line.name_snapshot,
                variant_id=line.variant_id,
                addons=list(line.addons),
                notes=line.notes,
            )
            for index, line in enumerate(priced_order.lines, start=1)
        ]

    @traced("persist_order", service_name="order-svc")
    async def persist(self, priced_order: PricedOrder) -> tuple[Order, list[OrderLine]]:
        """Store an order header and all of its lines.

        Args:
            priced_order: Priced order including discount and request context

        Returns:
            Tuple of (order, lines) as stored

        Raises:
            PersistenceFailure: If the header or the lines could not be written
        """
        order = self.build_order(priced_order)
        lines = self.build_lines(order, priced_order)

        if not self.order_repository.insert_order(order):
            logger.error(f"Order header insert failed for restaurant {order.restaurant_id}")
            raise PersistenceFailure()

        try:
            lines_written = self.line_repository.insert_lines(lines)
        except Exception:
            # Once the header exists, every failure path goes through compensation
            logger.exception(f"Unexpected error inserting lines for order {order.order_id}")
            lines_written = False

        if not lines_written:
            logger.error(f"Order line insert failed for order {order.order_id}, rolling back")
            self._compensate(order)

        logger.info(
            f"Order created successfully: {order.order_id}, total {order.total_cents} cents"
        )
        return order, lines

    def _compensate(self, order: Order) -> None:
        """Delete a header whose lines failed to insert, then raise.

        Raises:
            PersistenceFailure: Always; carries the order id when the delete failed
        """
        if self.order_repository.delete_order(order.order_id):
            logger.info(f"Rolled back order header {order.order_id}")
            raise PersistenceFailure()

        logger.critical(
            "Compensating delete failed; order header has no lines and needs manual reconciliation",
            extra={
                "order_id": order.order_id,
                "order_token": order.order_token,
                "restaurant_id": order.restaurant_id,
            },
        )
        record_rollback_failure(order.restaurant_id)
        raise PersistenceFailure(orphaned_order_id=order.order_id)
