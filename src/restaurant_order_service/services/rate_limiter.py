"""Per-address order rate limiting.

The count lives in the order store, not in process memory, so every instance
of the service sees the same window. The client address comes from a proxy
header that can be shared or spoofed, which makes this a cost control rather
than a security boundary: an unknown address or a failed count admits the
request.
"""

import logging
from datetime import timedelta

from restaurant_order_service.models.timestamps import utc_now
from restaurant_order_service.repositories.order_repositories import OrderRepository

logger = logging.getLogger(__name__)


class RateLimiter:
    """Rejects clients that created too many orders within a trailing window."""

    def __init__(
        self,
        order_repository: OrderRepository,
        max_orders: int = 15,
        window_minutes: int = 15,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            order_repository: Repository used to count recent orders
            max_orders: Orders allowed per address within the window
            window_minutes: Length of the trailing window
        """
        self.order_repository = order_repository
        self.max_orders = max_orders
        self.window = timedelta(minutes=window_minutes)

    async def check_and_admit(self, client_address: str | None) -> bool:
        """Decide whether a new order from this address may proceed.

        Args:
            client_address: Client address derived from connection headers, if known

        Returns:
            bool: True if admitted, False if the address reached the ceiling
        """
        if not client_address:
            logger.debug("Client address unknown, skipping rate limit")
            return True

        since = utc_now() - self.window
        count = self.order_repository.count_orders_by_address_since(client_address, since)

        if count is None:
            logger.warning("Rate limit count unavailable, admitting request")
            return True

        if count >= self.max_orders:
            logger.warning(f"Rate limit exceeded for address {client_address}: {count} orders")
            return False

        return True
