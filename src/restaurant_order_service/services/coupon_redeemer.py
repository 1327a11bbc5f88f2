"""Coupon redemption for order placement.

A coupon that cannot be applied never fails the order: the order is placed
without a discount. The usage counter is only ever changed through the
repository's atomic conditional update.
"""

import logging

from restaurant_order_service.models.coupon_models import CouponRedemption, normalize_coupon_code
from restaurant_order_service.models.timestamps import utc_now
from restaurant_order_service.observability import traced
from restaurant_order_service.observability.metrics import record_coupon_redemption
from restaurant_order_service.repositories.coupon_repository import CouponRepository

logger = logging.getLogger(__name__)


class CouponRedeemer:
    """Validates and consumes one use of a coupon in a single store operation."""

    def __init__(self, coupon_repository: CouponRepository) -> None:
        """Initialize the redeemer.

        Args:
            coupon_repository: Repository providing the atomic redeem operation
        """
        self.coupon_repository = coupon_repository

    @traced("redeem_coupon", service_name="order-svc")
    async def redeem(
        self, code: str | None, restaurant_id: str, subtotal_cents: int
    ) -> CouponRedemption | None:
        """Redeem a coupon code against a subtotal.

        The discount is computed from stored coupon state, never from client
        input, and is not clamped to the subtotal here.

        Args:
            code: Coupon code as typed by the customer
            restaurant_id: Restaurant the order is placed with
            subtotal_cents: Order subtotal in cents

        Returns:
            CouponRedemption if a use was consumed, None otherwise
        """
        normalized = normalize_coupon_code(code)
        if not normalized:
            return None

        try:
            coupon = self.coupon_repository.redeem_coupon(
                restaurant_id=restaurant_id,
                code=normalized,
                subtotal_cents=subtotal_cents,
                now=utc_now(),
            )
        except Exception as e:
            # A broken coupon must never block an order
            logger.exception(f"Unexpected error redeeming coupon {normalized}: {e}")
            record_coupon_redemption("error")
            return None

        if coupon is None:
            logger.warning(f"Invalid coupon {normalized} for restaurant {restaurant_id}")
            record_coupon_redemption("rejected")
            return None

        redemption = CouponRedemption(
            coupon_id=coupon.coupon_id,
            code=coupon.code,
            discount_cents=coupon.compute_discount(subtotal_cents),
            discount_type=coupon.discount_type,
        )

        logger.info(
            f"Redeemed coupon {redemption.code} for restaurant {restaurant_id}: "
            f"{redemption.discount_cents} cents off"
        )
        record_coupon_redemption("redeemed")
        return redemption

    async def release(self, redemption: CouponRedemption, restaurant_id: str) -> bool:
        """Give back a consumed use after the order could not be stored.

        Args:
            redemption: Redemption to undo
            restaurant_id: Restaurant the coupon belongs to

        Returns:
            bool: True if the use was released
        """
        released = self.coupon_repository.release_coupon(restaurant_id, redemption.code)
        if released:
            logger.info(f"Released coupon {redemption.code} after failed order")
            record_coupon_redemption("released")
        else:
            logger.error(
                f"Failed to release coupon {redemption.code} for restaurant {restaurant_id}"
            )
        return released
