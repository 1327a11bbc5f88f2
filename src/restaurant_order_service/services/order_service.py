"""Order placement pipeline.

Stages run strictly in sequence for each request and each one short-circuits
the pipeline on failure:

    rate limit -> bot check -> request shape -> catalog -> pricing -> coupon -> persist

Stage failures are OrderPlacementError subclasses; this service is the boundary
where they become a PlacementResult. Anything else is logged in full and
reported to the caller as a generic internal error.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from restaurant_order_service.errors import (
    BotVerificationFailed,
    OrderPlacementError,
    PersistenceFailure,
    RateLimited,
)
from restaurant_order_service.models.order_models import Order, OrderLine
from restaurant_order_service.observability import traced
from restaurant_order_service.observability.metrics import (
    record_order_placed,
    record_order_rejected,
    record_placement_duration,
)
from restaurant_order_service.repositories.order_repositories import (
    OrderLineRepository,
    OrderRepository,
)
from restaurant_order_service.services.bot_check_verifier import BotCheckVerifier
from restaurant_order_service.services.catalog_revaluator import CatalogRevaluator
from restaurant_order_service.services.coupon_redeemer import CouponRedeemer
from restaurant_order_service.services.order_persister import OrderPersister
from restaurant_order_service.services.order_validation import parse_order_request
from restaurant_order_service.services.pricing_engine import PricingEngine
from restaurant_order_service.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Internal server error"


@dataclass
class PlacementResult:
    """Result of an order placement attempt.

    Attributes:
        success: Whether the order was stored
        order: Stored order header on success
        lines: Stored order lines on success
        error_kind: Error kind on failure (e.g. "InvalidVariant")
        error_message: Client-safe message on failure
        status_code: HTTP status the outcome maps to
    """

    success: bool
    order: Order | None = None
    lines: list[OrderLine] = field(default_factory=list)
    error_kind: str | None = None
    error_message: str | None = None
    status_code: int = 200


@dataclass
class PlacementContext:
    """Request facts derived from the connection, never from the JSON body.

    Attributes:
        client_address: Client address from proxy headers, None if unknown
        origin: Origin or Referer header, used to pick the bot-check secret
    """

    client_address: str | None = None
    origin: str | None = None


class OrderPlacementService:
    """Places storefront orders and serves anonymous order tracking."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        bot_check_verifier: BotCheckVerifier,
        catalog_revaluator: CatalogRevaluator,
        pricing_engine: PricingEngine,
        coupon_redeemer: CouponRedeemer,
        order_persister: OrderPersister,
        order_repository: OrderRepository,
        line_repository: OrderLineRepository,
        currency_code: str = "USD",
    ) -> None:
        """Initialize the OrderPlacementService.

        Args:
            rate_limiter: Per-address order rate limiter
            bot_check_verifier: Bot-check token verifier
            catalog_revaluator: Resolves cart lines against the catalog
            pricing_engine: Computes line totals and subtotal
            coupon_redeemer: Atomically redeems coupon codes
            order_persister: Writes orders with compensating rollback
            order_repository: Order header repository, used for tracking lookups
            line_repository: Order line repository, used for tracking lookups
            currency_code: Currency recorded on every order
        """
        self.rate_limiter = rate_limiter
        self.bot_check_verifier = bot_check_verifier
        self.catalog_revaluator = catalog_revaluator
        self.pricing_engine = pricing_engine
        self.coupon_redeemer = coupon_redeemer
        self.order_persister = order_persister
        self.order_repository = order_repository
        self.line_repository = line_repository
        self.currency_code = currency_code

    async def place_order(self, payload: Any, context: PlacementContext) -> PlacementResult:
        """Place an order from an untrusted storefront payload.

        Args:
            payload: Decoded JSON request body
            context: Connection-derived request facts

        Returns:
            PlacementResult with the stored order, or the error that stopped the pipeline
        """
        started = time.monotonic()

        try:
            order, lines = await self._run_pipeline(payload, context)

        except OrderPlacementError as e:
            logger.warning(
                f"Order rejected: {e.error_kind}: {e.message}",
                extra={"error_kind": e.error_kind},
            )
            record_order_rejected(e.error_kind)
            record_placement_duration(time.monotonic() - started, success=False)
            message = GENERIC_ERROR_MESSAGE if e.status_code >= 500 else e.message
            return PlacementResult(
                success=False,
                error_kind=e.error_kind,
                error_message=message,
                status_code=e.status_code,
            )

        except Exception as e:
            logger.exception(f"Unexpected error placing order: {e}")
            record_order_rejected("InternalError")
            record_placement_duration(time.monotonic() - started, success=False)
            return PlacementResult(
                success=False,
                error_kind="InternalError",
                error_message=GENERIC_ERROR_MESSAGE,
                status_code=500,
            )

        record_order_placed(order.restaurant_id, order.total_cents)
        record_placement_duration(time.monotonic() - started, success=True)
        return PlacementResult(success=True, order=order, lines=lines)

    @traced("place_order", service_name="order-svc")
    async def _run_pipeline(
        self, payload: Any, context: PlacementContext
    ) -> tuple[Order, list[OrderLine]]:
        """Run every stage in order, raising the first stage error."""
        if not await self.rate_limiter.check_and_admit(context.client_address):
            raise RateLimited()

        token = payload.get("turnstileToken") if isinstance(payload, dict) else None
        if not isinstance(token, str) or not token.strip():
            raise BotVerificationFailed("Security check failed: Missing bot-check token")

        if not await self.bot_check_verifier.verify(token, context.client_address, context.origin):
            raise BotVerificationFailed()

        request = parse_order_request(payload)

        resolved_lines = await self.catalog_revaluator.revalidate(
            request.restaurant_id, request.items
        )
        priced = self.pricing_engine.price(request.restaurant_id, resolved_lines)

        redemption = None
        if request.coupon_code:
            redemption = await self.coupon_redeemer.redeem(
                request.coupon_code, request.restaurant_id, priced.subtotal_cents
            )

        priced = priced.model_copy(
            update={
                "discount_cents": redemption.discount_cents if redemption else 0,
                "coupon": redemption,
                "currency_code": self.currency_code,
                "ip_address": context.client_address,
                "table_label": request.table_label,
            }
        )

        try:
            return await self.order_persister.persist(priced)
        except PersistenceFailure as e:
            # Only give the coupon use back when no order header survived
            if redemption is not None and e.orphaned_order_id is None:
                await self.coupon_redeemer.release(redemption, request.restaurant_id)
            raise

    async def get_order_by_token(self, order_token: str) -> tuple[Order, list[OrderLine]] | None:
        """Look up an order and its lines by tracking token.

        Args:
            order_token: Customer-facing tracking token

        Returns:
            Tuple of (order, lines), or None if no order has this token
        """
        if not order_token:
            return None

        order = self.order_repository.get_order_by_token(order_token)
        if order is None:
            return None

        return order, self.line_repository.list_lines(order.order_id)

    async def get_order(self, order_id: str) -> tuple[Order, list[OrderLine]] | None:
        """Look up an order and its lines by order id (operator use).

        Args:
            order_id: Order identifier

        Returns:
            Tuple of (order, lines), or None if not found
        """
        order = self.order_repository.get_order(order_id)
        if order is None:
            return None

        return order, self.line_repository.list_lines(order.order_id)
