"""Shared dependency factory for the Lambda handler and local server.

Dependencies are created once and reused across invocations within the same
Lambda container. Only clients and configuration are cached; catalog, coupon,
and order state is always read from DynamoDB per request.
"""

import logging
import os
from typing import Any

import boto3
from fastapi import FastAPI

from restaurant_order_service.auth.api_key_validator import parse_api_keys
from restaurant_order_service.handlers.api_handler import create_app
from restaurant_order_service.observability import configure_logging, setup_observability
from restaurant_order_service.repositories.catalog_repositories import (
    MenuCatalogRepository,
    RestaurantRepository,
)
from restaurant_order_service.repositories.coupon_repository import CouponRepository
from restaurant_order_service.repositories.order_repositories import (
    OrderLineRepository,
    OrderRepository,
)
from restaurant_order_service.services.bot_check_verifier import (
    TURNSTILE_TEST_SECRET,
    BotCheckVerifier,
)
from restaurant_order_service.services.catalog_revaluator import CatalogRevaluator
from restaurant_order_service.services.coupon_redeemer import CouponRedeemer
from restaurant_order_service.services.order_persister import OrderPersister
from restaurant_order_service.services.order_service import OrderPlacementService
from restaurant_order_service.services.order_validation import OrderLimits
from restaurant_order_service.services.pricing_engine import PricingEngine
from restaurant_order_service.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# Module-level caches for Lambda container reuse
_dynamodb_resource: Any | None = None
_bot_check_verifier: BotCheckVerifier | None = None
_order_service: OrderPlacementService | None = None
_fastapi_app: FastAPI | None = None


def get_dynamodb_resource() -> Any:
    """Create or retrieve cached DynamoDB resource.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    global _dynamodb_resource

    if _dynamodb_resource is not None:
        return _dynamodb_resource

    endpoint_url = os.getenv("DYNAMODB_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    if endpoint_url:
        # Local DynamoDB - use environment variables
        logger.info(f"Using local DynamoDB at {endpoint_url}")
        _dynamodb_resource = boto3.resource(
            "dynamodb",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )
    else:
        logger.info(f"Using AWS DynamoDB in region {region}")
        _dynamodb_resource = boto3.resource("dynamodb", region_name=region)

    return _dynamodb_resource


def get_bot_check_verifier() -> BotCheckVerifier:
    """Create or retrieve cached bot-check verifier.

    The production secret is used for requests whose origin contains
    PRODUCTION_ORIGIN_DOMAIN; every other origin uses the development secret.

    Returns:
        Configured BotCheckVerifier instance
    """
    global _bot_check_verifier

    if _bot_check_verifier is not None:
        return _bot_check_verifier

    production_domain = os.getenv("PRODUCTION_ORIGIN_DOMAIN")
    production_secret = os.getenv("TURNSTILE_SECRET_KEY_PROD")

    if production_domain and not production_secret:
        logger.warning("PRODUCTION_ORIGIN_DOMAIN set but TURNSTILE_SECRET_KEY_PROD is missing")

    _bot_check_verifier = BotCheckVerifier(
        production_secret=production_secret,
        development_secret=os.getenv("TURNSTILE_SECRET_KEY_DEV", TURNSTILE_TEST_SECRET),
        production_domain=production_domain,
        timeout_seconds=float(os.getenv("BOT_CHECK_TIMEOUT_SECONDS", "5")),
    )

    logger.info("Bot-check verifier initialized")
    return _bot_check_verifier


def get_order_service() -> OrderPlacementService:
    """Create or retrieve cached order placement service.

    Returns:
        Configured OrderPlacementService instance
    """
    global _order_service

    if _order_service is not None:
        return _order_service

    dynamodb_resource = get_dynamodb_resource()
    limits = OrderLimits()

    restaurant_repository = RestaurantRepository(
        dynamodb_resource=dynamodb_resource,
        table_name=os.getenv("DYNAMODB_RESTAURANTS_TABLE", "restaurants"),
    )
    catalog_repository = MenuCatalogRepository(
        dynamodb_resource=dynamodb_resource,
        items_table_name=os.getenv("DYNAMODB_MENU_ITEMS_TABLE", "menu_items"),
        variants_table_name=os.getenv("DYNAMODB_VARIANTS_TABLE", "menu_item_variants"),
        addons_table_name=os.getenv("DYNAMODB_ADDONS_TABLE", "menu_item_addons"),
    )
    coupon_repository = CouponRepository(
        dynamodb_resource=dynamodb_resource,
        table_name=os.getenv("DYNAMODB_COUPONS_TABLE", "coupons"),
    )
    order_repository = OrderRepository(
        dynamodb_resource=dynamodb_resource,
        table_name=os.getenv("DYNAMODB_ORDERS_TABLE", "orders"),
    )
    line_repository = OrderLineRepository(
        dynamodb_resource=dynamodb_resource,
        table_name=os.getenv("DYNAMODB_ORDER_ITEMS_TABLE", "order_items"),
    )

    _order_service = OrderPlacementService(
        rate_limiter=RateLimiter(
            order_repository=order_repository,
            max_orders=int(os.getenv("RATE_LIMIT_MAX_ORDERS", "15")),
            window_minutes=int(os.getenv("RATE_LIMIT_WINDOW_MINUTES", "15")),
        ),
        bot_check_verifier=get_bot_check_verifier(),
        catalog_revaluator=CatalogRevaluator(
            restaurant_repository=restaurant_repository,
            catalog_repository=catalog_repository,
            limits=limits,
        ),
        pricing_engine=PricingEngine(limits=limits),
        coupon_redeemer=CouponRedeemer(coupon_repository=coupon_repository),
        order_persister=OrderPersister(
            order_repository=order_repository,
            line_repository=line_repository,
        ),
        order_repository=order_repository,
        line_repository=line_repository,
        currency_code=os.getenv("ORDER_CURRENCY_CODE", "USD"),
    )

    logger.info("Order placement service initialized")
    return _order_service


def get_fastapi_app() -> FastAPI:
    """Create or retrieve cached FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    global _fastapi_app

    if _fastapi_app is not None:
        return _fastapi_app

    api_keys = parse_api_keys(os.getenv("ADMIN_API_KEY"))
    if not api_keys:
        logger.warning("No ADMIN_API_KEY configured - using development key")
        api_keys = ["dummy-key-for-development"]

    cors_origins_str = os.getenv("CORS_ALLOW_ORIGINS", "")
    cors_origins = [origin.strip() for origin in cors_origins_str.split(",") if origin.strip()]

    _fastapi_app = create_app(
        order_service=get_order_service(),
        bot_check_verifier=get_bot_check_verifier(),
        api_keys=api_keys,
        cors_origins=cors_origins,
    )

    setup_observability(
        app=_fastapi_app,
        enable_exporters=bool(os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")),
    )

    logger.info("FastAPI application initialized")
    return _fastapi_app


def initialize_lambda_environment() -> None:
    """Initialize Lambda environment with structured logging.

    Should be called once during Lambda cold start.
    """
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    logger.info("Lambda environment initialized")
