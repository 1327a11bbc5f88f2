"""Component tests for order placement against moto-backed DynamoDB tables."""

from collections.abc import Iterator
from datetime import timedelta
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import boto3
import pytest
from botocore.exceptions import EndpointConnectionError, ReadTimeoutError
from fastapi.testclient import TestClient
from moto import mock_aws

from restaurant_order_service.handlers.api_handler import create_app
from restaurant_order_service.models.coupon_models import Coupon, DiscountType
from restaurant_order_service.models.timestamps import utc_now
from restaurant_order_service.repositories.catalog_repositories import (
    MenuCatalogRepository,
    RestaurantRepository,
)
from restaurant_order_service.repositories.coupon_repository import CouponRepository
from restaurant_order_service.repositories.order_repositories import (
    OrderLineRepository,
    OrderRepository,
)
from restaurant_order_service.services.bot_check_verifier import BotCheckVerifier
from restaurant_order_service.services.catalog_revaluator import CatalogRevaluator
from restaurant_order_service.services.coupon_redeemer import CouponRedeemer
from restaurant_order_service.services.order_persister import OrderPersister
from restaurant_order_service.services.order_service import (
    OrderPlacementService,
    PlacementContext,
)
from restaurant_order_service.services.pricing_engine import PricingEngine
from restaurant_order_service.services.rate_limiter import RateLimiter

RESTAURANT_ID = "rest_123"


def _create_table(
    dynamodb: Any,
    name: str,
    keys: list[tuple[str, str, str]],
    indexes: list[tuple[str, list[tuple[str, str, str]]]] | None = None,
) -> None:
    """Create a table from (attribute, type, key type) tuples."""
    attributes = {attr: attr_type for attr, attr_type, _ in keys}
    for _, index_keys in indexes or []:
        attributes.update({attr: attr_type for attr, attr_type, _ in index_keys})

    kwargs: dict[str, Any] = {
        "TableName": name,
        "KeySchema": [{"AttributeName": attr, "KeyType": key_type} for attr, _, key_type in keys],
        "AttributeDefinitions": [
            {"AttributeName": attr, "AttributeType": attr_type} for attr, attr_type in attributes.items()
        ],
        "BillingMode": "PAY_PER_REQUEST",
    }
    if indexes:
        kwargs["GlobalSecondaryIndexes"] = [
            {
                "IndexName": index_name,
                "KeySchema": [
                    {"AttributeName": attr, "KeyType": key_type} for attr, _, key_type in index_keys
                ],
                "Projection": {"ProjectionType": "ALL"},
            }
            for index_name, index_keys in indexes
        ]
    dynamodb.create_table(**kwargs)


@pytest.fixture
def dynamodb() -> Iterator[Any]:
    """Moto DynamoDB resource with every table the service uses, seeded with a menu."""
    with mock_aws():
        resource = boto3.resource("dynamodb", region_name="us-east-1")

        _create_table(resource, "restaurants", [("restaurant_id", "S", "HASH")])
        _create_table(
            resource, "menu_items", [("restaurant_id", "S", "HASH"), ("item_id", "S", "RANGE")]
        )
        _create_table(
            resource,
            "menu_item_variants",
            [("menu_item_id", "S", "HASH"), ("variant_id", "S", "RANGE")],
        )
        _create_table(
            resource,
            "menu_item_addons",
            [("menu_item_id", "S", "HASH"), ("addon_id", "S", "RANGE")],
        )
        _create_table(resource, "coupons", [("restaurant_id", "S", "HASH"), ("code", "S", "RANGE")])
        _create_table(
            resource,
            "orders",
            [("order_id", "S", "HASH")],
            indexes=[
                ("order_token-index", [("order_token", "S", "HASH")]),
                ("ip_address-index", [("ip_address", "S", "HASH"), ("created_at", "S", "RANGE")]),
            ],
        )
        _create_table(
            resource, "order_items", [("order_id", "S", "HASH"), ("line_number", "N", "RANGE")]
        )

        resource.Table("restaurants").put_item(
            Item={"restaurant_id": RESTAURANT_ID, "name": "Burger Barn", "is_accepting_orders": True}
        )
        resource.Table("menu_items").put_item(
            Item={
                "restaurant_id": RESTAURANT_ID,
                "item_id": "burger",
                "name": "Burger",
                "price_cents": 500,
                "is_active": True,
            }
        )
        resource.Table("menu_item_variants").put_item(
            Item={"menu_item_id": "burger", "variant_id": "double", "name": "Double", "price_cents": 800}
        )
        resource.Table("menu_item_addons").put_item(
            Item={"menu_item_id": "burger", "addon_id": "cheese", "name": "Cheese", "price_cents": 100}
        )

        yield resource


def _put_coupon(dynamodb: Any, **overrides: Any) -> None:
    fields: dict[str, Any] = {
        "restaurant_id": RESTAURANT_ID,
        "code": "SAVE10",
        "coupon_id": "cpn_1",
        "discount_type": DiscountType.PERCENTAGE,
        "discount_value": Decimal("10"),
    }
    fields.update(overrides)
    dynamodb.Table("coupons").put_item(Item=Coupon(**fields).to_dynamodb_item())


def _build_service(dynamodb: Any, order_items_table: str = "order_items") -> OrderPlacementService:
    verifier = MagicMock(spec=BotCheckVerifier)
    verifier.verify = AsyncMock(return_value=True)

    order_repository = OrderRepository(dynamodb_resource=dynamodb, table_name="orders")
    line_repository = OrderLineRepository(dynamodb_resource=dynamodb, table_name=order_items_table)

    return OrderPlacementService(
        rate_limiter=RateLimiter(order_repository=order_repository, max_orders=15, window_minutes=15),
        bot_check_verifier=verifier,
        catalog_revaluator=CatalogRevaluator(
            restaurant_repository=RestaurantRepository(dynamodb, "restaurants"),
            catalog_repository=MenuCatalogRepository(
                dynamodb, "menu_items", "menu_item_variants", "menu_item_addons"
            ),
        ),
        pricing_engine=PricingEngine(),
        coupon_redeemer=CouponRedeemer(coupon_repository=CouponRepository(dynamodb, "coupons")),
        order_persister=OrderPersister(
            order_repository=order_repository, line_repository=line_repository
        ),
        order_repository=order_repository,
        line_repository=OrderLineRepository(dynamodb_resource=dynamodb, table_name="order_items"),
    )


def _payload(**overrides: Any) -> dict:
    payload = {
        "restaurant_id": RESTAURANT_ID,
        "items": [{"menu_item_id": "burger", "quantity": 2}],
        "turnstileToken": "valid-token",
    }
    payload.update(overrides)
    return payload


@pytest.mark.component
class TestOrderPlacementFlow:
    """End-to-end placement scenarios against DynamoDB."""

    @pytest.mark.asyncio
    async def test_places_and_tracks_order(self, dynamodb: Any) -> None:
        """Test that a stored order can be read back by its token."""
        service = _build_service(dynamodb)

        result = await service.place_order(
            _payload(
                items=[
                    {"menu_item_id": "burger", "quantity": 2},
                    {
                        "menu_item_id": "burger",
                        "quantity": 1,
                        "variant_id": "double",
                        "addons": [{"id": "cheese"}],
                    },
                ]
            ),
            PlacementContext(client_address="203.0.113.7"),
        )

        assert result.success is True
        assert result.order is not None
        assert result.order.subtotal_cents == 1000 + 900
        assert result.order.total_cents == 1900

        found = await service.get_order_by_token(result.order.order_token)
        assert found is not None
        order, lines = found
        assert order.order_id == result.order.order_id
        assert [line.line_total_cents for line in lines] == [1000, 900]
        assert lines[1].addons[0].name == "Cheese"

    @pytest.mark.asyncio
    async def test_coupon_applied_and_counted(self, dynamodb: Any) -> None:
        """Test 10% off and a single usage increment."""
        _put_coupon(dynamodb, usage_limit=10)
        service = _build_service(dynamodb)

        result = await service.place_order(
            _payload(coupon_code="save10"), PlacementContext(client_address="203.0.113.7")
        )

        assert result.order is not None
        assert result.order.discount_cents == 100
        assert result.order.total_cents == 900
        coupon = CouponRepository(dynamodb, "coupons").get_coupon(RESTAURANT_ID, "SAVE10")
        assert coupon is not None
        assert coupon.usage_count == 1

    @pytest.mark.asyncio
    async def test_last_coupon_use_granted_once(self, dynamodb: Any) -> None:
        """Test that a coupon with one use left discounts exactly one order.

        Requests run one after the other, so this checks the conditional write
        that guards the last use rather than true concurrent contention.
        """
        _put_coupon(dynamodb, usage_limit=1)
        service = _build_service(dynamodb)

        first = await service.place_order(_payload(coupon_code="SAVE10"), PlacementContext())
        second = await service.place_order(_payload(coupon_code="SAVE10"), PlacementContext())

        assert first.success is True
        assert second.success is True
        assert first.order is not None
        assert second.order is not None
        assert [first.order.discount_cents, second.order.discount_cents] == [100, 0]
        coupon = CouponRepository(dynamodb, "coupons").get_coupon(RESTAURANT_ID, "SAVE10")
        assert coupon is not None
        assert coupon.usage_count == 1

    @pytest.mark.asyncio
    async def test_coupon_conditions_enforced_by_store(self, dynamodb: Any) -> None:
        """Test that expiry, minimum subtotal, and activity are checked atomically."""
        repository = CouponRepository(dynamodb, "coupons")
        now = utc_now()

        _put_coupon(dynamodb, code="EXPIRED", coupon_id="c1", expires_at=now - timedelta(days=1))
        _put_coupon(dynamodb, code="LATER", coupon_id="c2", starts_at=now + timedelta(days=1))
        _put_coupon(dynamodb, code="MIN50", coupon_id="c3", min_subtotal_cents=5000)
        _put_coupon(dynamodb, code="OFF", coupon_id="c4", is_active=False)
        _put_coupon(dynamodb, code="OPEN", coupon_id="c5")

        assert repository.redeem_coupon(RESTAURANT_ID, "EXPIRED", 1000, now) is None
        assert repository.redeem_coupon(RESTAURANT_ID, "LATER", 1000, now) is None
        assert repository.redeem_coupon(RESTAURANT_ID, "MIN50", 1000, now) is None
        assert repository.redeem_coupon(RESTAURANT_ID, "OFF", 1000, now) is None
        assert repository.redeem_coupon(RESTAURANT_ID, "MISSING", 1000, now) is None
        assert repository.redeem_coupon("other_restaurant", "OPEN", 1000, now) is None

        redeemed = repository.redeem_coupon(RESTAURANT_ID, "OPEN", 1000, now)
        assert redeemed is not None
        assert redeemed.usage_count == 1

    @pytest.mark.asyncio
    async def test_line_failure_leaves_no_order(self, dynamodb: Any) -> None:
        """Test that a failed line write rolls back the header and the coupon use."""
        _put_coupon(dynamodb, usage_limit=5)
        service = _build_service(dynamodb, order_items_table="missing_order_items")

        result = await service.place_order(
            _payload(coupon_code="SAVE10"), PlacementContext(client_address="203.0.113.7")
        )

        assert result.success is False
        assert result.status_code == 500
        assert dynamodb.Table("orders").scan()["Count"] == 0
        coupon = CouponRepository(dynamodb, "coupons").get_coupon(RESTAURANT_ID, "SAVE10")
        assert coupon is not None
        assert coupon.usage_count == 0

    @pytest.mark.asyncio
    async def test_line_write_timeout_leaves_no_order(self, dynamodb: Any) -> None:
        """Test that a transport failure on the line write still rolls back."""
        _put_coupon(dynamodb, usage_limit=5)
        service = _build_service(dynamodb)
        timeout = ReadTimeoutError(endpoint_url="https://dynamodb.us-east-1.amazonaws.com")

        with patch.object(dynamodb.meta.client, "transact_write_items", side_effect=timeout):
            result = await service.place_order(
                _payload(coupon_code="SAVE10"), PlacementContext(client_address="203.0.113.7")
            )

        assert result.success is False
        assert result.status_code == 500
        assert dynamodb.Table("orders").scan()["Count"] == 0
        coupon = CouponRepository(dynamodb, "coupons").get_coupon(RESTAURANT_ID, "SAVE10")
        assert coupon is not None
        assert coupon.usage_count == 0

    @pytest.mark.asyncio
    async def test_unknown_discount_type_never_consumed(self, dynamodb: Any) -> None:
        """Test that a coupon with an unsupported discount type keeps its uses."""
        dynamodb.Table("coupons").put_item(
            Item={
                "restaurant_id": RESTAURANT_ID,
                "code": "SAVE10",
                "coupon_id": "cpn_1",
                "discount_type": "bogo",
                "discount_value": Decimal("10"),
                "usage_count": 0,
                "usage_limit": 5,
                "is_active": True,
            }
        )
        service = _build_service(dynamodb)

        result = await service.place_order(_payload(coupon_code="SAVE10"), PlacementContext())

        assert result.success is True
        assert result.order is not None
        assert result.order.discount_cents == 0
        item = dynamodb.Table("coupons").get_item(
            Key={"restaurant_id": RESTAURANT_ID, "code": "SAVE10"}
        )["Item"]
        assert item["usage_count"] == 0

    @pytest.mark.asyncio
    async def test_unreachable_rate_limit_count_admits(self, dynamodb: Any) -> None:
        """Test that a count query that cannot reach the store admits the order."""
        service = _build_service(dynamodb)
        unreachable = EndpointConnectionError(
            endpoint_url="https://dynamodb.us-east-1.amazonaws.com"
        )

        with patch.object(
            service.rate_limiter.order_repository.table, "query", side_effect=unreachable
        ):
            result = await service.place_order(
                _payload(), PlacementContext(client_address="203.0.113.7")
            )

        assert result.success is True
        assert dynamodb.Table("orders").scan()["Count"] == 1

    @pytest.mark.asyncio
    async def test_rate_limit_counts_recent_orders(self, dynamodb: Any) -> None:
        """Test that the 16th order from one address inside the window is rejected."""
        service = _build_service(dynamodb)
        context = PlacementContext(client_address="203.0.113.7")

        for _ in range(15):
            result = await service.place_order(_payload(), context)
            assert result.success is True

        rejected = await service.place_order(_payload(), context)
        other_client = await service.place_order(
            _payload(), PlacementContext(client_address="198.51.100.4")
        )

        assert rejected.status_code == 429
        assert other_client.success is True

    @pytest.mark.asyncio
    async def test_closed_restaurant_writes_nothing(self, dynamodb: Any) -> None:
        """Test that a rejected order leaves no trace in the store."""
        dynamodb.Table("restaurants").update_item(
            Key={"restaurant_id": RESTAURANT_ID},
            UpdateExpression="SET is_accepting_orders = :off",
            ExpressionAttributeValues={":off": False},
        )
        service = _build_service(dynamodb)

        result = await service.place_order(_payload(), PlacementContext())

        assert result.status_code == 400
        assert dynamodb.Table("orders").scan()["Count"] == 0
        assert dynamodb.Table("order_items").scan()["Count"] == 0

    @pytest.mark.asyncio
    async def test_quantity_ceiling_writes_nothing(self, dynamodb: Any) -> None:
        """Test that 101 of one item is rejected and never stored."""
        service = _build_service(dynamodb)

        result = await service.place_order(
            _payload(items=[{"menu_item_id": "burger", "quantity": 101}]), PlacementContext()
        )

        assert result.status_code == 400
        assert result.error_message == "Quantity cannot exceed 100 per item"
        assert dynamodb.Table("orders").scan()["Count"] == 0

    def test_http_place_and_track(self, dynamodb: Any) -> None:
        """Test the storefront flow through the HTTP API."""
        service = _build_service(dynamodb)
        app = create_app(
            order_service=service,
            bot_check_verifier=service.bot_check_verifier,
            api_keys=["test-api-key"],
        )
        client = TestClient(app)

        placed = client.post(
            "/orders", json=_payload(), headers={"X-Forwarded-For": "203.0.113.7"}
        )
        assert placed.status_code == 200
        token = placed.json()["order_token"]

        tracked = client.get(f"/orders/track/{token}")
        assert tracked.status_code == 200
        assert tracked.json()["order"]["total_cents"] == 1000
        assert tracked.json()["items"][0]["quantity"] == 2

        missing = client.post(
            "/orders",
            json=_payload(items=[{"menu_item_id": "pizza", "quantity": 1}]),
        )
        assert missing.status_code == 400
        assert missing.json() == {"error": "Menu item not found: pizza"}
