"""Shared pytest fixtures and configuration for all tests."""

import os

# Entry modules skip app construction when ENVIRONMENT is "test"
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")

import pytest  # noqa: E402

from restaurant_order_service.models.catalog_models import (  # noqa: E402
    Addon,
    MenuItem,
    Restaurant,
    Variant,
)
from restaurant_order_service.models.order_models import AddonSnapshot, ResolvedLine  # noqa: E402


@pytest.fixture
def mock_restaurant_id() -> str:
    """Fixture providing a standard test restaurant ID."""
    return "rest_123456"


@pytest.fixture
def open_restaurant(mock_restaurant_id: str) -> Restaurant:
    """Restaurant that accepts orders."""
    return Restaurant(restaurant_id=mock_restaurant_id, name="Burger Barn", is_accepting_orders=True)


@pytest.fixture
def burger(mock_restaurant_id: str) -> MenuItem:
    """Fixture providing the 500 cent burger used across scenarios."""
    return MenuItem(
        restaurant_id=mock_restaurant_id,
        item_id="burger",
        name="Burger",
        price_cents=500,
        is_active=True,
    )


@pytest.fixture
def fries(mock_restaurant_id: str) -> MenuItem:
    """Fixture providing a second menu item."""
    return MenuItem(
        restaurant_id=mock_restaurant_id,
        item_id="fries",
        name="Fries",
        price_cents=300,
        is_active=True,
    )


@pytest.fixture
def burger_variants() -> list[Variant]:
    """Variants of the burger: one active, one retired."""
    return [
        Variant(menu_item_id="burger", variant_id="double", name="Double", price_cents=800),
        Variant(
            menu_item_id="burger", variant_id="triple", name="Triple", price_cents=1100, is_active=False
        ),
    ]


@pytest.fixture
def burger_addons() -> list[Addon]:
    """Add-ons of the burger: two active, one retired."""
    return [
        Addon(menu_item_id="burger", addon_id="cheese", name="Cheese", price_cents=100),
        Addon(menu_item_id="burger", addon_id="bacon", name="Bacon", price_cents=150),
        Addon(menu_item_id="burger", addon_id="truffle", name="Truffle", price_cents=900, is_active=False),
    ]


@pytest.fixture
def resolved_burger_line() -> ResolvedLine:
    """Two plain burgers, resolved."""
    return ResolvedLine(
        menu_item_id="burger",
        name_snapshot="Burger",
        base_price_cents=500,
        quantity=2,
    )


@pytest.fixture
def resolved_loaded_line() -> ResolvedLine:
    """One double burger with cheese and bacon, resolved."""
    return ResolvedLine(
        menu_item_id="burger",
        name_snapshot="Burger",
        base_price_cents=500,
        variant_id="double",
        variant_price_cents=800,
        addons=[
            AddonSnapshot(id="cheese", name="Cheese", price_cents=100),
            AddonSnapshot(id="bacon", name="Bacon", price_cents=150),
        ],
        quantity=1,
        notes="no onions",
    )


@pytest.fixture
def order_payload(mock_restaurant_id: str) -> dict:
    """Fixture providing a minimal valid storefront order body."""
    return {
        "restaurant_id": mock_restaurant_id,
        "items": [{"menu_item_id": "burger", "quantity": 2}],
        "turnstileToken": "valid-token",
    }
