"""Catalog data models.

These models are read-only snapshots of the authoritative catalog used while
placing an order. Prices are integer minor currency units (cents); DynamoDB
returns numbers as Decimal, so the converters normalise them to int.
"""

from typing import Any

from pydantic import BaseModel, Field


class Restaurant(BaseModel):
    """Restaurant record with the operator-controlled ordering switch."""

    restaurant_id: str = Field(..., description="Unique restaurant identifier")
    name: str = Field(default="", description="Restaurant display name")
    is_accepting_orders: bool = Field(
        default=False, description="Whether the storefront currently accepts orders"
    )

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Restaurant":
        """Create Restaurant from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            Restaurant: Parsed model instance
        """
        return cls(
            restaurant_id=item["restaurant_id"],
            name=item.get("name", ""),
            is_accepting_orders=bool(item.get("is_accepting_orders", False)),
        )


class MenuItem(BaseModel):
    """Menu item owned by a restaurant."""

    restaurant_id: str = Field(..., description="Restaurant this item belongs to")
    item_id: str = Field(..., description="Unique identifier for the menu item")
    name: str = Field(..., description="Item name")
    price_cents: int = Field(..., description="Base price in cents", ge=0)
    is_active: bool = Field(default=True, description="Whether item is currently orderable")

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "MenuItem":
        """Create MenuItem from DynamoDB item."""
        return cls(
            restaurant_id=item["restaurant_id"],
            item_id=item["item_id"],
            name=item["name"],
            price_cents=int(item["price_cents"]),
            is_active=bool(item.get("is_active", True)),
        )


class Variant(BaseModel):
    """Priced alternative form of a menu item (e.g. a size).

    A variant's price replaces the item's base price.
    """

    menu_item_id: str = Field(..., description="Parent menu item")
    variant_id: str = Field(..., description="Unique identifier for the variant")
    name: str = Field(default="", description="Variant name")
    price_cents: int = Field(..., description="Override price in cents", ge=0)
    is_active: bool = Field(default=True)

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Variant":
        """Create Variant from DynamoDB item."""
        return cls(
            menu_item_id=item["menu_item_id"],
            variant_id=item["variant_id"],
            name=item.get("name", ""),
            price_cents=int(item["price_cents"]),
            is_active=bool(item.get("is_active", True)),
        )


class Addon(BaseModel):
    """Optional priced extra for a menu item. Its price is added to the unit price."""

    menu_item_id: str = Field(..., description="Parent menu item")
    addon_id: str = Field(..., description="Unique identifier for the add-on")
    name: str = Field(default="", description="Add-on name")
    price_cents: int = Field(..., description="Surcharge in cents", ge=0)
    is_active: bool = Field(default=True)

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Addon":
        """Create Addon from DynamoDB item."""
        return cls(
            menu_item_id=item["menu_item_id"],
            addon_id=item["addon_id"],
            name=item.get("name", ""),
            price_cents=int(item["price_cents"]),
            is_active=bool(item.get("is_active", True)),
        )
