"""Order placement models.

The request models describe the untrusted storefront envelope: only identity
fields are taken from the client, never prices. The remaining models carry
server-resolved catalog data through pricing and into DynamoDB storage.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from restaurant_order_service.models.coupon_models import CouponRedemption, DiscountType
from restaurant_order_service.models.timestamps import format_timestamp


class OrderStatusEnum(str, Enum):
    """Enumeration of order status values."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CartAddonRef(BaseModel):
    """Add-on reference as sent by the storefront."""

    id: str = Field(..., min_length=1)


class CartLine(BaseModel):
    """One requested line of a cart. Never trusted for price."""

    menu_item_id: str = Field(..., min_length=1)
    quantity: int
    variant_id: str | None = None
    addons: list[CartAddonRef] = Field(default_factory=list)
    notes: str | None = Field(None, max_length=500)

    @field_validator("addons", mode="before")
    @classmethod
    def default_addons(cls, v: Any) -> Any:
        """Treat a null add-on list as empty."""
        return [] if v is None else v

    @field_validator("variant_id", "notes", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        """Treat empty strings as absent."""
        if isinstance(v, str) and not v.strip():
            return None
        return v


class OrderRequest(BaseModel):
    """Validated order placement envelope."""

    model_config = ConfigDict(populate_by_name=True)

    restaurant_id: str = Field(..., min_length=1)
    items: list[CartLine]
    table_label: str | None = Field(None, max_length=20)
    coupon_code: str | None = None
    turnstile_token: str | None = Field(None, alias="turnstileToken")

    @field_validator("table_label", mode="before")
    @classmethod
    def blank_table_label(cls, v: Any) -> Any:
        """Treat an empty table label as absent."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("coupon_code", mode="before")
    @classmethod
    def coerce_coupon_code(cls, v: Any) -> Any:
        """Accept numeric coupon codes by converting them to text."""
        if v is None or isinstance(v, str):
            return v
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class AddonSnapshot(BaseModel):
    """Point-in-time copy of an add-on stored with the order line."""

    id: str
    name: str
    price_cents: int = Field(..., ge=0)


class ResolvedLine(BaseModel):
    """Cart line after revalidation, carrying only authoritative catalog data."""

    menu_item_id: str
    name_snapshot: str
    base_price_cents: int = Field(..., ge=0)
    variant_id: str | None = None
    variant_price_cents: int | None = Field(None, ge=0)
    addons: list[AddonSnapshot] = Field(default_factory=list)
    quantity: int = Field(..., ge=1)
    notes: str | None = None


class PricedLine(BaseModel):
    """Fully priced, persistable order line."""

    menu_item_id: str
    quantity: int
    unit_price_cents: int
    line_total_cents: int
    name_snapshot: str
    variant_id: str | None = None
    addons: list[AddonSnapshot] = Field(default_factory=list)
    notes: str | None = None


class PricedOrder(BaseModel):
    """Priced order ready for persistence.

    The pricing engine fills in the lines and subtotal; the placement service
    adds the discount and request context before handing it to the persister.
    """

    restaurant_id: str
    lines: list[PricedLine]
    subtotal_cents: int = Field(..., ge=0)
    discount_cents: int = Field(default=0, ge=0)
    coupon: CouponRedemption | None = None
    currency_code: str = "USD"
    ip_address: str | None = None
    table_label: str | None = None
    payment_method: str = "cash"

    @property
    def total_cents(self) -> int:
        """Final amount due, never negative."""
        return max(0, self.subtotal_cents - self.discount_cents)


class Order(BaseModel):
    """Persisted order header.

    Stored in DynamoDB with order_id as partition key. The order_token is the
    credential for anonymous tracking and is indexed separately.
    """

    order_id: str = Field(..., description="Unique order identifier")
    restaurant_id: str = Field(..., description="Restaurant identifier")
    status: OrderStatusEnum = Field(default=OrderStatusEnum.PENDING)
    subtotal_cents: int = Field(..., ge=0)
    discount_cents: int = Field(default=0, ge=0)
    total_cents: int = Field(..., ge=0)
    currency_code: str = "USD"
    coupon_id: str | None = None
    coupon_code: str | None = None
    discount_type: DiscountType | None = None
    ip_address: str | None = None
    table_label: str | None = None
    order_token: str = Field(..., description="Unguessable tracking token")
    payment_method: str = "cash"
    created_at: datetime

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Optional attributes are omitted rather than stored as null so the
        sparse ip_address index only holds orders with a known address.

        Returns:
            dict: DynamoDB-compatible representation
        """
        item: dict[str, Any] = {
            "order_id": self.order_id,
            "restaurant_id": self.restaurant_id,
            "status": self.status.value,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "currency_code": self.currency_code,
            "order_token": self.order_token,
            "payment_method": self.payment_method,
            "created_at": format_timestamp(self.created_at),
        }

        optional = {
            "coupon_id": self.coupon_id,
            "coupon_code": self.coupon_code,
            "discount_type": self.discount_type.value if self.discount_type else None,
            "ip_address": self.ip_address,
            "table_label": self.table_label,
        }
        item.update({key: value for key, value in optional.items() if value is not None})

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Order":
        """Create Order from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            Order: Parsed model instance
        """
        return cls(
            order_id=item["order_id"],
            restaurant_id=item["restaurant_id"],
            status=OrderStatusEnum(item["status"]),
            subtotal_cents=int(item["subtotal_cents"]),
            discount_cents=int(item.get("discount_cents", 0)),
            total_cents=int(item["total_cents"]),
            currency_code=item.get("currency_code", "USD"),
            coupon_id=item.get("coupon_id"),
            coupon_code=item.get("coupon_code"),
            discount_type=DiscountType(item["discount_type"]) if "discount_type" in item else None,
            ip_address=item.get("ip_address"),
            table_label=item.get("table_label"),
            order_token=item["order_token"],
            payment_method=item.get("payment_method", "cash"),
            created_at=datetime.fromisoformat(item["created_at"]),
        )

    def to_public_dict(self) -> dict[str, Any]:
        """Serialize for customer-facing responses, without the client address."""
        return self.model_dump(mode="json", exclude={"ip_address"})


class OrderLine(BaseModel):
    """Persisted order line. Written once together with its order, never mutated."""

    order_id: str
    line_number: int = Field(..., ge=1)
    restaurant_id: str
    menu_item_id: str
    quantity: int = Field(..., ge=1)
    unit_price_cents: int = Field(..., ge=0)
    line_total_cents: int = Field(..., ge=0)
    name_snapshot: str
    variant_id: str | None = None
    addons: list[AddonSnapshot] = Field(default_factory=list)
    notes: str | None = None

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format."""
        item: dict[str, Any] = {
            "order_id": self.order_id,
            "line_number": self.line_number,
            "restaurant_id": self.restaurant_id,
            "menu_item_id": self.menu_item_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "name_snapshot": self.name_snapshot,
            "addons": [addon.model_dump() for addon in self.addons],
        }

        if self.variant_id is not None:
            item["variant_id"] = self.variant_id

        if self.notes is not None:
            item["notes"] = self.notes

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "OrderLine":
        """Create OrderLine from DynamoDB item."""
        return cls(
            order_id=item["order_id"],
            line_number=int(item["line_number"]),
            restaurant_id=item["restaurant_id"],
            menu_item_id=item["menu_item_id"],
            quantity=int(item["quantity"]),
            unit_price_cents=int(item["unit_price_cents"]),
            line_total_cents=int(item["line_total_cents"]),
            name_snapshot=item["name_snapshot"],
            variant_id=item.get("variant_id"),
            addons=[
                AddonSnapshot(id=a["id"], name=a.get("name", ""), price_cents=int(a["price_cents"]))
                for a in item.get("addons", [])
            ],
            notes=item.get("notes"),
        )
