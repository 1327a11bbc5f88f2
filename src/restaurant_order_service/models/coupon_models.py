"""Coupon models.

Coupons are stored per restaurant with (restaurant_id, code) as composite key.
Codes are kept upper case so lookups are case-insensitive.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from restaurant_order_service.models.timestamps import format_timestamp


class DiscountType(str, Enum):
    """Enumeration of coupon discount types."""

    FIXED = "fixed"
    PERCENTAGE = "percentage"


def normalize_coupon_code(code: str | None) -> str:
    """Trim and upper-case a coupon code; returns an empty string for None."""
    return (code or "").strip().upper()


class Coupon(BaseModel):
    """Restaurant coupon with a usage ceiling and an optional active window."""

    restaurant_id: str = Field(..., description="Restaurant this coupon belongs to")
    code: str = Field(..., min_length=1, description="Upper-case coupon code")
    coupon_id: str = Field(..., description="Stable coupon identifier")
    discount_type: DiscountType
    discount_value: Decimal = Field(
        ..., ge=0, description="Cents for fixed coupons, percent for percentage coupons"
    )
    usage_count: int = Field(default=0, ge=0)
    usage_limit: int | None = Field(None, ge=0, description="None means unlimited")
    starts_at: datetime | None = None
    expires_at: datetime | None = None
    min_subtotal_cents: int | None = Field(None, ge=0)
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        """Store codes in their normalized form."""
        return normalize_coupon_code(v)

    def compute_discount(self, subtotal_cents: int) -> int:
        """Compute the discount for a subtotal from server-side coupon state.

        Percentage discounts are rounded half-up to whole cents. The result is
        not clamped to the subtotal.

        Args:
            subtotal_cents: Order subtotal in cents

        Returns:
            int: Discount in cents
        """
        if self.discount_type == DiscountType.PERCENTAGE:
            raw = Decimal(subtotal_cents) * self.discount_value / Decimal(100)
            return int(raw.quantize(Decimal(1), rounding=ROUND_HALF_UP))

        return int(self.discount_value.quantize(Decimal(1), rounding=ROUND_HALF_UP))

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        item: dict[str, Any] = {
            "restaurant_id": self.restaurant_id,
            "code": self.code,
            "coupon_id": self.coupon_id,
            "discount_type": self.discount_type.value,
            "discount_value": self.discount_value,
            "usage_count": self.usage_count,
            "is_active": self.is_active,
        }

        if self.usage_limit is not None:
            item["usage_limit"] = self.usage_limit

        if self.starts_at is not None:
            item["starts_at"] = format_timestamp(self.starts_at)

        if self.expires_at is not None:
            item["expires_at"] = format_timestamp(self.expires_at)

        if self.min_subtotal_cents is not None:
            item["min_subtotal_cents"] = self.min_subtotal_cents

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Coupon":
        """Create Coupon from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            Coupon: Parsed model instance
        """
        data: dict[str, Any] = {
            "restaurant_id": item["restaurant_id"],
            "code": item["code"],
            "coupon_id": item["coupon_id"],
            "discount_type": DiscountType(item["discount_type"]),
            "discount_value": Decimal(str(item["discount_value"])),
            "usage_count": int(item.get("usage_count", 0)),
            "is_active": bool(item.get("is_active", True)),
        }

        if "usage_limit" in item:
            data["usage_limit"] = int(item["usage_limit"])

        if "starts_at" in item:
            data["starts_at"] = datetime.fromisoformat(item["starts_at"])

        if "expires_at" in item:
            data["expires_at"] = datetime.fromisoformat(item["expires_at"])

        if "min_subtotal_cents" in item:
            data["min_subtotal_cents"] = int(item["min_subtotal_cents"])

        return cls(**data)


class CouponRedemption(BaseModel):
    """Outcome of a successful atomic coupon redemption."""

    coupon_id: str
    code: str
    discount_cents: int = Field(..., ge=0)
    discount_type: DiscountType
