"""DynamoDB repository for coupon redemption.

Redemption is one conditional UpdateItem: DynamoDB evaluates the applicability
condition and applies the usage increment atomically on the item, so two
concurrent requests for the last remaining use cannot both succeed.
"""

import logging
from datetime import datetime

from botocore.exceptions import ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from restaurant_order_service.models.coupon_models import Coupon, DiscountType
from restaurant_order_service.models.timestamps import format_timestamp
from restaurant_order_service.repositories.catalog_repositories import STORE_ERRORS

logger = logging.getLogger(__name__)

REDEEM_CONDITION = (
    "attribute_exists(#code)"
    " AND is_active = :active"
    " AND discount_type IN (:fixed, :percentage)"
    " AND (attribute_not_exists(usage_limit) OR usage_count < usage_limit)"
    " AND (attribute_not_exists(starts_at) OR starts_at <= :now)"
    " AND (attribute_not_exists(expires_at) OR expires_at > :now)"
    " AND (attribute_not_exists(min_subtotal_cents) OR min_subtotal_cents <= :subtotal)"
)


class CouponRepository:
    """Repository for coupons keyed by (restaurant_id, code)."""

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def redeem_coupon(
        self, restaurant_id: str, code: str, subtotal_cents: int, now: datetime
    ) -> Coupon | None:
        """Validate a coupon and consume one use in a single atomic operation.

        The coupon must exist for the restaurant, be active, carry a known
        discount type, be inside its date window, have a use left, and the
        subtotal must meet its minimum. A consumed use whose stored coupon
        cannot be read back is given back before returning None.

        Args:
            restaurant_id: Restaurant identifier
            code: Normalized (trimmed, upper-case) coupon code
            subtotal_cents: Order subtotal the coupon is applied to
            now: Current time used for the date window

        Returns:
            Coupon as stored after the increment, or None if not redeemable or on failure
        """
        try:
            response = self.table.update_item(
                Key={"restaurant_id": restaurant_id, "code": code},
                UpdateExpression="SET usage_count = usage_count + :one",
                ConditionExpression=REDEEM_CONDITION,
                ExpressionAttributeNames={"#code": "code"},
                ExpressionAttributeValues={
                    ":one": 1,
                    ":active": True,
                    ":fixed": DiscountType.FIXED.value,
                    ":percentage": DiscountType.PERCENTAGE.value,
                    ":now": format_timestamp(now),
                    ":subtotal": subtotal_cents,
                },
                ReturnValues="ALL_NEW",
            )

        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                logger.info(f"Coupon {code} not redeemable for restaurant {restaurant_id}")
            else:
                logger.error(f"Failed to redeem coupon {code} for restaurant {restaurant_id}: {e}")
            return None

        except STORE_ERRORS as e:
            logger.error(f"Failed to redeem coupon {code} for restaurant {restaurant_id}: {e}")
            return None

        try:
            return Coupon.from_dynamodb_item(response["Attributes"])

        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            logger.error(
                f"Coupon {code} for restaurant {restaurant_id} is malformed, releasing use: {e}"
            )
            self.release_coupon(restaurant_id, code)
            return None

    def release_coupon(self, restaurant_id: str, code: str) -> bool:
        """Give back one previously consumed use of a coupon.

        Args:
            restaurant_id: Restaurant identifier
            code: Normalized coupon code

        Returns:
            bool: True if the usage counter was decremented, False otherwise
        """
        try:
            self.table.update_item(
                Key={"restaurant_id": restaurant_id, "code": code},
                UpdateExpression="SET usage_count = usage_count - :one",
                ConditionExpression="attribute_exists(#code) AND usage_count > :zero",
                ExpressionAttributeNames={"#code": "code"},
                ExpressionAttributeValues={":one": 1, ":zero": 0},
            )
            return True

        except STORE_ERRORS as e:
            logger.error(f"Failed to release coupon {code} for restaurant {restaurant_id}: {e}")
            return False

    def get_coupon(self, restaurant_id: str, code: str) -> Coupon | None:
        """Retrieve a coupon.

        Args:
            restaurant_id: Restaurant identifier
            code: Normalized coupon code

        Returns:
            Coupon if found, None otherwise
        """
        try:
            response = self.table.get_item(
                Key={"restaurant_id": restaurant_id, "code": code}, ConsistentRead=True
            )

            if "Item" not in response:
                return None

            return Coupon.from_dynamodb_item(response["Item"])

        except STORE_ERRORS as e:
            logger.error(f"Failed to get coupon {code}: {e}")
            return None
