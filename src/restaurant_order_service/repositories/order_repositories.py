"""DynamoDB repositories for orders and order lines.

Order headers are keyed by order_id with two global secondary indexes:
order_token-index for anonymous tracking and ip_address-index (sorted by
created_at) for rate limiting. Order lines are keyed by (order_id, line_number).
"""

import logging
from datetime import datetime

from boto3.dynamodb.types import TypeSerializer
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from restaurant_order_service.models.order_models import Order, OrderLine
from restaurant_order_service.models.timestamps import format_timestamp
from restaurant_order_service.repositories.catalog_repositories import STORE_ERRORS, query_all

logger = logging.getLogger(__name__)

# DynamoDB TransactWriteItems accepts at most 100 actions per call
TRANSACT_WRITE_LIMIT = 100


class OrderRepository:
    """Repository for order header operations."""

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def insert_order(self, order: Order) -> bool:
        """Insert a new order header. Never overwrites an existing order.

        Args:
            order: Order to insert

        Returns:
            bool: True if insert succeeded, False otherwise
        """
        try:
            self.table.put_item(
                Item=order.to_dynamodb_item(),
                ConditionExpression="attribute_not_exists(order_id)",
            )
            return True

        except STORE_ERRORS as e:
            logger.error(f"Failed to insert order {order.order_id}: {e}")
            return False

    def get_order(self, order_id: str) -> Order | None:
        """Retrieve an order by id.

        Args:
            order_id: Order identifier

        Returns:
            Order if found, None otherwise
        """
        try:
            response = self.table.get_item(Key={"order_id": order_id}, ConsistentRead=True)

            if "Item" not in response:
                return None

            return Order.from_dynamodb_item(response["Item"])

        except STORE_ERRORS as e:
            logger.error(f"Failed to get order {order_id}: {e}")
            return None

    def get_order_by_token(self, order_token: str) -> Order | None:
        """Retrieve an order by its tracking token.

        Args:
            order_token: Customer-facing tracking token

        Returns:
            Order if found, None otherwise
        """
        try:
            response = self.table.query(
                IndexName="order_token-index",
                KeyConditionExpression="order_token = :token",
                ExpressionAttributeValues={":token": order_token},
                Limit=1,
            )

            items = response.get("Items", [])
            if not items:
                return None

            return Order.from_dynamodb_item(items[0])

        except STORE_ERRORS as e:
            logger.error(f"Failed to look up order by token: {e}")
            return None

    def delete_order(self, order_id: str) -> bool:
        """Delete an order header.

        Args:
            order_id: Order identifier

        Returns:
            bool: True if delete succeeded, False otherwise
        """
        try:
            self.table.delete_item(Key={"order_id": order_id})
            return True

        except STORE_ERRORS as e:
            logger.error(f"Failed to delete order {order_id}: {e}")
            return False

    def count_orders_by_address_since(self, ip_address: str, since: datetime) -> int | None:
        """Count orders created from a client address at or after a point in time.

        Args:
            ip_address: Originating client address
            since: Start of the window

        Returns:
            int: Number of matching orders, or None on failure
        """
        kwargs = {
            "IndexName": "ip_address-index",
            "KeyConditionExpression": "ip_address = :ip AND created_at >= :since",
            "ExpressionAttributeValues": {":ip": ip_address, ":since": format_timestamp(since)},
            "Select": "COUNT",
        }

        try:
            count = 0
            while True:
                response = self.table.query(**kwargs)
                count += int(response.get("Count", 0))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    return count
                kwargs["ExclusiveStartKey"] = last_key

        except STORE_ERRORS as e:
            logger.error(f"Failed to count recent orders for address: {e}")
            return None


class OrderLineRepository:
    """Repository for order line operations."""

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)
        self.serializer = TypeSerializer()

    def insert_lines(self, lines: list[OrderLine]) -> bool:
        """Insert all lines of an order in a single transaction.

        Either every line is written or none is.

        Args:
            lines: Order lines to insert (1 to 100)

        Returns:
            bool: True if the transaction committed, False otherwise
        """
        if not lines or len(lines) > TRANSACT_WRITE_LIMIT:
            logger.error(f"Cannot insert {len(lines)} order lines in one transaction")
            return False

        transact_items = [
            {
                "Put": {
                    "TableName": self.table_name,
                    "Item": {
                        key: self.serializer.serialize(value)
                        for key, value in line.to_dynamodb_item().items()
                    },
                    "ConditionExpression": "attribute_not_exists(order_id)",
                }
            }
            for line in lines
        ]

        try:
            self.dynamodb.meta.client.transact_write_items(TransactItems=transact_items)
            return True

        except STORE_ERRORS as e:
            logger.error(f"Failed to insert lines for order {lines[0].order_id}: {e}")
            return False

    def list_lines(self, order_id: str) -> list[OrderLine]:
        """List the lines of an order in line order.

        Args:
            order_id: Order identifier

        Returns:
            list: List of OrderLine objects (empty list if none found)
        """
        try:
            items = query_all(
                self.table,
                KeyConditionExpression="order_id = :oid",
                ExpressionAttributeValues={":oid": order_id},
            )
            return [OrderLine.from_dynamodb_item(item) for item in items]

        except STORE_ERRORS as e:
            logger.error(f"Failed to list lines for order {order_id}: {e}")
            return []
