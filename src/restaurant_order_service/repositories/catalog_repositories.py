"""DynamoDB repositories for the restaurant catalog.

The catalog is read-only from the point of view of order placement. Every read
is strongly consistent and nothing is cached between requests, since a stale
price is a correctness bug. Following the repository convention, store errors
are logged and reported as None rather than raised, except for the restaurant
read where "missing" and "unreadable" must stay distinguishable.
"""

import logging
from collections.abc import Iterable
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from restaurant_order_service.models.catalog_models import Addon, MenuItem, Restaurant, Variant

logger = logging.getLogger(__name__)

# DynamoDB BatchGetItem accepts at most 100 keys per call
BATCH_GET_LIMIT = 100
MAX_UNPROCESSED_RETRIES = 3

# Service errors and transport failures (timeouts, dropped connections)
STORE_ERRORS = (ClientError, BotoCoreError)


def query_all(table: Table, **kwargs: Any) -> list[dict[str, Any]]:
    """Run a query and follow pagination until every page is read.

    Args:
        table: DynamoDB table to query
        **kwargs: Query arguments (KeyConditionExpression etc.)

    Returns:
        list: All items returned across pages

    Raises:
        ClientError, BotoCoreError: If any page fails
    """
    items: list[dict[str, Any]] = []
    while True:
        response = table.query(**kwargs)
        items.extend(response.get("Items", []))
        last_key = response.get("LastEvaluatedKey")
        if not last_key:
            return items
        kwargs["ExclusiveStartKey"] = last_key


class RestaurantRepository:
    """Repository for restaurant records keyed by restaurant_id."""

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def get_restaurant(self, restaurant_id: str) -> Restaurant | None:
        """Retrieve a restaurant.

        Unlike the other reads, store errors are raised so a failed lookup is
        never mistaken for a missing restaurant.

        Args:
            restaurant_id: Restaurant identifier

        Returns:
            Restaurant if found, None otherwise

        Raises:
            ClientError, BotoCoreError: If the read fails
        """
        try:
            response = self.table.get_item(
                Key={"restaurant_id": restaurant_id}, ConsistentRead=True
            )

        except STORE_ERRORS as e:
            logger.error(f"Failed to get restaurant {restaurant_id}: {e}")
            raise

        if "Item" not in response:
            return None

        return Restaurant.from_dynamodb_item(response["Item"])


class MenuCatalogRepository:
    """Repository for menu items, variants, and add-ons.

    Menu items are keyed by (restaurant_id, item_id) so an item belonging to a
    different restaurant never resolves. Variants and add-ons are keyed by
    (menu_item_id, variant_id) and (menu_item_id, addon_id) respectively.
    """

    def __init__(
        self,
        dynamodb_resource: DynamoDBServiceResource,
        items_table_name: str,
        variants_table_name: str,
        addons_table_name: str,
    ) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            items_table_name: Table holding menu items
            variants_table_name: Table holding menu item variants
            addons_table_name: Table holding menu item add-ons
        """
        self.dynamodb = dynamodb_resource
        self.items_table_name = items_table_name
        self.variants_table: Table = dynamodb_resource.Table(variants_table_name)
        self.addons_table: Table = dynamodb_resource.Table(addons_table_name)

    def get_menu_items(
        self, restaurant_id: str, item_ids: Iterable[str]
    ) -> dict[str, MenuItem] | None:
        """Fetch menu items of a restaurant by id in consistent batches.

        Args:
            restaurant_id: Restaurant identifier
            item_ids: Menu item identifiers (duplicates are ignored)

        Returns:
            Mapping of item_id to MenuItem (unknown ids are absent), or None on failure
        """
        unique_ids = list(dict.fromkeys(item_ids))
        found: dict[str, MenuItem] = {}

        try:
            for start in range(0, len(unique_ids), BATCH_GET_LIMIT):
                keys = [
                    {"restaurant_id": restaurant_id, "item_id": item_id}
                    for item_id in unique_ids[start : start + BATCH_GET_LIMIT]
                ]
                request: dict[str, Any] = {
                    self.items_table_name: {"Keys": keys, "ConsistentRead": True}
                }

                attempts = 0
                while request:
                    if attempts > MAX_UNPROCESSED_RETRIES:
                        logger.error(
                            f"Menu item batch read left unprocessed keys for restaurant {restaurant_id}"
                        )
                        return None
                    response = self.dynamodb.batch_get_item(RequestItems=request)
                    for raw in response.get("Responses", {}).get(self.items_table_name, []):
                        item = MenuItem.from_dynamodb_item(raw)
                        found[item.item_id] = item
                    request = response.get("UnprocessedKeys") or {}
                    attempts += 1

            return found

        except STORE_ERRORS as e:
            logger.error(f"Failed to fetch menu items for restaurant {restaurant_id}: {e}")
            return None

    def get_variants(self, menu_item_id: str) -> list[Variant] | None:
        """List every variant of a menu item, active or not.

        Args:
            menu_item_id: Parent menu item identifier

        Returns:
            List of Variant objects (empty if none), or None on failure
        """
        try:
            items = query_all(
                self.variants_table,
                KeyConditionExpression="menu_item_id = :mid",
                ExpressionAttributeValues={":mid": menu_item_id},
                ConsistentRead=True,
            )
            return [Variant.from_dynamodb_item(item) for item in items]

        except STORE_ERRORS as e:
            logger.error(f"Failed to fetch variants for item {menu_item_id}: {e}")
            return None

    def get_addons(self, menu_item_id: str) -> list[Addon] | None:
        """List every add-on of a menu item, active or not.

        Args:
            menu_item_id: Parent menu item identifier

        Returns:
            List of Addon objects (empty if none), or None on failure
        """
        try:
            items = query_all(
                self.addons_table,
                KeyConditionExpression="menu_item_id = :mid",
                ExpressionAttributeValues={":mid": menu_item_id},
                ConsistentRead=True,
            )
            return [Addon.from_dynamodb_item(item) for item in items]

        except STORE_ERRORS as e:
            logger.error(f"Failed to fetch add-ons for item {menu_item_id}: {e}")
            return None
