"""Revalidation of requested cart lines against the authoritative catalog."""

import logging

from restaurant_order_service.errors import (
    InternalError,
    InvalidAddon,
    InvalidVariant,
    ItemNotFound,
    ItemUnavailable,
    RestaurantClosed,
    RestaurantNotFound,
)
from restaurant_order_service.models.catalog_models import Addon, MenuItem, Restaurant, Variant
from restaurant_order_service.models.order_models import AddonSnapshot, CartLine, ResolvedLine
from restaurant_order_service.observability import traced
from restaurant_order_service.repositories.catalog_repositories import (
    STORE_ERRORS,
    MenuCatalogRepository,
    RestaurantRepository,
)
from restaurant_order_service.services.order_validation import OrderLimits, validate_cart_limits

logger = logging.getLogger(__name__)


class CatalogRevaluator:
    """Resolves cart lines to current catalog prices, names, and identifiers.

    Only identity fields are taken from the cart. Prices and names on the
    resolved lines always come from the catalog as read during this request.
    """

    def __init__(
        self,
        restaurant_repository: RestaurantRepository,
        catalog_repository: MenuCatalogRepository,
        limits: OrderLimits | None = None,
    ) -> None:
        """Initialize the revaluator.

        Args:
            restaurant_repository: Repository for restaurant records
            catalog_repository: Repository for items, variants, and add-ons
            limits: Order ceilings (defaults apply when omitted)
        """
        self.restaurant_repository = restaurant_repository
        self.catalog_repository = catalog_repository
        self.limits = limits or OrderLimits()

    def get_open_restaurant(self, restaurant_id: str) -> Restaurant:
        """Load a restaurant and make sure it accepts orders.

        Raises:
            RestaurantNotFound: If the restaurant does not exist
            RestaurantClosed: If the operator switched ordering off
            InternalError: If the restaurant could not be read
        """
        try:
            restaurant = self.restaurant_repository.get_restaurant(restaurant_id)
        except STORE_ERRORS as e:
            raise InternalError("Failed to fetch restaurant") from e

        if restaurant is None:
            raise RestaurantNotFound()

        if not restaurant.is_accepting_orders:
            logger.info(f"Restaurant {restaurant_id} is not accepting orders")
            raise RestaurantClosed()

        return restaurant

    @traced("revalidate_cart", service_name="order-svc")
    async def revalidate(self, restaurant_id: str, lines: list[CartLine]) -> list[ResolvedLine]:
        """Resolve every cart line against the catalog.

        Args:
            restaurant_id: Restaurant the order is placed with
            lines: Requested cart lines

        Returns:
            list: One ResolvedLine per input line, in input order

        Raises:
            InvalidRequestShape: If the cart violates size limits
            RestaurantNotFound: If the restaurant does not exist
            RestaurantClosed: If the restaurant is not accepting orders
            ItemNotFound: If a menu item id does not resolve
            ItemUnavailable: If a menu item is inactive
            InvalidVariant: If a variant is unknown, inactive, or belongs to another item
            InvalidAddon: If an add-on is unknown, inactive, or belongs to another item
            InternalError: If the catalog could not be read
        """
        validate_cart_limits(lines, self.limits)
        self.get_open_restaurant(restaurant_id)

        menu_items = self.catalog_repository.get_menu_items(
            restaurant_id, [line.menu_item_id for line in lines]
        )
        if menu_items is None:
            raise InternalError("Failed to fetch menu items")

        variants_by_item: dict[str, dict[str, Variant]] = {}
        addons_by_item: dict[str, dict[str, Addon]] = {}

        resolved: list[ResolvedLine] = []
        for line in lines:
            item = menu_items.get(line.menu_item_id)
            if item is None:
                raise ItemNotFound(line.menu_item_id)

            if not item.is_active:
                raise ItemUnavailable(item.name)

            variant = None
            if line.variant_id is not None:
                variants = self._variants_for(item, variants_by_item)
                variant = variants.get(line.variant_id)
                if variant is None or not variant.is_active:
                    raise InvalidVariant(item.name)

            addon_snapshots: list[AddonSnapshot] = []
            if line.addons:
                addons = self._addons_for(item, addons_by_item)
                for requested in line.addons:
                    addon = addons.get(requested.id)
                    if addon is None or not addon.is_active:
                        raise InvalidAddon(item.name)
                    addon_snapshots.append(
                        AddonSnapshot(id=addon.addon_id, name=addon.name, price_cents=addon.price_cents)
                    )

            resolved.append(
                ResolvedLine(
                    menu_item_id=item.item_id,
                    name_snapshot=item.name,
                    base_price_cents=item.price_cents,
                    variant_id=variant.variant_id if variant else None,
                    variant_price_cents=variant.price_cents if variant else None,
                    addons=addon_snapshots,
                    quantity=line.quantity,
                    notes=line.notes,
                )
            )

        return resolved

    def _variants_for(
        self, item: MenuItem, cache: dict[str, dict[str, Variant]]
    ) -> dict[str, Variant]:
        """Variants of an item, read at most once per request."""
        if item.item_id not in cache:
            variants = self.catalog_repository.get_variants(item.item_id)
            if variants is None:
                raise InternalError("Failed to fetch variants")
            # Keyed by parent item, but the ownership check stays explicit
            cache[item.item_id] = {
                v.variant_id: v for v in variants if v.menu_item_id == item.item_id
            }
        return cache[item.item_id]

    def _addons_for(self, item: MenuItem, cache: dict[str, dict[str, Addon]]) -> dict[str, Addon]:
        """Add-ons of an item, read at most once per request."""
        if item.item_id not in cache:
            addons = self.catalog_repository.get_addons(item.item_id)
            if addons is None:
                raise InternalError("Failed to fetch addons")
            cache[item.item_id] = {a.addon_id: a for a in addons if a.menu_item_id == item.item_id}
        return cache[item.item_id]
