"""Order placement error taxonomy.

Every expected rejection in the placement pipeline is an OrderPlacementError
subclass carrying a stable error kind, the HTTP status it maps to, and a
message that is safe to show to the customer.
"""


class OrderPlacementError(Exception):
    """Base exception for all order placement rejections."""

    error_kind = "InternalError"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class BotVerificationFailed(OrderPlacementError):
    """The bot-check token was missing or rejected by the verification service."""

    error_kind = "BotVerificationFailed"
    status_code = 400
    default_message = "Security check failed. Please try again."


class RateLimited(OrderPlacementError):
    """Too many recent orders from the same client address. Retryable."""

    error_kind = "RateLimited"
    status_code = 429
    default_message = "Too many orders. Please wait."


class InvalidRequestShape(OrderPlacementError):
    """The request envelope or cart violates structural limits."""

    error_kind = "InvalidRequestShape"
    status_code = 400
    default_message = "Invalid request"


class RestaurantNotFound(OrderPlacementError):
    error_kind = "RestaurantNotFound"
    status_code = 404
    default_message = "Restaurant not found"


class RestaurantClosed(OrderPlacementError):
    error_kind = "RestaurantClosed"
    status_code = 400
    default_message = "Restaurant is not accepting orders at this time"


class ItemNotFound(OrderPlacementError):
    error_kind = "ItemNotFound"
    status_code = 400

    def __init__(self, menu_item_id: str) -> None:
        self.menu_item_id = menu_item_id
        super().__init__(f"Menu item not found: {menu_item_id}")


class ItemUnavailable(OrderPlacementError):
    error_kind = "ItemUnavailable"
    status_code = 400

    def __init__(self, item_name: str) -> None:
        self.item_name = item_name
        super().__init__(f"Item unavailable: {item_name}")


class InvalidVariant(OrderPlacementError):
    error_kind = "InvalidVariant"
    status_code = 400

    def __init__(self, item_name: str) -> None:
        self.item_name = item_name
        super().__init__(f"Invalid variant for {item_name}")


class InvalidAddon(OrderPlacementError):
    error_kind = "InvalidAddon"
    status_code = 400

    def __init__(self, item_name: str) -> None:
        self.item_name = item_name
        super().__init__(f"Invalid add-on for {item_name}")


class OrderTooLarge(OrderPlacementError):
    error_kind = "OrderTooLarge"
    status_code = 400
    default_message = "Order value too large"


class PersistenceFailure(OrderPlacementError):
    """The order could not be stored. The message stays generic for clients."""

    error_kind = "PersistenceFailure"
    status_code = 500
    default_message = "Failed to create order"

    def __init__(self, message: str | None = None, orphaned_order_id: str | None = None) -> None:
        # Set when the compensating delete failed and a header without lines remains.
        self.orphaned_order_id = orphaned_order_id
        super().__init__(message)


class InternalError(OrderPlacementError):
    """Unexpected condition or server misconfiguration."""
