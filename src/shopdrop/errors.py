"""Custom exceptions for shopdrop."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import DeliveryChargeBand

NOT_FOUND = "NOT_FOUND"
VALIDATION_ERROR = "VALIDATION_ERROR"
OVERLAP_ERROR = "OVERLAP_ERROR"
CONFLICT = "CONFLICT"


class ShopdropError(Exception):
    """Base exception for all shopdrop errors."""

    kind = VALIDATION_ERROR


# --- NOT_FOUND ---


class ShopNotFoundError(ShopdropError):
    """Raised when a shop ID doesn't exist in the directory."""

    kind = NOT_FOUND

    def __init__(self, shop_id: str):
        self.shop_id = shop_id
        super().__init__(f"Shop not found: {shop_id}")


class OrderNotFoundError(ShopdropError):
    """Raised when an order ID doesn't exist in the ledger."""

    kind = NOT_FOUND

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class BandNotFoundError(ShopdropError):
    """Raised when a delivery charge band ID doesn't exist."""

    kind = NOT_FOUND

    def __init__(self, band_id: str):
        self.band_id = band_id
        super().__init__(f"Delivery charge range not found: {band_id}")


# --- VALIDATION_ERROR ---


class InvalidOrderError(ShopdropError):
    """Raised when a create-order request is malformed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid order: {reason}")


class ProductNotInShopError(ShopdropError):
    """Raised when a line item references a product the shop doesn't carry."""

    def __init__(self, product_id: str, shop_id: str | None = None):
        self.product_id = product_id
        self.shop_id = shop_id
        super().__init__(f"Product {product_id} not found in shop")


class PriceMismatchError(ShopdropError):
    """Raised when a claimed unit price differs from the catalog price."""

    def __init__(self, product_id: str, claimed: float, catalog: float):
        self.product_id = product_id
        self.claimed = claimed
        self.catalog = catalog
        super().__init__(
            f"Price mismatch for product {product_id}: "
            f"claimed {claimed}, catalog {catalog}"
        )


class InvalidStatusTransitionError(ShopdropError):
    """Raised when a status change is not in the transition table."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__("Invalid status transition")


class OrderNotCancellableError(ShopdropError):
    """Raised when cancelling an order that is no longer pending."""

    def __init__(self, order_id: str, status: str):
        self.order_id = order_id
        self.status = status
        super().__init__(f"Can only cancel pending orders (order {order_id} is {status})")


class InvalidBandRangeError(ShopdropError):
    """Raised when a delivery charge band has a malformed range or charge."""

    def __init__(self, min_distance: float, max_distance: float, reason: str):
        self.min_distance = min_distance
        self.max_distance = max_distance
        super().__init__(f"Invalid range {min_distance}-{max_distance}: {reason}")


class InvalidDistanceError(ShopdropError):
    """Raised when a distance to price is negative or not a finite number."""

    def __init__(self, distance: float):
        self.distance = distance
        super().__init__(f"Invalid distance: {distance}")


class InvalidSchemaVersionError(ShopdropError):
    """Raised when a stored document has an unsupported schema version."""

    def __init__(self, found: int, supported: int):
        self.found = found
        self.supported = supported
        super().__init__(
            f"Unsupported schema version {found}. This tool supports version {supported}."
        )


# --- OVERLAP_ERROR ---


class BandOverlapError(ShopdropError):
    """Raised when a band range intersects an active band."""

    kind = OVERLAP_ERROR

    def __init__(self, min_distance: float, max_distance: float, existing: "DeliveryChargeBand"):
        self.min_distance = min_distance
        self.max_distance = max_distance
        self.existing = existing
        super().__init__(
            f"This range overlaps with an existing range "
            f"({existing.min_distance}-{existing.max_distance}, charge {existing.charge})"
        )


# --- CONFLICT ---


class StockConflictError(ShopdropError):
    """Raised when a shop's stock document could not be updated."""

    kind = CONFLICT

    def __init__(self, shop_id: str, reason: str):
        self.shop_id = shop_id
        self.reason = reason
        super().__init__(f"Stock update failed for shop {shop_id}: {reason}")
