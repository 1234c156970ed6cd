"""
Order creation, pricing and status lifecycle.

Creation flow: shop lookup -> catalog check -> distance -> delivery charge ->
totals -> ledger write -> stock decrement. The ledger write and the stock
decrement are separate documents with no transaction around them; an order
whose decrement did not land keeps stock_applied=False until
reconcile_stock() picks it up.
"""

import math
from datetime import date, datetime
from typing import Any

from .config import Settings, get_settings
from .errors import (
    InvalidOrderError,
    InvalidStatusTransitionError,
    OrderNotCancellableError,
    PriceMismatchError,
    ProductNotInShopError,
    ShopdropError,
    ShopNotFoundError,
)
from .geo import haversine_distance
from .ledger import (
    DEFAULT_PAGE,
    DEFAULT_PAGE_SIZE,
    OrderFilter,
    OrderLedger,
    OrderPage,
    end_of_day,
    start_of_day,
)
from .logging_config import get_logger
from .models import GeoPoint, LineItem, Order, OrderStatus, PaymentMethod, Shop
from .pricing import PricingTable
from .shop_directory import ShopDirectory
from .transitions import CANCELLABLE_STATES, is_valid_transition

log = get_logger(__name__)


class OrderService:
    """Creates orders and drives them through the status transition table."""

    def __init__(
        self,
        shops: ShopDirectory,
        pricing: PricingTable,
        ledger: OrderLedger,
        validate_prices: bool = False,
    ):
        """
        Args:
            shops: Shop lookup and stock mutation.
            pricing: Delivery charge bands.
            ledger: Order persistence.
            validate_prices: If True, reject line items whose claimed price
                differs from the shop catalog. Off by default: clients'
                cart prices are trusted.
        """
        self.shops = shops
        self.pricing = pricing
        self.ledger = ledger
        self.validate_prices = validate_prices

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "OrderService":
        settings = settings or get_settings()
        return cls(
            shops=ShopDirectory(settings.data_dir),
            pricing=PricingTable(settings.data_dir),
            ledger=OrderLedger(settings.data_dir),
            validate_prices=settings.validate_prices,
        )

    # --- Create ---

    def create_order(
        self,
        user_id: str,
        shop_id: str,
        items: list[LineItem],
        delivery_location: GeoPoint,
        delivery_address: str,
        payment_method: PaymentMethod | str,
    ) -> Order:
        """
        Validate, price and persist a new pending order, then decrement stock.

        Sufficient stock is not checked: ordering more than is available
        drives the shop quantity to zero rather than failing.

        Raises:
            InvalidOrderError: If items, location, address or payment method
                are malformed.
            ShopNotFoundError: If the shop doesn't exist.
            ProductNotInShopError: If an item's product isn't in the catalog.
            PriceMismatchError: If price validation is on and a price differs.
        """
        method = self._validate_request(items, delivery_location, delivery_address, payment_method)

        shop = self.shops.find_shop_by_id(shop_id)
        if shop is None:
            raise ShopNotFoundError(shop_id)

        self._validate_items(shop, items)

        distance = haversine_distance(delivery_location, shop.location)
        delivery_charge = self.pricing.charge_for_distance(distance)

        order = Order.create(
            user_id=user_id,
            shop_id=shop.id,
            items=items,
            distance=distance,
            delivery_charge=delivery_charge,
            delivery_location=delivery_location,
            delivery_address=delivery_address.strip(),
            payment_method=method,
        )
        self.ledger.save(order)
        log_prefix = f"[Order: {order.id}]"
        log.info(
            f"{log_prefix} Created for shop {shop.id}: {len(items)} item(s), "
            f"total {order.total_amount}, distance {distance:.2f} km, "
            f"delivery {delivery_charge}"
        )

        try:
            order = self._apply_stock(order.id)
        except (ShopdropError, OSError) as e:
            log.critical(
                f"{log_prefix} Stock update failed after the order was saved: {e}. "
                f"Left with stock_applied=False for reconciliation.",
                exc_info=True,
            )
        return order

    def _validate_request(
        self,
        items: list[LineItem],
        delivery_location: GeoPoint,
        delivery_address: str,
        payment_method: PaymentMethod | str,
    ) -> PaymentMethod:
        if not items:
            raise InvalidOrderError("order must contain at least one item")
        for item in items:
            if item.quantity < 1:
                raise InvalidOrderError(f"quantity for product {item.product_id} must be >= 1")
            if not math.isfinite(item.price) or item.price < 0:
                raise InvalidOrderError(f"price for product {item.product_id} must be a finite number >= 0")
        if not (
            math.isfinite(delivery_location.latitude)
            and math.isfinite(delivery_location.longitude)
        ):
            raise InvalidOrderError("delivery location must be finite coordinates")
        if not delivery_address or not delivery_address.strip():
            raise InvalidOrderError("delivery address is required")
        try:
            return PaymentMethod(payment_method)
        except ValueError:
            raise InvalidOrderError(f"unknown payment method: {payment_method}")

    def _validate_items(self, shop: Shop, items: list[LineItem]) -> None:
        for item in items:
            product = shop.find_product(item.product_id)
            if product is None:
                raise ProductNotInShopError(item.product_id, shop.id)
            if self.validate_prices and not math.isclose(item.price, product.price):
                raise PriceMismatchError(item.product_id, item.price, product.price)

    def _apply_stock(self, order_id: str) -> Order:
        """
        Decrement shop stock for an order exactly once.

        Runs under the order's lock, and the shop records which orders it has
        applied, so a retry after a failed order write does not decrement again.
        """
        def apply(order: Order) -> None:
            if order.stock_applied:
                return
            self.shops.decrement_stock_many(order.shop_id, order.items, order_id=order.id)
            order.stock_applied = True

        return self.ledger.update(order_id, apply)

    # --- Status lifecycle ---

    def update_status(self, order_id: str, status: OrderStatus | str) -> Order:
        """
        Move an order to a new status if the transition table allows it.

        Raises:
            OrderNotFoundError: If the order doesn't exist.
            InvalidStatusTransitionError: If the transition isn't allowed;
                the order is left unchanged.
        """
        def transition(order: Order) -> None:
            try:
                requested = OrderStatus(status)
            except ValueError:
                raise InvalidStatusTransitionError(order.status.value, str(status))
            if not is_valid_transition(order.status, requested):
                log.warning(
                    f"[Order: {order.id}] Rejected transition "
                    f"{order.status.value} -> {requested.value}"
                )
                raise InvalidStatusTransitionError(order.status.value, requested.value)
            log.info(f"[Order: {order.id}] Status {order.status.value} -> {requested.value}")
            order.status = requested

        return self.ledger.update(order_id, transition)

    def cancel_order(self, order_id: str) -> Order:
        """
        Cancel a pending order. Orders are never deleted.

        Raises:
            OrderNotFoundError: If the order doesn't exist.
            OrderNotCancellableError: If the order is no longer pending.
        """
        def cancel(order: Order) -> None:
            if order.status not in CANCELLABLE_STATES:
                raise OrderNotCancellableError(order.id, order.status.value)
            log.info(f"[Order: {order.id}] Cancelled")
            order.status = OrderStatus.CANCELLED

        return self.ledger.update(order_id, cancel)

    # --- Reads ---

    def get_order(self, order_id: str) -> Order:
        return self.ledger.get(order_id)

    def list_orders(
        self,
        status: OrderStatus | str | None = None,
        user_id: str | None = None,
        shop_id: str | None = None,
        start_date: date | datetime | None = None,
        end_date: date | datetime | None = None,
        page: int = DEFAULT_PAGE,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> OrderPage:
        """
        List orders newest first.

        A plain end_date includes the whole of that day.
        """
        criteria = OrderFilter(
            status=OrderStatus(status) if status is not None else None,
            user_id=user_id,
            shop_id=shop_id,
            start=start_of_day(start_date) if start_date is not None else None,
            end=end_of_day(end_date) if end_date is not None else None,
        )
        return self.ledger.page(criteria, page=page, limit=limit)

    def order_stats(
        self,
        shop_id: str | None = None,
        start_date: date | datetime | None = None,
        end_date: date | datetime | None = None,
    ) -> dict[str, Any]:
        """Order counts grouped by status and payment status."""
        criteria = OrderFilter(
            shop_id=shop_id,
            start=start_of_day(start_date) if start_date is not None else None,
            end=end_of_day(end_date) if end_date is not None else None,
        )
        by_status = self.ledger.count_by_status(criteria)
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "by_payment_status": self.ledger.count_by_payment_status(criteria),
        }

    # --- Compensation ---

    def reconcile_stock(self) -> list[str]:
        """
        Re-apply the stock decrement for orders saved without it.

        Cancelled orders are skipped. Returns the IDs that were fixed; orders
        that still fail stay flagged and are logged.
        """
        fixed: list[str] = []
        pending = self.ledger.query(OrderFilter(stock_applied=False))
        for order in pending:
            if order.status == OrderStatus.CANCELLED:
                continue
            try:
                self._apply_stock(order.id)
            except (ShopdropError, OSError) as e:
                log.error(f"[Order: {order.id}] Reconciliation failed: {e}")
                continue
            log.info(f"[Order: {order.id}] Stock reconciled")
            fixed.append(order.id)
        return fixed
