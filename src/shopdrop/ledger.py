"""Order ledger: persistence, filtered listing and aggregate counts."""

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Callable, Iterator

from .errors import OrderNotFoundError
from .logging_config import get_logger
from .models import Order, OrderStatus, PaymentStatus, _utc_now
from .storage import file_lock, read_json, write_json_atomic

log = get_logger(__name__)

ORDERS_DIR = "orders"
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 100


def start_of_day(value: date | datetime) -> datetime:
    """Lower bound for a date filter (UTC midnight for plain dates)."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def end_of_day(value: date | datetime) -> datetime:
    """Upper bound for a date filter; a plain date covers the whole day."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.combine(value, time.max, tzinfo=timezone.utc)


@dataclass(frozen=True)
class OrderFilter:
    """Criteria for listing and counting orders. None means 'any'."""

    status: OrderStatus | None = None
    payment_status: PaymentStatus | None = None
    user_id: str | None = None
    shop_id: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    stock_applied: bool | None = None

    def matches(self, order: Order) -> bool:
        if self.status is not None and order.status != self.status:
            return False
        if self.payment_status is not None and order.payment_status != self.payment_status:
            return False
        if self.user_id is not None and order.user_id != self.user_id:
            return False
        if self.shop_id is not None and order.shop_id != self.shop_id:
            return False
        if self.stock_applied is not None and order.stock_applied != self.stock_applied:
            return False
        if self.start is not None or self.end is not None:
            created = order.created_datetime
            if self.start is not None and created < self.start:
                return False
            if self.end is not None and created > self.end:
                return False
        return True


@dataclass
class OrderPage:
    """One page of orders plus pagination totals."""

    orders: list[Order]
    page: int
    limit: int
    total: int  # matching orders across all pages

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def count(self) -> int:
        return len(self.orders)


class OrderLedger:
    """Stores one JSON document per order, keyed by order ID."""

    def __init__(self, config_dir: Path):
        """
        Initialize OrderLedger.

        Args:
            config_dir: Base data directory.
        """
        self.orders_dir = config_dir / ORDERS_DIR

    def _order_path(self, order_id: str) -> Path:
        return self.orders_dir / f"{order_id}.json"

    def _lock(self, order_id: str):
        return file_lock(self.orders_dir / f".{order_id}.lock")

    def _read(self, order_id: str) -> Order:
        if not order_id or "/" in order_id or order_id.startswith("."):
            raise OrderNotFoundError(order_id)
        path = self._order_path(order_id)
        if not path.exists():
            raise OrderNotFoundError(order_id)
        return Order.from_dict(read_json(path))

    def _write(self, order: Order) -> None:
        # platform_fee always follows delivery_charge on persistence
        order.recompute_platform_fee()
        order.updated_at = _utc_now()
        write_json_atomic(self._order_path(order.id), order.to_dict())

    def save(self, order: Order) -> Order:
        """Persist an order (insert or overwrite)."""
        with self._lock(order.id):
            self._write(order)
        return order

    def get(self, order_id: str) -> Order:
        """
        Raises:
            OrderNotFoundError: If the order doesn't exist.
        """
        return self._read(order_id)

    def update(self, order_id: str, mutate: Callable[[Order], None]) -> Order:
        """
        Locked read-modify-write of a single order.

        If mutate raises, nothing is written and the exception propagates.

        Raises:
            OrderNotFoundError: If the order doesn't exist.
        """
        with self._lock(order_id):
            order = self._read(order_id)
            mutate(order)
            self._write(order)
        return order

    def iter_orders(self) -> Iterator[Order]:
        if not self.orders_dir.exists():
            return
        for path in self.orders_dir.glob("*.json"):
            yield Order.from_dict(read_json(path))

    def query(self, criteria: OrderFilter | None = None) -> list[Order]:
        """Matching orders, newest first by creation time."""
        criteria = criteria or OrderFilter()
        orders = [o for o in self.iter_orders() if criteria.matches(o)]
        orders.sort(key=lambda o: o.created_datetime, reverse=True)
        return orders

    def page(
        self,
        criteria: OrderFilter | None = None,
        page: int = DEFAULT_PAGE,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> OrderPage:
        """
        One page of matching orders.

        Args:
            criteria: Filter to apply.
            page: 1-based page number (values below 1 are treated as 1).
            limit: Page size (values below 1 fall back to the default).
        """
        page = max(page, 1)
        if limit < 1:
            limit = DEFAULT_PAGE_SIZE
        orders = self.query(criteria)
        offset = (page - 1) * limit
        return OrderPage(
            orders=orders[offset:offset + limit],
            page=page,
            limit=limit,
            total=len(orders),
        )

    def count(self, criteria: OrderFilter | None = None) -> int:
        criteria = criteria or OrderFilter()
        return sum(1 for o in self.iter_orders() if criteria.matches(o))

    def count_by_status(self, criteria: OrderFilter | None = None) -> dict[str, int]:
        """Order counts keyed by every OrderStatus value (zeros included)."""
        criteria = criteria or OrderFilter()
        counts = {s.value: 0 for s in OrderStatus}
        for order in self.iter_orders():
            if criteria.matches(order):
                counts[order.status.value] += 1
        return counts

    def count_by_payment_status(self, criteria: OrderFilter | None = None) -> dict[str, int]:
        """Order counts keyed by every PaymentStatus value (zeros included)."""
        criteria = criteria or OrderFilter()
        counts = {s.value: 0 for s in PaymentStatus}
        for order in self.iter_orders():
            if criteria.matches(order):
                counts[order.payment_status.value] += 1
        return counts
