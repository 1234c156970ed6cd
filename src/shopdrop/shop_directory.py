"""File-backed shop directory: shop lookup, catalog and stock mutation."""

from pathlib import Path
from typing import Iterable

from .errors import ProductNotInShopError, ShopNotFoundError, StockConflictError
from .logging_config import get_logger
from .models import LineItem, Shop, ShopProduct
from .storage import file_lock, read_json, write_json_atomic

log = get_logger(__name__)

SHOPS_DIR = "shops"


class ShopDirectory:
    """
    Stores one JSON document per shop.

    Stock changes are locked read-modify-writes scoped to a single shop
    document, so concurrent orders against the same shop serialize and never
    decrement from a stale quantity.
    """

    def __init__(self, config_dir: Path):
        """
        Initialize ShopDirectory.

        Args:
            config_dir: Base data directory.
        """
        self.shops_dir = config_dir / SHOPS_DIR

    def _shop_path(self, shop_id: str) -> Path:
        return self.shops_dir / f"{shop_id}.json"

    def _lock(self, shop_id: str):
        return file_lock(self.shops_dir / f".{shop_id}.lock")

    def _load(self, shop_id: str) -> Shop | None:
        path = self._shop_path(shop_id)
        if not path.exists():
            return None
        return Shop.from_dict(read_json(path))

    def _save(self, shop: Shop) -> None:
        write_json_atomic(self._shop_path(shop.id), shop.to_dict())

    def find_shop_by_id(self, shop_id: str) -> Shop | None:
        """Return the shop, or None if it isn't registered."""
        # IDs become file names; refuse anything that could leave shops_dir
        if not shop_id or "/" in shop_id or shop_id.startswith("."):
            return None
        return self._load(shop_id)

    def get_shop(self, shop_id: str) -> Shop:
        """
        Raises:
            ShopNotFoundError: If the shop doesn't exist.
        """
        shop = self.find_shop_by_id(shop_id)
        if shop is None:
            raise ShopNotFoundError(shop_id)
        return shop

    def list_shops(self) -> list[Shop]:
        if not self.shops_dir.exists():
            return []
        shops = [Shop.from_dict(read_json(p)) for p in self.shops_dir.glob("*.json")]
        return sorted(shops, key=lambda s: s.name)

    def add_shop(self, shop: Shop) -> Shop:
        """Register or replace a shop document."""
        with self._lock(shop.id):
            self._save(shop)
        log.info(f"[Shop: {shop.id}] Saved with {len(shop.products)} product(s)")
        return shop

    def set_product(self, shop_id: str, product_id: str, price: float, quantity: int) -> ShopProduct:
        """
        Add a product to a shop's catalog or overwrite its price and quantity.

        Raises:
            ShopNotFoundError: If the shop doesn't exist.
        """
        with self._lock(shop_id):
            shop = self._load(shop_id)
            if shop is None:
                raise ShopNotFoundError(shop_id)

            product = shop.find_product(product_id)
            if product is None:
                product = ShopProduct(product_id=product_id, price=price)
                shop.products.append(product)
            product.price = price
            product.set_quantity(quantity)
            self._save(shop)

        return product

    def decrement_stock(self, shop_id: str, product_id: str, quantity: int) -> ShopProduct:
        """
        Atomically decrease a product's quantity, floored at zero.

        Raises:
            ShopNotFoundError: If the shop doesn't exist.
            ProductNotInShopError: If the product isn't in the catalog.
            StockConflictError: If the shop document couldn't be written.
        """
        updated = self.decrement_stock_many(
            shop_id, [LineItem(product_id=product_id, quantity=quantity, price=0)]
        )
        return updated[0]

    def decrement_stock_many(
        self, shop_id: str, items: Iterable[LineItem], order_id: str | None = None
    ) -> list[ShopProduct]:
        """
        Apply every item's decrement in one locked read-modify-write.

        Either all quantities change or none do. When order_id is given the
        shop remembers it, and a repeat call for the same order changes nothing.

        Raises:
            ShopNotFoundError: If the shop doesn't exist.
            ProductNotInShopError: If any product isn't in the catalog.
            StockConflictError: If the shop document couldn't be written.
        """
        items = list(items)
        with self._lock(shop_id):
            shop = self._load(shop_id)
            if shop is None:
                raise ShopNotFoundError(shop_id)

            if order_id is not None and order_id in shop.applied_orders:
                log.info(f"[Order: {order_id}] Stock already deducted from shop {shop_id}")
                products = (shop.find_product(item.product_id) for item in items)
                return [p for p in products if p is not None]

            updated: list[ShopProduct] = []
            for item in items:
                product = shop.find_product(item.product_id)
                if product is None:
                    raise ProductNotInShopError(item.product_id, shop_id)
                product.set_quantity(product.quantity - item.quantity)
                updated.append(product)

            if order_id is not None:
                shop.applied_orders.append(order_id)

            try:
                self._save(shop)
            except OSError as e:
                raise StockConflictError(shop_id, str(e)) from e

        for product in updated:
            log.debug(
                f"[Shop: {shop_id}] {product.product_id} stock now {product.quantity} "
                f"(in_stock={product.in_stock})"
            )
        return updated
