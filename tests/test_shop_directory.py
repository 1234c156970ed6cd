"""Tests for the shop directory and stock mutation."""

import pytest

from shopdrop.errors import ProductNotInShopError, ShopNotFoundError, StockConflictError
from shopdrop.models import LineItem, ShopProduct
from shopdrop.shop_directory import ShopDirectory

from .conftest import make_shop


class TestShopProduct:
    def test_in_stock_follows_quantity(self):
        assert ShopProduct(product_id="a", price=1, quantity=2).in_stock is True
        assert ShopProduct(product_id="a", price=1, quantity=0).in_stock is False

    def test_set_quantity_floors_at_zero(self):
        product = ShopProduct(product_id="a", price=1, quantity=2)

        product.set_quantity(-3)

        assert product.quantity == 0
        assert product.in_stock is False

    def test_stored_in_stock_is_recomputed(self):
        product = ShopProduct.from_dict(
            {"product_id": "a", "price": 1, "quantity": 0, "in_stock": True}
        )
        assert product.in_stock is False


class TestLookup:
    def test_find_registered_shop(self, shops, shop):
        found = shops.find_shop_by_id("shop-1")

        assert found is not None
        assert found.name == "Corner Grocer"
        assert [p.product_id for p in found.products] == ["apples", "bread", "milk"]

    def test_find_missing_shop(self, shops):
        assert shops.find_shop_by_id("nope") is None

    @pytest.mark.parametrize("shop_id", ["", "../etc", ".hidden"])
    def test_unsafe_ids_never_resolve(self, shops, shop, shop_id):
        assert shops.find_shop_by_id(shop_id) is None

    def test_get_shop_raises(self, shops):
        with pytest.raises(ShopNotFoundError):
            shops.get_shop("nope")

    def test_list_shops_sorted_by_name(self, shops):
        second = make_shop("shop-2")
        second.name = "Anbessa Market"
        shops.add_shop(make_shop("shop-1"))
        shops.add_shop(second)

        assert [s.id for s in shops.list_shops()] == ["shop-2", "shop-1"]

    def test_list_shops_empty(self, shops):
        assert shops.list_shops() == []


class TestSetProduct:
    def test_adds_new_product(self, shops, shop):
        product = shops.set_product("shop-1", "eggs", price=12, quantity=6)

        assert product.in_stock is True
        assert shops.get_shop("shop-1").find_product("eggs").quantity == 6

    def test_overwrites_existing_product(self, shops, shop):
        shops.set_product("shop-1", "milk", price=35, quantity=4)

        milk = shops.get_shop("shop-1").find_product("milk")
        assert milk.price == 35
        assert milk.quantity == 4
        assert milk.in_stock is True

    def test_missing_shop(self, shops):
        with pytest.raises(ShopNotFoundError):
            shops.set_product("nope", "eggs", price=1, quantity=1)


class TestDecrementStock:
    def test_decrements_quantity(self, shops, shop):
        product = shops.decrement_stock("shop-1", "apples", 4)

        assert product.quantity == 6
        assert shops.get_shop("shop-1").find_product("apples").quantity == 6

    def test_oversell_floors_at_zero(self, shops, shop):
        product = shops.decrement_stock("shop-1", "bread", 5)

        assert product.quantity == 0
        assert product.in_stock is False
        stored = shops.get_shop("shop-1").find_product("bread")
        assert stored.quantity == 0
        assert stored.in_stock is False

    def test_missing_product(self, shops, shop):
        with pytest.raises(ProductNotInShopError):
            shops.decrement_stock("shop-1", "caviar", 1)

    def test_missing_shop(self, shops):
        with pytest.raises(ShopNotFoundError):
            shops.decrement_stock("nope", "apples", 1)

    def test_many_is_all_or_nothing(self, shops, shop):
        items = [
            LineItem(product_id="apples", quantity=2, price=100),
            LineItem(product_id="caviar", quantity=1, price=900),
        ]

        with pytest.raises(ProductNotInShopError):
            shops.decrement_stock_many("shop-1", items)

        assert shops.get_shop("shop-1").find_product("apples").quantity == 10

    def test_many_applies_every_item(self, shops, shop):
        shops.decrement_stock_many(
            "shop-1",
            [
                LineItem(product_id="apples", quantity=2, price=100),
                LineItem(product_id="bread", quantity=1, price=50),
            ],
        )

        stored = shops.get_shop("shop-1")
        assert stored.find_product("apples").quantity == 8
        assert stored.find_product("bread").quantity == 2

    def test_write_failure_becomes_conflict(self, shops, shop, monkeypatch):
        def failing_save(self, shop):
            raise OSError("disk full")

        monkeypatch.setattr(ShopDirectory, "_save", failing_save)

        with pytest.raises(StockConflictError):
            shops.decrement_stock("shop-1", "apples", 1)

    def test_repeat_for_same_order_changes_nothing(self, shops, shop):
        items = [LineItem(product_id="apples", quantity=2, price=100)]

        shops.decrement_stock_many("shop-1", items, order_id="order-1")
        shops.decrement_stock_many("shop-1", items, order_id="order-1")

        stored = shops.get_shop("shop-1")
        assert stored.find_product("apples").quantity == 8
        assert stored.applied_orders == ["order-1"]

    def test_distinct_orders_each_apply(self, shops, shop):
        items = [LineItem(product_id="apples", quantity=2, price=100)]

        shops.decrement_stock_many("shop-1", items, order_id="order-1")
        shops.decrement_stock_many("shop-1", items, order_id="order-2")

        assert shops.get_shop("shop-1").find_product("apples").quantity == 6
