"""Pytest fixtures for shopdrop tests."""

import tempfile
from pathlib import Path

import pytest

from shopdrop.ledger import OrderLedger
from shopdrop.models import GeoPoint, LineItem, Shop, ShopProduct
from shopdrop.orders import OrderService
from shopdrop.pricing import PricingTable
from shopdrop.shop_directory import ShopDirectory

# One degree of latitude on a 6371 km sphere
KM_PER_DEGREE = 111.19492664455873

SHOP_LOCATION = GeoPoint(latitude=9.03, longitude=38.74)


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def shops(temp_dir):
    return ShopDirectory(temp_dir)


@pytest.fixture
def pricing(temp_dir):
    return PricingTable(temp_dir)


@pytest.fixture
def ledger(temp_dir):
    return OrderLedger(temp_dir)


@pytest.fixture
def service(shops, pricing, ledger):
    return OrderService(shops, pricing, ledger)


def make_shop(shop_id: str = "shop-1") -> Shop:
    """A shop with three catalog entries: apples, bread and milk."""
    return Shop(
        id=shop_id,
        name="Corner Grocer",
        location=SHOP_LOCATION,
        address="Bole Road 12",
        products=[
            ShopProduct(product_id="apples", price=100, quantity=10),
            ShopProduct(product_id="bread", price=50, quantity=3),
            ShopProduct(product_id="milk", price=30, quantity=0),
        ],
    )


@pytest.fixture
def shop(shops):
    """The default shop, registered in the directory."""
    return shops.add_shop(make_shop())


def point_north_of_shop(km: float) -> GeoPoint:
    """A delivery point `km` kilometers due north of the shop."""
    return GeoPoint(
        latitude=SHOP_LOCATION.latitude + km / KM_PER_DEGREE,
        longitude=SHOP_LOCATION.longitude,
    )


def place_order(service: OrderService, items=None, km: float = 2.5, **kwargs):
    """Create an order against the default shop with sensible defaults."""
    if items is None:
        items = [LineItem(product_id="apples", quantity=2, price=100)]
    params = {
        "user_id": "user-1",
        "shop_id": "shop-1",
        "items": items,
        "delivery_location": point_north_of_shop(km),
        "delivery_address": "Flat 4, Churchill Avenue",
        "payment_method": "cash",
    }
    params.update(kwargs)
    return service.create_order(**params)
