"""Integration tests for CLI."""

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

from shopdrop.ledger import OrderLedger
from shopdrop.models import LineItem, Order, PaymentMethod

from .conftest import SHOP_LOCATION, make_shop

SRC_DIR = Path(__file__).resolve().parent.parent / "src"


def run_shopdrop(args: list[str], data_dir: Path) -> subprocess.CompletedProcess:
    """Run shopdrop CLI command against a data directory."""
    env = dict(os.environ)
    env["SHOPDROP_DATA_DIR"] = str(data_dir)
    env["SHOPDROP_LOG_LEVEL"] = "WARNING"
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(SRC_DIR), env.get("PYTHONPATH")]))
    return subprocess.run(
        [sys.executable, "-m", "shopdrop.cli"] + args,
        capture_output=True,
        text=True,
        env=env,
    )


@pytest.fixture
def shop_file(temp_dir):
    path = temp_dir / "shops.json"
    path.write_text(json.dumps([make_shop().to_dict()]))
    return path


class TestCLIIntegration:
    """Integration tests for CLI commands."""

    def test_no_command_prints_help(self, temp_dir):
        result = run_shopdrop([], temp_dir)

        assert result.returncode == 0
        assert "usage" in result.stdout

    def test_shops_import_and_list(self, temp_dir, shop_file):
        result = run_shopdrop(["shops", "import", str(shop_file)], temp_dir)

        assert result.returncode == 0
        assert "Imported shop: shop-1" in result.stdout
        assert (temp_dir / "shops" / "shop-1.json").exists()

        result = run_shopdrop(["shops", "list"], temp_dir)
        assert result.returncode == 0
        assert "Corner Grocer" in result.stdout

    def test_shops_import_bad_file(self, temp_dir):
        missing = temp_dir / "missing.json"

        result = run_shopdrop(["shops", "import", str(missing)], temp_dir)

        assert result.returncode == 1
        assert "Error" in result.stderr

    def test_bands_add_list_remove(self, temp_dir):
        result = run_shopdrop(["bands", "add", "0", "5", "40"], temp_dir)
        assert result.returncode == 0
        assert "Added band" in result.stdout

        result = run_shopdrop(["bands", "list", "--json"], temp_dir)
        bands = json.loads(result.stdout)
        assert len(bands) == 1
        band_id = bands[0]["id"]

        result = run_shopdrop(["bands", "remove", band_id], temp_dir)
        assert result.returncode == 0
        assert "Deactivated band" in result.stdout

        result = run_shopdrop(["bands", "list"], temp_dir)
        assert "No delivery charge bands found." in result.stdout

        result = run_shopdrop(["bands", "list", "--all", "--json"], temp_dir)
        assert json.loads(result.stdout)[0]["is_active"] is False

    def test_bands_add_overlap_fails(self, temp_dir):
        run_shopdrop(["bands", "add", "0", "5", "40"], temp_dir)

        result = run_shopdrop(["bands", "add", "4", "8", "60"], temp_dir)

        assert result.returncode == 1
        assert "overlaps" in result.stderr

    def test_lookup(self, temp_dir):
        result = run_shopdrop(["lookup", "3.2"], temp_dir)
        assert result.returncode == 0
        assert "60 (default formula)" in result.stdout

        run_shopdrop(["bands", "add", "3", "4", "25"], temp_dir)
        result = run_shopdrop(["lookup", "3.2"], temp_dir)
        assert "25 (band" in result.stdout

    @pytest.mark.parametrize("distance", ["-3.2", "inf", "nan"])
    def test_lookup_rejects_unpriceable_distance(self, temp_dir, distance):
        result = run_shopdrop(["lookup", distance], temp_dir)

        assert result.returncode == 1
        assert "Invalid distance" in result.stderr
        assert "Traceback" not in result.stderr

    def test_orders_list_and_reconcile(self, temp_dir, shop_file):
        run_shopdrop(["shops", "import", str(shop_file)], temp_dir)
        order = Order.create(
            user_id="user-1",
            shop_id="shop-1",
            items=[LineItem(product_id="apples", quantity=3, price=100)],
            distance=0.0,
            delivery_charge=20,
            delivery_location=SHOP_LOCATION,
            delivery_address="Flat 4",
            payment_method=PaymentMethod.CASH,
        )
        OrderLedger(temp_dir).save(order)

        result = run_shopdrop(["orders", "list", "--json"], temp_dir)
        assert result.returncode == 0
        data = json.loads(result.stdout)
        assert data["total"] == 1
        assert data["orders"][0]["stock_applied"] is False

        result = run_shopdrop(["orders", "reconcile"], temp_dir)
        assert result.returncode == 0
        assert order.id in result.stdout

        shop = json.loads((temp_dir / "shops" / "shop-1.json").read_text())
        apples = [p for p in shop["products"] if p["product_id"] == "apples"][0]
        assert apples["quantity"] == 7

        result = run_shopdrop(["orders", "reconcile"], temp_dir)
        assert "Nothing to reconcile." in result.stdout

    def test_orders_list_empty(self, temp_dir):
        result = run_shopdrop(["orders", "list"], temp_dir)

        assert result.returncode == 0
        assert "No orders found." in result.stdout
