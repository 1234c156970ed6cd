"""Command-line interface for shopdrop."""

import argparse
import json
import sys
from pathlib import Path

from . import __version__
from .config import get_settings
from .errors import ShopdropError
from .logging_config import setup_logging
from .models import DeliveryChargeBand, Order, Shop
from .orders import OrderService
from .pricing import PricingTable, default_delivery_charge
from .shop_directory import ShopDirectory


def get_pricing_table() -> PricingTable:
    return PricingTable(get_settings().data_dir)


def get_shop_directory() -> ShopDirectory:
    return ShopDirectory(get_settings().data_dir)


def format_band(band: DeliveryChargeBand) -> str:
    """Format a band for display."""
    status = "active" if band.is_active else "inactive"
    return (
        f"{band.id[:8]}  {band.min_distance:g}-{band.max_distance:g} km"
        f"  charge {band.charge:g} ({status})"
    )


def format_order(order: Order) -> str:
    """Format an order for display."""
    stock = "" if order.stock_applied else " [stock pending]"
    return (
        f"{order.id[:8]}  {order.status.value:<16} shop {order.shop_id}"
        f"  total {order.total_amount:g} + delivery {order.delivery_charge:g}"
        f"  ({order.created_at}){stock}"
    )


def cmd_shops_import(args: argparse.Namespace) -> int:
    """Load shops from a JSON file (one shop object or a list of them)."""
    try:
        with open(args.file, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error: cannot read {args.file}: {e}", file=sys.stderr)
        return 1

    entries = data if isinstance(data, list) else [data]
    directory = get_shop_directory()
    try:
        shops = [Shop.from_dict(entry) for entry in entries]
    except (KeyError, ValueError, TypeError) as e:
        print(f"Error: invalid shop document: {e}", file=sys.stderr)
        return 1

    for shop in shops:
        directory.add_shop(shop)
        print(f"Imported shop: {shop.id}  {shop.name} ({len(shop.products)} products)")
    return 0


def cmd_shops_list(args: argparse.Namespace) -> int:
    """List registered shops."""
    shops = get_shop_directory().list_shops()
    if not shops:
        print("No shops found.")
        return 0

    if args.json:
        print(json.dumps([s.to_dict() for s in shops], indent=2))
        return 0

    print(f"Shops ({len(shops)}):")
    for shop in shops:
        coords = shop.location.to_coordinates()
        print(f"  {shop.id}  {shop.name}  [{coords[0]}, {coords[1]}]  {len(shop.products)} products")
    return 0


def cmd_bands_list(args: argparse.Namespace) -> int:
    """List delivery charge bands."""
    try:
        bands = get_pricing_table().list_bands(include_inactive=args.all)
    except ShopdropError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not bands:
        print("No delivery charge bands found.")
        return 0

    if args.json:
        print(json.dumps([b.to_dict() for b in bands], indent=2))
    else:
        print(f"Delivery charge bands ({len(bands)}):")
        for band in bands:
            print(f"  {format_band(band)}")
    return 0


def cmd_bands_add(args: argparse.Namespace) -> int:
    """Add a delivery charge band."""
    try:
        band = get_pricing_table().insert_band(args.min_distance, args.max_distance, args.charge)
    except ShopdropError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Added band: {format_band(band)}")
    return 0


def cmd_bands_remove(args: argparse.Namespace) -> int:
    """Deactivate a delivery charge band."""
    try:
        band = get_pricing_table().deactivate_band(args.band_id)
    except ShopdropError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Deactivated band: {format_band(band)}")
    return 0


def cmd_lookup(args: argparse.Namespace) -> int:
    """Show the delivery charge for a distance."""
    try:
        band = get_pricing_table().find_band(args.distance)
    except ShopdropError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if band is None:
        charge = default_delivery_charge(args.distance)
        print(f"{args.distance:g} km -> {charge:g} (default formula)")
    else:
        print(f"{args.distance:g} km -> {band.charge:g} (band {band.id[:8]})")
    return 0


def cmd_orders_list(args: argparse.Namespace) -> int:
    """List orders newest first."""
    try:
        service = OrderService.from_settings()
        page = service.list_orders(
            status=args.status,
            user_id=args.user,
            shop_id=args.shop,
            page=args.page,
            limit=args.limit,
        )
    except ShopdropError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        data = {
            "orders": [o.to_dict() for o in page.orders],
            "page": page.page,
            "pages": page.pages,
            "total": page.total,
        }
        print(json.dumps(data, indent=2))
        return 0

    if not page.orders:
        print("No orders found.")
        return 0

    print(f"Orders (page {page.page}/{page.pages}, {page.total} total):")
    for order in page.orders:
        print(f"  {format_order(order)}")
    return 0


def cmd_orders_reconcile(args: argparse.Namespace) -> int:
    """Re-apply missing stock decrements."""
    fixed = OrderService.from_settings().reconcile_stock()
    if not fixed:
        print("Nothing to reconcile.")
        return 0

    print(f"Reconciled {len(fixed)} order(s):")
    for order_id in fixed:
        print(f"  {order_id}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    import uvicorn

    print("Starting shopdrop API server...")
    print(f"Data directory: {get_settings().data_dir}")
    print(f"API docs: http://{args.host}:{args.port}/docs")
    print()

    # When reload is enabled, uvicorn requires the app as an import string
    app_target = "shopdrop.api:app" if args.reload else None
    if app_target is None:
        from .api import app
        app_target = app

    uvicorn.run(
        app_target,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="shopdrop",
        description="Order pricing and fulfillment for a local delivery marketplace.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", "-p", type=int, default=8000, help="Port to bind to (default: 8000)"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )

    # lookup
    lookup_parser = subparsers.add_parser("lookup", help="Show the delivery charge for a distance")
    lookup_parser.add_argument("distance", type=float, help="Distance in km")

    # shops (subcommand group)
    shops_parser = subparsers.add_parser("shops", help="Manage the shop directory")
    shops_subparsers = shops_parser.add_subparsers(dest="shops_command")

    shops_import_parser = shops_subparsers.add_parser("import", help="Import shops from JSON")
    shops_import_parser.add_argument("file", type=Path, help="JSON file with a shop or a list of shops")

    shops_list_parser = shops_subparsers.add_parser("list", help="List shops")
    shops_list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # bands (subcommand group)
    bands_parser = subparsers.add_parser("bands", help="Manage delivery charge bands")
    bands_subparsers = bands_parser.add_subparsers(dest="bands_command")

    bands_list_parser = bands_subparsers.add_parser("list", help="List bands")
    bands_list_parser.add_argument("--json", action="store_true", help="Output as JSON")
    bands_list_parser.add_argument(
        "--all", "-a", action="store_true", help="Include inactive bands"
    )

    bands_add_parser = bands_subparsers.add_parser("add", help="Add a band")
    bands_add_parser.add_argument("min_distance", type=float, help="Inclusive lower bound (km)")
    bands_add_parser.add_argument("max_distance", type=float, help="Exclusive upper bound (km)")
    bands_add_parser.add_argument("charge", type=float, help="Flat delivery charge")

    bands_remove_parser = bands_subparsers.add_parser("remove", help="Deactivate a band")
    bands_remove_parser.add_argument("band_id", help="Band ID")

    # orders (subcommand group)
    orders_parser = subparsers.add_parser("orders", help="Inspect orders")
    orders_subparsers = orders_parser.add_subparsers(dest="orders_command")

    orders_list_parser = orders_subparsers.add_parser("list", help="List orders")
    orders_list_parser.add_argument(
        "--status",
        choices=["pending", "confirmed", "preparing", "out_for_delivery", "delivered", "cancelled"],
        help="Filter by status",
    )
    orders_list_parser.add_argument("--user", help="Filter by user ID")
    orders_list_parser.add_argument("--shop", help="Filter by shop ID")
    orders_list_parser.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    orders_list_parser.add_argument("--limit", type=int, default=100, help="Page size (default: 100)")
    orders_list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    orders_subparsers.add_parser(
        "reconcile", help="Re-apply stock decrements for orders saved without them"
    )

    return parser


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 0

    setup_logging()

    groups = {
        "shops": ("shops_command", {"import": cmd_shops_import, "list": cmd_shops_list}),
        "bands": (
            "bands_command",
            {"list": cmd_bands_list, "add": cmd_bands_add, "remove": cmd_bands_remove},
        ),
        "orders": (
            "orders_command",
            {"list": cmd_orders_list, "reconcile": cmd_orders_reconcile},
        ),
    }

    if args.command in groups:
        dest, handlers = groups[args.command]
        sub_command = getattr(args, dest, None)
        if not sub_command:
            parser.parse_args([args.command, "--help"])
            return 0
        return handlers[sub_command](args)

    commands = {
        "serve": cmd_serve,
        "lookup": cmd_lookup,
    }

    cmd_func = commands.get(args.command)
    if cmd_func:
        return cmd_func(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
