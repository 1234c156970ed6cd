"""Data models for shopdrop."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
import uuid

PLATFORM_FEE_RATE = 0.1


def _utc_now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _generate_id() -> str:
    """Generate a new document ID."""
    return str(uuid.uuid4())


def parse_timestamp(value: str) -> datetime:
    """Parse a timestamp written by _utc_now() back into an aware datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    WALLET = "wallet"


@dataclass(frozen=True)
class GeoPoint:
    """A point in decimal degrees."""

    latitude: float
    longitude: float

    @classmethod
    def from_coordinates(cls, coordinates: list[float]) -> "GeoPoint":
        """Build from a GeoJSON [longitude, latitude] pair."""
        if len(coordinates) != 2:
            raise ValueError("coordinates must be [longitude, latitude]")
        longitude, latitude = coordinates
        return cls(latitude=float(latitude), longitude=float(longitude))

    def to_coordinates(self) -> list[float]:
        return [self.longitude, self.latitude]

    def to_dict(self) -> dict[str, Any]:
        return {"type": "Point", "coordinates": self.to_coordinates()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GeoPoint":
        return cls.from_coordinates(data["coordinates"])


@dataclass(frozen=True)
class LineItem:
    """One product/quantity/price triple; price is snapshotted at order time."""

    product_id: str
    quantity: int
    price: float

    @property
    def subtotal(self) -> float:
        return self.price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price": self.price,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LineItem":
        return cls(
            product_id=data["product_id"],
            quantity=data["quantity"],
            price=data["price"],
        )


def compute_total(items: list[LineItem]) -> float:
    """Sum of price * quantity over line items."""
    return sum(item.subtotal for item in items)


def compute_platform_fee(delivery_charge: float) -> float:
    """Platform revenue share derived from the delivery charge."""
    return delivery_charge * PLATFORM_FEE_RATE


@dataclass
class Order:
    """A customer order against a single shop."""

    id: str
    user_id: str
    shop_id: str
    items: list[LineItem]
    distance: float  # km
    total_amount: float
    delivery_charge: float
    delivery_location: GeoPoint
    delivery_address: str
    payment_method: PaymentMethod
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    platform_fee: float = 0.0
    stock_applied: bool = False
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)

    def set_delivery_charge(self, charge: float) -> None:
        """Change the delivery charge and keep the platform fee consistent."""
        self.delivery_charge = charge
        self.recompute_platform_fee()

    def recompute_platform_fee(self) -> None:
        self.platform_fee = compute_platform_fee(self.delivery_charge)

    @property
    def created_datetime(self) -> datetime:
        return parse_timestamp(self.created_at)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "shop_id": self.shop_id,
            "items": [item.to_dict() for item in self.items],
            "distance": self.distance,
            "total_amount": self.total_amount,
            "delivery_charge": self.delivery_charge,
            "platform_fee": self.platform_fee,
            "delivery_location": self.delivery_location.to_dict(),
            "delivery_address": self.delivery_address,
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "payment_method": self.payment_method.value,
            "stock_applied": self.stock_applied,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Order":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            shop_id=data["shop_id"],
            items=[LineItem.from_dict(i) for i in data.get("items", [])],
            distance=data["distance"],
            total_amount=data["total_amount"],
            delivery_charge=data["delivery_charge"],
            delivery_location=GeoPoint.from_dict(data["delivery_location"]),
            delivery_address=data["delivery_address"],
            payment_method=PaymentMethod(data["payment_method"]),
            status=OrderStatus(data.get("status", OrderStatus.PENDING.value)),
            payment_status=PaymentStatus(data.get("payment_status", PaymentStatus.PENDING.value)),
            platform_fee=data.get("platform_fee", 0.0),
            stock_applied=data.get("stock_applied", False),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )

    @classmethod
    def create(
        cls,
        user_id: str,
        shop_id: str,
        items: list[LineItem],
        distance: float,
        delivery_charge: float,
        delivery_location: GeoPoint,
        delivery_address: str,
        payment_method: PaymentMethod,
    ) -> "Order":
        """Create a new pending order with generated ID, totals and timestamps."""
        now = _utc_now()
        order = cls(
            id=_generate_id(),
            user_id=user_id,
            shop_id=shop_id,
            items=list(items),
            distance=distance,
            total_amount=compute_total(items),
            delivery_charge=delivery_charge,
            delivery_location=delivery_location,
            delivery_address=delivery_address,
            payment_method=payment_method,
            created_at=now,
            updated_at=now,
        )
        order.recompute_platform_fee()
        return order


@dataclass
class DeliveryChargeBand:
    """A [min_distance, max_distance) range with a flat delivery charge."""

    id: str
    min_distance: float  # km, inclusive
    max_distance: float  # km, exclusive
    charge: float
    is_active: bool = True
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)

    def contains(self, distance: float) -> bool:
        return self.min_distance <= distance < self.max_distance

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "min_distance": self.min_distance,
            "max_distance": self.max_distance,
            "charge": self.charge,
            "is_active": self.is_active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeliveryChargeBand":
        return cls(
            id=data["id"],
            min_distance=data["min_distance"],
            max_distance=data["max_distance"],
            charge=data["charge"],
            is_active=data.get("is_active", True),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )

    @classmethod
    def create(cls, min_distance: float, max_distance: float, charge: float) -> "DeliveryChargeBand":
        now = _utc_now()
        return cls(
            id=_generate_id(),
            min_distance=min_distance,
            max_distance=max_distance,
            charge=charge,
            is_active=True,
            created_at=now,
            updated_at=now,
        )


@dataclass
class ShopProduct:
    """A product entry in a shop's catalog."""

    product_id: str
    price: float
    quantity: int = 0
    in_stock: bool = field(init=False, default=False)

    def __post_init__(self) -> None:
        self.in_stock = self.quantity > 0

    def set_quantity(self, quantity: int) -> None:
        """Set quantity floored at zero and refresh in_stock."""
        self.quantity = max(0, quantity)
        self.in_stock = self.quantity > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "price": self.price,
            "quantity": self.quantity,
            "in_stock": self.in_stock,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ShopProduct":
        return cls(
            product_id=data["product_id"],
            price=data["price"],
            quantity=data.get("quantity", 0),
        )


@dataclass
class Shop:
    """A shop with a registered location and a product catalog."""

    id: str
    name: str
    location: GeoPoint
    address: str = ""
    is_open: bool = True
    products: list[ShopProduct] = field(default_factory=list)
    applied_orders: list[str] = field(default_factory=list)  # order IDs whose stock is deducted

    def find_product(self, product_id: str) -> ShopProduct | None:
        for product in self.products:
            if product.product_id == product_id:
                return product
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location.to_dict(),
            "address": self.address,
            "is_open": self.is_open,
            "products": [p.to_dict() for p in self.products],
            "applied_orders": list(self.applied_orders),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Shop":
        return cls(
            id=data.get("id") or _generate_id(),
            name=data.get("name", ""),
            location=GeoPoint.from_dict(data["location"]),
            address=data.get("address", ""),
            is_open=data.get("is_open", True),
            products=[ShopProduct.from_dict(p) for p in data.get("products", [])],
            applied_orders=list(data.get("applied_orders", [])),
        )
