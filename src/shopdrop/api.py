"""FastAPI REST API for shopdrop orders and delivery charges."""

from contextlib import asynccontextmanager
from datetime import date
from typing import Literal, Optional

from fastapi import FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, FiniteFloat

from . import __version__
from .config import get_settings
from .errors import (
    CONFLICT,
    NOT_FOUND,
    OVERLAP_ERROR,
    VALIDATION_ERROR,
    BandOverlapError,
    ShopdropError,
    ShopNotFoundError,
)
from .ledger import DEFAULT_PAGE_SIZE, OrderPage
from .logging_config import get_logger, setup_logging
from .models import (
    DeliveryChargeBand,
    GeoPoint,
    LineItem,
    Order,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    Shop,
)
from .orders import OrderService
from .pricing import PricingTable, default_delivery_charge
from .shop_directory import ShopDirectory

log = get_logger(__name__)


# --- Pydantic Schemas ---


class LineItemSchema(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    price: FiniteFloat = Field(..., ge=0)  # unit price as claimed by the client


class GeoPointSchema(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: list[float] = Field(..., min_length=2, max_length=2)  # [longitude, latitude]


class OrderCreateRequest(BaseModel):
    """Request body for creating an order."""

    shop_id: str
    items: list[LineItemSchema] = Field(..., min_length=1)
    delivery_location: list[FiniteFloat] = Field(
        ...,
        min_length=2,
        max_length=2,
        description="Delivery point as [longitude, latitude]",
    )
    delivery_address: str = Field(..., min_length=1)
    payment_method: PaymentMethod


class OrderSchema(BaseModel):
    id: str
    user_id: str
    shop_id: str
    items: list[LineItemSchema]
    distance: float
    total_amount: float
    delivery_charge: float
    platform_fee: float
    delivery_location: GeoPointSchema
    delivery_address: str
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    stock_applied: bool
    created_at: str
    updated_at: str


class PaginationSchema(BaseModel):
    current: int
    total: int  # page count
    count: int  # orders on this page
    total_records: int


class OrderListResponse(BaseModel):
    orders: list[OrderSchema]
    pagination: PaginationSchema


class OrderStatusUpdateRequest(BaseModel):
    status: OrderStatus


class OrderStatsResponse(BaseModel):
    total: int
    by_status: dict[str, int]
    by_payment_status: dict[str, int]


class ReconcileResponse(BaseModel):
    reconciled: list[str]
    count: int


class BandSchema(BaseModel):
    id: str
    min_distance: float
    max_distance: float
    charge: float
    is_active: bool
    created_at: str
    updated_at: str


class BandCreateRequest(BaseModel):
    """Request body for creating a delivery charge band."""

    min_distance: FiniteFloat = Field(..., ge=0, description="Inclusive lower bound in km")
    max_distance: FiniteFloat = Field(..., description="Exclusive upper bound in km")
    charge: FiniteFloat = Field(..., ge=0)


class BandUpdateRequest(BaseModel):
    """Request body for updating a delivery charge band."""

    min_distance: Optional[FiniteFloat] = Field(None, ge=0)
    max_distance: Optional[FiniteFloat] = None
    charge: Optional[FiniteFloat] = Field(None, ge=0)
    is_active: Optional[bool] = None


class BandListResponse(BaseModel):
    bands: list[BandSchema]
    count: int


class ChargeLookupResponse(BaseModel):
    distance: float
    charge: float
    band_id: Optional[str] = None
    fallback: bool  # True when no band matched and the default formula applied


class ShopProductSchema(BaseModel):
    product_id: str
    price: float
    quantity: int
    in_stock: bool


class ShopSchema(BaseModel):
    id: str
    name: str
    location: GeoPointSchema
    address: str
    is_open: bool
    products: list[ShopProductSchema]


class ErrorResponse(BaseModel):
    detail: str
    error_type: str
    kind: str


# --- Helper Functions ---


def get_order_service() -> OrderService:
    """Get an OrderService wired to the configured data directory."""
    return OrderService.from_settings(get_settings())


def get_pricing_table() -> PricingTable:
    return PricingTable(get_settings().data_dir)


def get_shop_directory() -> ShopDirectory:
    return ShopDirectory(get_settings().data_dir)


def order_to_schema(order: Order) -> OrderSchema:
    """Convert dataclass Order to Pydantic schema."""
    return OrderSchema(**order.to_dict())


def band_to_schema(band: DeliveryChargeBand) -> BandSchema:
    return BandSchema(**band.to_dict())


def shop_to_schema(shop: Shop) -> ShopSchema:
    return ShopSchema(**shop.to_dict())


def page_to_response(page: OrderPage) -> OrderListResponse:
    return OrderListResponse(
        orders=[order_to_schema(o) for o in page.orders],
        pagination=PaginationSchema(
            current=page.page,
            total=page.pages,
            count=page.count,
            total_records=page.total,
        ),
    )


# --- FastAPI App ---


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    log.info(f"shopdrop API starting (data dir: {get_settings().data_dir})")
    yield


app = FastAPI(
    title="shopdrop API",
    description="Order pricing and fulfillment for a local delivery marketplace",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Global Exception Handler ---


# Map error kinds to HTTP status codes
ERROR_STATUS_CODES: dict[str, int] = {
    NOT_FOUND: 404,
    VALIDATION_ERROR: 400,
    OVERLAP_ERROR: 409,
    CONFLICT: 409,
}


@app.exception_handler(ShopdropError)
async def shopdrop_error_handler(request: Request, exc: ShopdropError) -> JSONResponse:
    """Map ShopdropError subclasses to structured HTTP failures."""
    status_code = ERROR_STATUS_CODES.get(exc.kind, 500)
    log.warning(
        f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc}",
        exc_info=exc.__cause__ is not None,
    )
    content = {"detail": str(exc), "error_type": type(exc).__name__, "kind": exc.kind}
    if isinstance(exc, BandOverlapError):
        content["overlapping_range"] = {
            "min_distance": exc.existing.min_distance,
            "max_distance": exc.existing.max_distance,
            "charge": exc.existing.charge,
        }
    return JSONResponse(status_code=status_code, content=content)


# --- Endpoints ---


@app.get("/api/health")
def health_check():
    """
    Health check endpoint.

    Reports whether the data directory is reachable.
    """
    data_dir = get_settings().data_dir
    return {
        "status": "ok",
        "version": __version__,
        "data_dir_exists": data_dir.exists(),
    }


# --- Order Endpoints ---


@app.post("/api/orders", response_model=OrderSchema, status_code=201)
def create_order(
    request: OrderCreateRequest,
    x_user_id: str = Header(..., description="ID of the ordering user (set by the auth layer)"),
):
    """
    Create an order.

    Computes distance and delivery charge from the shop's location, snapshots
    line item prices, and decrements the shop's stock.
    """
    service = get_order_service()
    order = service.create_order(
        user_id=x_user_id,
        shop_id=request.shop_id,
        items=[LineItem(**item.model_dump()) for item in request.items],
        delivery_location=GeoPoint.from_coordinates(request.delivery_location),
        delivery_address=request.delivery_address,
        payment_method=request.payment_method,
    )
    return order_to_schema(order)


@app.get("/api/orders", response_model=OrderListResponse)
def list_orders(
    status: Optional[OrderStatus] = Query(None),
    user_id: Optional[str] = Query(None),
    shop_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None, description="Created on or after this day"),
    end_date: Optional[date] = Query(None, description="Created on or before this day"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1),
):
    """List orders newest first, filtered and paginated."""
    service = get_order_service()
    result = service.list_orders(
        status=status,
        user_id=user_id,
        shop_id=shop_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return page_to_response(result)


@app.get("/api/orders/stats", response_model=OrderStatsResponse)
def order_stats(
    shop_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
):
    """Order counts grouped by status and payment status."""
    service = get_order_service()
    return OrderStatsResponse(**service.order_stats(shop_id, start_date, end_date))


@app.post("/api/orders/reconcile-stock", response_model=ReconcileResponse)
def reconcile_stock():
    """Re-apply stock decrements for orders saved without them."""
    service = get_order_service()
    fixed = service.reconcile_stock()
    return ReconcileResponse(reconciled=fixed, count=len(fixed))


@app.get("/api/orders/{order_id}", response_model=OrderSchema)
def get_order(order_id: str):
    service = get_order_service()
    return order_to_schema(service.get_order(order_id))


@app.patch("/api/orders/{order_id}/status", response_model=OrderSchema)
def update_order_status(order_id: str, request: OrderStatusUpdateRequest):
    """Move an order along the status transition table."""
    service = get_order_service()
    order = service.update_status(order_id, request.status)
    return order_to_schema(order)


@app.delete("/api/orders/{order_id}", response_model=OrderSchema)
def cancel_order(order_id: str):
    """Cancel a pending order. Orders are never hard-deleted."""
    service = get_order_service()
    order = service.cancel_order(order_id)
    return order_to_schema(order)


# --- Delivery Charge Endpoints ---


@app.get("/api/delivery-charges", response_model=BandListResponse)
def list_bands(include_inactive: bool = Query(default=False)):
    """List delivery charge bands sorted by min_distance."""
    bands = get_pricing_table().list_bands(include_inactive=include_inactive)
    return BandListResponse(bands=[band_to_schema(b) for b in bands], count=len(bands))


@app.post("/api/delivery-charges", response_model=BandSchema, status_code=201)
def create_band(request: BandCreateRequest):
    band = get_pricing_table().insert_band(
        request.min_distance, request.max_distance, request.charge
    )
    return band_to_schema(band)


@app.get("/api/delivery-charges/lookup", response_model=ChargeLookupResponse)
def lookup_charge(distance: float = Query(..., ge=0, description="Distance in km")):
    """Charge for a distance, with the default formula when no band matches."""
    band = get_pricing_table().find_band(distance)
    if band is None:
        return ChargeLookupResponse(
            distance=distance,
            charge=default_delivery_charge(distance),
            fallback=True,
        )
    return ChargeLookupResponse(
        distance=distance, charge=band.charge, band_id=band.id, fallback=False
    )


@app.get("/api/delivery-charges/{band_id}", response_model=BandSchema)
def get_band(band_id: str):
    return band_to_schema(get_pricing_table().get_band(band_id))


@app.put("/api/delivery-charges/{band_id}", response_model=BandSchema)
def update_band(band_id: str, request: BandUpdateRequest):
    """Update a band; the overlap check re-runs when a boundary changes."""
    update_data = request.model_dump(exclude_unset=True)
    band = get_pricing_table().update_band(band_id, **update_data)
    return band_to_schema(band)


@app.delete("/api/delivery-charges/{band_id}", response_model=BandSchema)
def deactivate_band(band_id: str):
    """Soft-delete a band (is_active=False)."""
    return band_to_schema(get_pricing_table().deactivate_band(band_id))


# --- Shop Directory Endpoints ---


@app.get("/api/shops/{shop_id}", response_model=ShopSchema)
def get_shop(shop_id: str):
    """Read-only view of a shop's catalog and stock."""
    shop = get_shop_directory().find_shop_by_id(shop_id)
    if shop is None:
        raise ShopNotFoundError(shop_id)
    return shop_to_schema(shop)
