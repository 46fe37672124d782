"""FastAPI REST API for addresses, checkout and orders."""

import logging
from typing import Literal, Optional

from fastapi import FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .address_service import AddressService, require_customer
from .address_store import AddressStore
from .cart import CartStore
from .checkout import CheckoutOrchestrator
from .coordinator import OrderPaymentCoordinator
from .errors import (
    AddressNotFoundError,
    AuthError,
    CheckoutSessionNotFoundError,
    CheckoutStateError,
    EmptyCartError,
    InvalidSchemaVersionError,
    OrderNotFoundError,
    OrderStateError,
    PaymentError,
    StorefrontError,
    ValidationError,
)
from .models import PAYMENT_PAID, Address, CartItem, Order, ShippingAddress
from .order_store import OrderStore
from .payment import PaymentProvider, SimulatedPaymentProvider
from .postal import HttpPostalLookup, PostalLookup, autofill
from .utils import order_tracking

logger = logging.getLogger(__name__)


# --- Pydantic Schemas ---


class AddressSchema(BaseModel):
    id: str
    full_name: str
    mobile_number: str
    street_address: str
    city: str
    state: str
    postal_code: str
    country: str
    address_type: str
    is_default: bool
    is_current: bool
    created_at: str
    updated_at: str


class AddressCreateRequest(BaseModel):
    """Request body for creating an address."""

    full_name: str
    mobile_number: str = Field(..., description="10-digit mobile number")
    street_address: str
    city: str
    state: str
    postal_code: str = Field(..., description="6-digit postal code")
    country: str = "India"
    address_type: Literal["home", "work", "other"] = "home"
    is_default: bool = False
    is_current: bool = False


class AddressUpdateRequest(BaseModel):
    """Request body for updating an address. Omitted fields are left alone."""

    full_name: Optional[str] = None
    mobile_number: Optional[str] = None
    street_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    address_type: Optional[Literal["home", "work", "other"]] = None
    is_default: Optional[bool] = None
    is_current: Optional[bool] = None


class AddressListResponse(BaseModel):
    addresses: list[AddressSchema]
    count: int


class PostalLookupResponse(BaseModel):
    postal_code: str
    found: bool
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


class CartItemSchema(BaseModel):
    product_id: str
    name: str
    unit_price: float = Field(..., gt=0)
    quantity: int = Field(default=1, ge=1)
    image: Optional[str] = None


class CartResponse(BaseModel):
    items: list[CartItemSchema]
    count: int


class SelectAddressRequest(BaseModel):
    address_id: str


class SelectPaymentRequest(BaseModel):
    payment_method: str = Field(..., description="upi, gpay, phonepe, paytm, card, netbanking or cod")
    upi_id: Optional[str] = None


class ConfirmRequest(BaseModel):
    discount: float = Field(default=0.0, ge=0)


class PayOrderRequest(BaseModel):
    payment_method: Optional[str] = None
    upi_id: Optional[str] = None


class PlaceOrderRequest(BaseModel):
    """Direct order placement from the current cart and current address."""

    payment_method: str
    upi_id: Optional[str] = None
    address_id: Optional[str] = None
    discount: float = Field(default=0.0, ge=0)
    idempotency_key: Optional[str] = None


class OrderListResponse(BaseModel):
    orders: list[dict]
    page: int
    limit: int
    total: int
    pages: int


# --- Helper Functions ---

# Live checkout sessions keyed by session ID, oldest first. Not persisted: a
# restart discards every in-progress checkout.
_sessions: dict[str, CheckoutOrchestrator] = {}
MAX_SESSIONS = 1000

_payment_provider: PaymentProvider = SimulatedPaymentProvider()
_postal_lookup: PostalLookup | None = None


def get_address_service() -> AddressService:
    """Get the global AddressService."""
    return AddressService(AddressStore())


def get_cart_store() -> CartStore:
    return CartStore()


def get_coordinator() -> OrderPaymentCoordinator:
    """Get the global OrderPaymentCoordinator."""
    return OrderPaymentCoordinator(OrderStore(), _payment_provider)


def get_postal_lookup() -> PostalLookup:
    global _postal_lookup
    if _postal_lookup is None:
        _postal_lookup = HttpPostalLookup()
    return _postal_lookup


def register_session(session: CheckoutOrchestrator) -> None:
    """
    Track a newly started session.

    A customer has at most one live session: starting checkout again abandons
    the earlier one. Beyond MAX_SESSIONS the oldest sessions are dropped.
    """
    customer_id = session.state.customer_id
    for session_id, existing in list(_sessions.items()):
        if existing.state.customer_id == customer_id:
            del _sessions[session_id]
            logger.info("Checkout %s abandoned by customer %s", session_id, customer_id)
    _sessions[session.session_id] = session
    while len(_sessions) > MAX_SESSIONS:
        oldest = next(iter(_sessions))
        del _sessions[oldest]
        logger.info("Checkout %s evicted", oldest)


def get_session(customer_id: str, session_id: str) -> CheckoutOrchestrator:
    """
    Look up a live checkout session owned by the customer.

    Raises:
        CheckoutSessionNotFoundError: If it is unknown or owned by someone else.
    """
    session = _sessions.get(session_id)
    if session is None or session.state.customer_id != customer_id:
        raise CheckoutSessionNotFoundError(session_id)
    return session


def address_to_schema(address: Address) -> AddressSchema:
    return AddressSchema(**{k: v for k, v in address.to_dict().items() if k != "customer_id"})


def order_to_dict(order: Order, coordinator: OrderPaymentCoordinator | None = None) -> dict:
    """Order as returned to clients, with tracking and (optionally) payments."""
    data = order.to_dict()
    data.pop("idempotency_key", None)
    data["tracking"] = order_tracking(order.status, order.payment_status)
    if coordinator is not None:
        data["payments"] = [p.to_dict() for p in coordinator.store.list_payments(order.id)]
    return data


# --- FastAPI App ---


app = FastAPI(
    title="storefront API",
    description="REST API for delivery addresses, checkout and orders",
    version=__version__,
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Global Exception Handler ---


# Map exception types to HTTP status codes
ERROR_STATUS_CODES: dict[type, int] = {
    ValidationError: 400,
    AuthError: 401,
    PaymentError: 402,
    AddressNotFoundError: 404,
    OrderNotFoundError: 404,
    CheckoutSessionNotFoundError: 404,
    CheckoutStateError: 409,
    OrderStateError: 409,
    EmptyCartError: 409,
    InvalidSchemaVersionError: 500,
}


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    """Map StorefrontError subclasses to appropriate HTTP responses."""
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    content = {"detail": str(exc), "error_type": type(exc).__name__}
    if isinstance(exc, PaymentError) and exc.order_id:
        content["order_id"] = exc.order_id
    if isinstance(exc, EmptyCartError):
        content["redirect"] = "/checkout/cart"
    if isinstance(exc, AuthError):
        content["redirect"] = "/auth/login"
    return JSONResponse(status_code=status_code, content=content)


# --- Endpoints ---


@app.get("/api/health")
def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": __version__,
        "checkout_sessions": len(_sessions),
    }


# --- Address Endpoints ---


@app.get("/api/addresses", response_model=AddressListResponse)
def list_addresses(x_customer_id: Optional[str] = Header(default=None)):
    """List the customer's addresses."""
    addresses = get_address_service().list(x_customer_id)
    return AddressListResponse(
        addresses=[address_to_schema(a) for a in addresses],
        count=len(addresses),
    )


@app.post("/api/addresses", response_model=AddressSchema, status_code=201)
def create_address(request: AddressCreateRequest, x_customer_id: Optional[str] = Header(default=None)):
    """Create an address. The first one becomes default and current."""
    address = get_address_service().create(x_customer_id, request.model_dump())
    return address_to_schema(address)


@app.get("/api/addresses/{address_id}", response_model=AddressSchema)
def get_address(address_id: str, x_customer_id: Optional[str] = Header(default=None)):
    return address_to_schema(get_address_service().get(x_customer_id, address_id))


@app.patch("/api/addresses/{address_id}", response_model=AddressSchema)
def update_address(
    address_id: str,
    request: AddressUpdateRequest,
    x_customer_id: Optional[str] = Header(default=None),
):
    """Update address fields and/or flags."""
    update_data = request.model_dump(exclude_unset=True)
    address = get_address_service().update(x_customer_id, address_id, update_data)
    return address_to_schema(address)


@app.delete("/api/addresses/{address_id}", response_model=AddressSchema)
def delete_address(address_id: str, x_customer_id: Optional[str] = Header(default=None)):
    """Delete an address permanently."""
    return address_to_schema(get_address_service().delete(x_customer_id, address_id))


@app.post("/api/addresses/{address_id}/default", response_model=AddressSchema)
def set_default_address(address_id: str, x_customer_id: Optional[str] = Header(default=None)):
    return address_to_schema(get_address_service().set_default(x_customer_id, address_id))


@app.post("/api/addresses/{address_id}/current", response_model=AddressSchema)
def set_current_address(address_id: str, x_customer_id: Optional[str] = Header(default=None)):
    return address_to_schema(get_address_service().set_current(x_customer_id, address_id))


@app.get("/api/postal/{postal_code}", response_model=PostalLookupResponse)
def lookup_postal_code(postal_code: str):
    """
    Resolve a postal code for address auto-fill.

    A failed lookup returns found=false rather than an error.
    """
    info = autofill(get_postal_lookup(), postal_code)
    if info is None:
        return PostalLookupResponse(postal_code=postal_code, found=False)
    return PostalLookupResponse(found=True, **info.to_dict())


# --- Cart Endpoints ---


@app.get("/api/cart", response_model=CartResponse)
def get_cart(x_customer_id: Optional[str] = Header(default=None)):
    customer_id = require_customer(x_customer_id)
    items = get_cart_store().list_items(customer_id)
    return CartResponse(items=[CartItemSchema(**i.to_dict()) for i in items], count=len(items))


@app.post("/api/cart/items", response_model=CartItemSchema, status_code=201)
def add_cart_item(request: CartItemSchema, x_customer_id: Optional[str] = Header(default=None)):
    customer_id = require_customer(x_customer_id)
    item = get_cart_store().add_item(customer_id, CartItem(**request.model_dump()))
    return CartItemSchema(**item.to_dict())


@app.delete("/api/cart/items/{product_id}")
def remove_cart_item(product_id: str, x_customer_id: Optional[str] = Header(default=None)):
    customer_id = require_customer(x_customer_id)
    removed = get_cart_store().remove_items(customer_id, [product_id])
    return {"removed": removed}


# --- Checkout Endpoints ---


@app.post("/api/checkout", status_code=201)
def start_checkout(x_customer_id: Optional[str] = Header(default=None)):
    """
    Start a checkout session on the address step.

    An empty cart fails with 409 and a redirect to the cart page.
    """
    customer_id = require_customer(x_customer_id)
    session = CheckoutOrchestrator(
        customer_id,
        get_address_service(),
        get_cart_store().for_customer(customer_id),
        get_coordinator(),
    )
    state = session.start()
    register_session(session)
    return state.to_dict()


@app.get("/api/checkout/{session_id}")
def get_checkout(session_id: str, x_customer_id: Optional[str] = Header(default=None)):
    customer_id = require_customer(x_customer_id)
    return get_session(customer_id, session_id).state.to_dict()


@app.delete("/api/checkout/{session_id}")
def cancel_checkout(session_id: str, x_customer_id: Optional[str] = Header(default=None)):
    """Abandon a checkout session."""
    customer_id = require_customer(x_customer_id)
    session = get_session(customer_id, session_id)
    session.cancel()
    _sessions.pop(session_id, None)
    return {"session_id": session_id, "step": session.step}


@app.post("/api/checkout/{session_id}/address")
def checkout_select_address(
    session_id: str,
    request: SelectAddressRequest,
    x_customer_id: Optional[str] = Header(default=None),
):
    """Select a delivery address; it becomes the current address immediately."""
    customer_id = require_customer(x_customer_id)
    return get_session(customer_id, session_id).select_address(request.address_id).to_dict()


@app.post("/api/checkout/{session_id}/addresses", status_code=201)
def checkout_add_address(
    session_id: str,
    request: AddressCreateRequest,
    x_customer_id: Optional[str] = Header(default=None),
):
    customer_id = require_customer(x_customer_id)
    return get_session(customer_id, session_id).add_address(request.model_dump()).to_dict()


@app.post("/api/checkout/{session_id}/payment-step")
def checkout_proceed(session_id: str, x_customer_id: Optional[str] = Header(default=None)):
    customer_id = require_customer(x_customer_id)
    return get_session(customer_id, session_id).proceed_to_payment().to_dict()


@app.post("/api/checkout/{session_id}/back")
def checkout_back(session_id: str, x_customer_id: Optional[str] = Header(default=None)):
    customer_id = require_customer(x_customer_id)
    return get_session(customer_id, session_id).back().to_dict()


@app.post("/api/checkout/{session_id}/payment")
def checkout_select_payment(
    session_id: str,
    request: SelectPaymentRequest,
    x_customer_id: Optional[str] = Header(default=None),
):
    customer_id = require_customer(x_customer_id)
    session = get_session(customer_id, session_id)
    return session.select_payment(request.payment_method, request.upi_id).to_dict()


@app.post("/api/checkout/{session_id}/confirm")
def checkout_confirm(
    session_id: str,
    request: Optional[ConfirmRequest] = None,
    x_customer_id: Optional[str] = Header(default=None),
):
    """
    Place the order and pay.

    On payment failure responds 402 with the order ID; the session stays on
    the payment step and confirm may be retried.
    """
    customer_id = require_customer(x_customer_id)
    session = get_session(customer_id, session_id)
    discount = request.discount if request else 0.0
    order = session.confirm(discount=discount)
    _sessions.pop(session_id, None)
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "status": order.status,
        "payment_status": order.payment_status,
        "total": order.summary.total_amount,
        "redirect": f"/account/orders/{order.id}",
    }


# --- Order Endpoints ---


@app.get("/api/orders", response_model=OrderListResponse)
def list_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    x_customer_id: Optional[str] = Header(default=None),
):
    """List the customer's orders, newest first."""
    orders, total = get_coordinator().list_orders(x_customer_id, page=page, limit=limit)
    return OrderListResponse(
        orders=[order_to_dict(o) for o in orders],
        page=page,
        limit=limit,
        total=total,
        pages=(total + limit - 1) // limit,
    )


@app.post("/api/orders", status_code=201)
def place_order(request: PlaceOrderRequest, x_customer_id: Optional[str] = Header(default=None)):
    """
    Place an order from the whole cart without a checkout session.

    Ships to ``address_id`` or, if omitted, the current address. Supports an
    idempotency key so a double-submitted request creates one order. The
    order is returned even when payment fails; check ``payment_status``.
    """
    customer_id = require_customer(x_customer_id)
    service = get_address_service()
    if request.address_id:
        address = service.get(customer_id, request.address_id)
    else:
        address = service.get_current(customer_id)
        if address is None:
            raise ValidationError("address_id", "no current address; select one")

    cart = get_cart_store().for_customer(customer_id)
    items = cart.get_checkout_items()
    if not items:
        raise EmptyCartError(customer_id)

    coordinator = get_coordinator()
    order = coordinator.place_order(
        customer_id,
        items,
        ShippingAddress.from_address(address),
        request.payment_method,
        request.upi_id,
        discount=request.discount,
        idempotency_key=request.idempotency_key,
    )
    if order.payment_status == PAYMENT_PAID:
        cart.clear([i.product_id for i in items])
    return order_to_dict(order, coordinator)


@app.get("/api/orders/{order_id}")
def get_order(order_id: str, x_customer_id: Optional[str] = Header(default=None)):
    """Order detail, including every payment attempt."""
    coordinator = get_coordinator()
    return order_to_dict(coordinator.get_order(x_customer_id, order_id), coordinator)


@app.post("/api/orders/{order_id}/pay")
def pay_order(
    order_id: str,
    request: PayOrderRequest,
    x_customer_id: Optional[str] = Header(default=None),
):
    """Retry payment against an existing order whose payment failed."""
    coordinator = get_coordinator()
    order = coordinator.retry_payment(x_customer_id, order_id, request.payment_method, request.upi_id)
    if order.payment_status != PAYMENT_PAID:
        raise PaymentError(order.id, coordinator.last_failure_reason(order.id) or "payment declined")
    return order_to_dict(order, coordinator)


@app.post("/api/orders/{order_id}/cancel")
def cancel_order(order_id: str, x_customer_id: Optional[str] = Header(default=None)):
    coordinator = get_coordinator()
    return order_to_dict(coordinator.cancel_order(x_customer_id, order_id), coordinator)
