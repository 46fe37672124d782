"""Data models for storefront."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
import uuid

ADDRESS_TYPES = ("home", "work", "other")
DEFAULT_COUNTRY = "India"

# Order.payment_status
PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"
PAYMENT_FAILED = "failed"

# Order.status
ORDER_CREATED = "created"
ORDER_CONFIRMED = "confirmed"
ORDER_CANCELLED = "cancelled"

# Payment.status
CHARGE_PENDING = "pending"
CHARGE_SUCCEEDED = "succeeded"
CHARGE_FAILED = "failed"

PAYMENT_METHODS = ("upi", "card", "netbanking", "cod")


def _utc_now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _generate_id() -> str:
    """Generate a new record ID."""
    return str(uuid.uuid4())


@dataclass
class Address:
    """A delivery address owned by one customer."""

    id: str
    customer_id: str
    full_name: str
    mobile_number: str  # exactly 10 digits
    street_address: str
    city: str
    state: str
    postal_code: str  # exactly 6 digits
    country: str = DEFAULT_COUNTRY
    address_type: str = "home"
    is_default: bool = False
    is_current: bool = False
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "full_name": self.full_name,
            "mobile_number": self.mobile_number,
            "street_address": self.street_address,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "address_type": self.address_type,
            "is_default": self.is_default,
            "is_current": self.is_current,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Address":
        return cls(
            id=data["id"],
            customer_id=data["customer_id"],
            full_name=data["full_name"],
            mobile_number=data["mobile_number"],
            street_address=data["street_address"],
            city=data["city"],
            state=data["state"],
            postal_code=data["postal_code"],
            country=data.get("country", DEFAULT_COUNTRY),
            address_type=data.get("address_type", "home"),
            is_default=data.get("is_default", False),
            is_current=data.get("is_current", False),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )

    @classmethod
    def create(
        cls,
        customer_id: str,
        full_name: str,
        mobile_number: str,
        street_address: str,
        city: str,
        state: str,
        postal_code: str,
        country: str = DEFAULT_COUNTRY,
        address_type: str = "home",
        is_default: bool = False,
        is_current: bool = False,
    ) -> "Address":
        """Create a new address with generated ID and timestamps."""
        now = _utc_now()
        return cls(
            id=_generate_id(),
            customer_id=customer_id,
            full_name=full_name,
            mobile_number=mobile_number,
            street_address=street_address,
            city=city,
            state=state,
            postal_code=postal_code,
            country=country,
            address_type=address_type,
            is_default=is_default,
            is_current=is_current,
            created_at=now,
            updated_at=now,
        )


@dataclass(frozen=True)
class ShippingAddress:
    """Snapshot of an Address embedded in an order.

    Frozen and detached from the address book: later edits to the source
    address never reach a placed order.
    """

    full_name: str
    mobile_number: str
    street_address: str
    city: str
    state: str
    postal_code: str
    country: str = DEFAULT_COUNTRY
    address_type: str = "home"
    source_address_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "full_name": self.full_name,
            "mobile_number": self.mobile_number,
            "street_address": self.street_address,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "address_type": self.address_type,
            "source_address_id": self.source_address_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ShippingAddress":
        return cls(
            full_name=data["full_name"],
            mobile_number=data["mobile_number"],
            street_address=data["street_address"],
            city=data["city"],
            state=data["state"],
            postal_code=data["postal_code"],
            country=data.get("country", DEFAULT_COUNTRY),
            address_type=data.get("address_type", "home"),
            source_address_id=data.get("source_address_id"),
        )

    @classmethod
    def from_address(cls, address: Address) -> "ShippingAddress":
        """Copy the deliverable fields of an address."""
        return cls(
            full_name=address.full_name,
            mobile_number=address.mobile_number,
            street_address=address.street_address,
            city=address.city,
            state=address.state,
            postal_code=address.postal_code,
            country=address.country or DEFAULT_COUNTRY,
            address_type=address.address_type,
            source_address_id=address.id,
        )


@dataclass
class CartItem:
    """An item selected in the cart for checkout."""

    product_id: str
    name: str
    unit_price: float  # price snapshot at the time it was added
    quantity: int
    image: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "product_id": self.product_id,
            "name": self.name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
        }
        if self.image is not None:
            result["image"] = self.image
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CartItem":
        return cls(
            product_id=data["product_id"],
            name=data["name"],
            unit_price=data["unit_price"],
            quantity=data["quantity"],
            image=data.get("image"),
        )


@dataclass
class OrderItem:
    """A line item copied from the cart when the order is created."""

    product_id: str
    name: str
    unit_price: float
    quantity: int
    total_price: float
    image: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "total_price": self.total_price,
            "image": self.image,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderItem":
        return cls(
            product_id=data["product_id"],
            name=data["name"],
            unit_price=data["unit_price"],
            quantity=data["quantity"],
            total_price=data["total_price"],
            image=data.get("image"),
        )

    @classmethod
    def from_cart_item(cls, item: CartItem) -> "OrderItem":
        return cls(
            product_id=item.product_id,
            name=item.name,
            unit_price=item.unit_price,
            quantity=item.quantity,
            total_price=round(item.unit_price * item.quantity, 2),
            image=item.image,
        )


@dataclass(frozen=True)
class OrderSummary:
    """Money totals of an order."""

    subtotal: float
    tax_amount: float
    shipping_charge: float
    discount_amount: float
    total_amount: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "subtotal": self.subtotal,
            "tax_amount": self.tax_amount,
            "shipping_charge": self.shipping_charge,
            "discount_amount": self.discount_amount,
            "total_amount": self.total_amount,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderSummary":
        return cls(
            subtotal=data["subtotal"],
            tax_amount=data["tax_amount"],
            shipping_charge=data["shipping_charge"],
            discount_amount=data.get("discount_amount", 0.0),
            total_amount=data["total_amount"],
        )


@dataclass
class Order:
    """A placed order. Created pending, then reconciled with its payment."""

    id: str
    order_number: str
    customer_id: str
    items: list[OrderItem]
    shipping_address: ShippingAddress
    billing_address: ShippingAddress
    summary: OrderSummary
    payment_method: str
    payment_status: str = PAYMENT_PENDING
    status: str = ORDER_CREATED
    idempotency_key: str | None = None
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "items": [i.to_dict() for i in self.items],
            "shipping_address": self.shipping_address.to_dict(),
            "billing_address": self.billing_address.to_dict(),
            "summary": self.summary.to_dict(),
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "status": self.status,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if self.idempotency_key is not None:
            result["idempotency_key"] = self.idempotency_key
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Order":
        shipping = ShippingAddress.from_dict(data["shipping_address"])
        billing = shipping
        if "billing_address" in data:
            billing = ShippingAddress.from_dict(data["billing_address"])
        return cls(
            id=data["id"],
            order_number=data["order_number"],
            customer_id=data["customer_id"],
            items=[OrderItem.from_dict(i) for i in data.get("items", [])],
            shipping_address=shipping,
            billing_address=billing,
            summary=OrderSummary.from_dict(data["summary"]),
            payment_method=data["payment_method"],
            payment_status=data.get("payment_status", PAYMENT_PENDING),
            status=data.get("status", ORDER_CREATED),
            idempotency_key=data.get("idempotency_key"),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )


@dataclass
class Payment:
    """One charge attempt against an order."""

    id: str
    order_id: str
    customer_id: str
    method: str
    amount: float
    transaction_id: str
    status: str = CHARGE_PENDING
    provider_reference: str | None = None
    failure_reason: str | None = None
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "customer_id": self.customer_id,
            "method": self.method,
            "amount": self.amount,
            "transaction_id": self.transaction_id,
            "status": self.status,
            "provider_reference": self.provider_reference,
            "failure_reason": self.failure_reason,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Payment":
        return cls(
            id=data["id"],
            order_id=data["order_id"],
            customer_id=data["customer_id"],
            method=data["method"],
            amount=data["amount"],
            transaction_id=data["transaction_id"],
            status=data.get("status", CHARGE_PENDING),
            provider_reference=data.get("provider_reference"),
            failure_reason=data.get("failure_reason"),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )

    @classmethod
    def create(cls, order_id: str, customer_id: str, method: str, amount: float) -> "Payment":
        """Create a pending payment with generated ID and transaction ID."""
        now = _utc_now()
        payment_id = _generate_id()
        return cls(
            id=payment_id,
            order_id=order_id,
            customer_id=customer_id,
            method=method,
            amount=amount,
            transaction_id=f"TXN{payment_id.replace('-', '')[:16].upper()}",
            status=CHARGE_PENDING,
            created_at=now,
            updated_at=now,
        )


@dataclass(frozen=True)
class ChargeResult:
    """Outcome reported by a payment provider."""

    success: bool
    reference: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class PostalInfo:
    """City/state/country resolved from a postal code."""

    postal_code: str
    city: str
    state: str
    country: str = DEFAULT_COUNTRY

    def to_dict(self) -> dict[str, Any]:
        return {
            "postal_code": self.postal_code,
            "city": self.city,
            "state": self.state,
            "country": self.country,
        }
