"""Utility functions for storefront."""

import os
import re
import time
from typing import Any, Iterable

from .errors import ValidationError
from .models import ADDRESS_TYPES, PAYMENT_METHODS, CartItem, OrderSummary

TAX_RATE = 0.18
FREE_SHIPPING_THRESHOLD = 1000.0
# Can be overridden via STOREFRONT_SHIPPING_FEE environment variable
SHIPPING_FEE = float(os.environ.get("STOREFRONT_SHIPPING_FEE", "99"))

MOBILE_RE = re.compile(r"^\d{10}$")
POSTAL_CODE_RE = re.compile(r"^\d{6}$")

REQUIRED_ADDRESS_FIELDS = (
    "full_name",
    "mobile_number",
    "street_address",
    "city",
    "state",
    "postal_code",
)
ADDRESS_FIELDS = REQUIRED_ADDRESS_FIELDS + (
    "country",
    "address_type",
    "is_default",
    "is_current",
)

# Wallet names the checkout page offers, all settled over UPI
PAYMENT_METHOD_ALIASES = {
    "gpay": "upi",
    "googlepay": "upi",
    "phonepe": "upi",
    "paytm": "upi",
    "bhim": "upi",
    "upi": "upi",
    "card": "card",
    "credit-card": "card",
    "debit-card": "card",
    "netbanking": "netbanking",
    "cod": "cod",
    "cash-on-delivery": "cod",
}

ORDER_STATUS_LABELS = {
    "created": "Order Placed",
    "confirmed": "Order Confirmed",
    "cancelled": "Cancelled",
}

ORDER_PROGRESS = {
    "created": 20,
    "confirmed": 40,
    "cancelled": 0,
}


def validate_mobile_number(value: str) -> str:
    """
    Validate a mobile number.

    Spaces and dashes are stripped; what remains must be exactly 10 digits.

    Raises:
        ValidationError: If the number is malformed.
    """
    cleaned = re.sub(r"[\s-]", "", value or "")
    if not MOBILE_RE.match(cleaned):
        raise ValidationError("mobile_number", "must be exactly 10 digits")
    return cleaned


def validate_postal_code(value: str) -> str:
    """
    Validate a postal code (PIN): exactly 6 digits.

    Raises:
        ValidationError: If the code is malformed.
    """
    cleaned = (value or "").strip()
    if not POSTAL_CODE_RE.match(cleaned):
        raise ValidationError("postal_code", "must be exactly 6 digits")
    return cleaned


def validate_address_type(value: str) -> str:
    if value not in ADDRESS_TYPES:
        raise ValidationError(
            "address_type", f"must be one of {', '.join(ADDRESS_TYPES)}"
        )
    return value


def clean_address_fields(fields: dict[str, Any], partial: bool = False) -> dict[str, Any]:
    """
    Validate and normalize address fields.

    Args:
        fields: Field values keyed by Address attribute name. Unknown keys
            and None values are dropped.
        partial: If True, only the supplied fields are checked (update).
            If False, every required field must be present (create).

    Returns:
        A new dict of cleaned values.

    Raises:
        ValidationError: On the first invalid or missing field.
    """
    cleaned: dict[str, Any] = {}
    for key, value in fields.items():
        if value is None or key not in ADDRESS_FIELDS:
            continue
        if key in REQUIRED_ADDRESS_FIELDS or key == "country":
            value = str(value).strip()
            if not value:
                raise ValidationError(key, "is required")
        cleaned[key] = value

    if not partial:
        for key in REQUIRED_ADDRESS_FIELDS:
            if key not in cleaned:
                raise ValidationError(key, "is required")

    if "mobile_number" in cleaned:
        cleaned["mobile_number"] = validate_mobile_number(cleaned["mobile_number"])
    if "postal_code" in cleaned:
        cleaned["postal_code"] = validate_postal_code(cleaned["postal_code"])
    if "address_type" in cleaned:
        validate_address_type(cleaned["address_type"])
    for flag in ("is_default", "is_current"):
        if flag in cleaned and not isinstance(cleaned[flag], bool):
            raise ValidationError(flag, "must be true or false")

    return cleaned


def normalize_payment_method(method: str) -> str:
    """
    Map a checkout payment choice to a stored payment method.

    Wallet names (gpay, phonepe, paytm) collapse to "upi".

    Raises:
        ValidationError: If the method is unknown.
    """
    key = (method or "").strip().lower()
    normalized = PAYMENT_METHOD_ALIASES.get(key)
    if normalized is None or normalized not in PAYMENT_METHODS:
        raise ValidationError("payment_method", f"unsupported method '{method}'")
    return normalized


def compute_summary(
    items: Iterable[CartItem],
    discount: float = 0.0,
    shipping_fee: float | None = None,
) -> OrderSummary:
    """
    Compute order totals.

    subtotal = sum(unit price * quantity)
    tax      = round(subtotal * 0.18, 2)
    shipping = 0 if subtotal > 1000 else the flat fee
    total    = subtotal + tax + shipping - discount

    Raises:
        ValidationError: If the discount is negative or exceeds the gross total.
    """
    fee = SHIPPING_FEE if shipping_fee is None else shipping_fee
    subtotal = round(sum(i.unit_price * i.quantity for i in items), 2)
    tax = round(subtotal * TAX_RATE, 2)
    shipping = 0.0 if subtotal > FREE_SHIPPING_THRESHOLD else float(fee)
    discount = round(float(discount or 0), 2)

    gross = round(subtotal + tax + shipping, 2)
    if discount < 0:
        raise ValidationError("discount", "cannot be negative")
    if discount > gross:
        raise ValidationError("discount", f"exceeds order total {gross:.2f}")

    return OrderSummary(
        subtotal=subtotal,
        tax_amount=tax,
        shipping_charge=shipping,
        discount_amount=discount,
        total_amount=round(gross - discount, 2),
    )


def generate_order_number(sequence: int) -> str:
    """Human-readable order number, e.g. ORD-1718000000000-0042."""
    return f"ORD-{int(time.time() * 1000)}-{sequence:04d}"


def order_tracking(status: str, payment_status: str) -> dict[str, Any]:
    """Tracking banner shown on the order pages."""
    label = ORDER_STATUS_LABELS.get(status, "Order Placed")
    if status == "created" and payment_status == "failed":
        label = "Payment Failed"
    return {
        "current_status": label,
        "progress": ORDER_PROGRESS.get(status, 0),
    }


def format_address(address: Any) -> str:
    """Format an Address or ShippingAddress on one line for display."""
    return (
        f"{address.full_name}, {address.street_address}, {address.city}, "
        f"{address.state} {address.postal_code}, {address.country} "
        f"({address.mobile_number})"
    )
