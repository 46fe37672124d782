"""Pytest fixtures for storefront tests."""

import tempfile
from pathlib import Path

import pytest

from storefront.address_service import AddressService
from storefront.address_store import AddressStore
from storefront.cart import CartStore
from storefront.coordinator import OrderPaymentCoordinator
from storefront.errors import PaymentProviderError, PostalLookupError
from storefront.models import CartItem, ChargeResult, PostalInfo
from storefront.order_store import OrderStore

CUSTOMER = "cust-1"


def address_fields(**overrides) -> dict:
    """A valid address form, with any field overridden."""
    fields = {
        "full_name": "Asha Rao",
        "mobile_number": "9876543210",
        "street_address": "12 Anna Salai",
        "city": "Chennai",
        "state": "Tamil Nadu",
        "postal_code": "600001",
    }
    fields.update(overrides)
    return fields


class ScriptedPaymentProvider:
    """
    Provider whose outcomes are scripted per call.

    Each outcome is True (approve), False (decline) or an exception to raise.
    Calls beyond the script are approved.
    """

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.calls = []

    def charge(self, method, detail, amount):
        self.calls.append((method, detail, amount))
        outcome = self.outcomes.pop(0) if self.outcomes else True
        if isinstance(outcome, Exception):
            raise outcome
        if outcome:
            return ChargeResult(success=True, reference=f"REF-{len(self.calls)}")
        return ChargeResult(success=False, message="card declined")


class FakePostalLookup:
    """PostalLookup backed by a postal code -> (city, state) table."""

    def __init__(self, table=None):
        self.table = dict(table or {})

    def lookup(self, postal_code):
        try:
            city, state = self.table[postal_code]
        except KeyError:
            raise PostalLookupError(postal_code, "unknown postal code") from None
        return PostalInfo(postal_code=postal_code, city=city, state=state)


class FakeCart:
    """In-memory CheckoutCart."""

    def __init__(self, items=None):
        self.items = list(items or [])
        self.cleared = []

    def get_checkout_items(self):
        return list(self.items)

    def clear(self, item_ids):
        self.cleared.append(list(item_ids))
        self.items = [i for i in self.items if i.product_id not in item_ids]


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def address_store(temp_dir):
    return AddressStore(data_dir=temp_dir)


@pytest.fixture
def address_service(address_store):
    return AddressService(address_store)


@pytest.fixture
def order_store(temp_dir):
    return OrderStore(data_dir=temp_dir)


@pytest.fixture
def cart_store(temp_dir):
    return CartStore(data_dir=temp_dir)


@pytest.fixture
def provider():
    return ScriptedPaymentProvider()


@pytest.fixture
def coordinator(order_store, provider):
    return OrderPaymentCoordinator(order_store, provider)


@pytest.fixture
def items():
    """Cart lines with a subtotal of 1200."""
    return [
        CartItem(product_id="p-1", name="Cotton Kurta", unit_price=500.0, quantity=2),
        CartItem(product_id="p-2", name="Dupatta", unit_price=200.0, quantity=1),
    ]


@pytest.fixture
def failing_provider():
    return ScriptedPaymentProvider([PaymentProviderError("gateway unreachable")])
