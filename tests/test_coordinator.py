"""Tests for order placement and payment."""

import httpx
import pytest

from storefront.coordinator import OrderPaymentCoordinator
from storefront.errors import (
    AuthError,
    OrderNotFoundError,
    OrderStateError,
    PaymentProviderError,
    ValidationError,
)
from storefront.models import CartItem, ShippingAddress
from storefront.order_store import OrderStore

from .conftest import CUSTOMER, ScriptedPaymentProvider, address_fields


@pytest.fixture
def shipping(address_service):
    address = address_service.create(CUSTOMER, address_fields())
    return ShippingAddress.from_address(address)


def make_coordinator(temp_dir, outcomes):
    provider = ScriptedPaymentProvider(outcomes)
    return OrderPaymentCoordinator(OrderStore(data_dir=temp_dir), provider), provider


class TestPlaceOrder:
    def test_successful_payment(self, coordinator, provider, items, shipping):
        order = coordinator.place_order(CUSTOMER, items, shipping, "card")

        assert order.payment_status == "paid"
        assert order.status == "confirmed"
        assert order.order_number.startswith("ORD-")
        assert order.summary.total_amount == pytest.approx(1416.0)
        assert provider.calls == [("card", None, order.summary.total_amount)]

        stored = coordinator.get_order(CUSTOMER, order.id)
        assert stored.payment_status == "paid"
        payments = coordinator.list_payments(CUSTOMER, order.id)
        assert len(payments) == 1
        assert payments[0].status == "succeeded"
        assert payments[0].provider_reference == "REF-1"
        assert payments[0].transaction_id.startswith("TXN")

    def test_items_are_copied(self, coordinator, items, shipping):
        order = coordinator.place_order(CUSTOMER, items, shipping, "cod")

        assert [i.product_id for i in order.items] == ["p-1", "p-2"]
        assert order.items[0].total_price == pytest.approx(1000.0)
        assert order.billing_address == order.shipping_address

    def test_wallet_alias_stored_as_upi(self, coordinator, provider, items, shipping):
        order = coordinator.place_order(CUSTOMER, items, shipping, "gpay", "asha@okaxis")

        assert order.payment_method == "upi"
        assert provider.calls[0][:2] == ("upi", "asha@okaxis")

    def test_declined_payment_keeps_order(self, temp_dir, items, shipping):
        coordinator, _ = make_coordinator(temp_dir, [False])

        order = coordinator.place_order(CUSTOMER, items, shipping, "card")

        assert order.payment_status == "failed"
        assert order.status == "created"
        stored = coordinator.get_order(CUSTOMER, order.id)
        assert stored.payment_status == "failed"
        payments = coordinator.list_payments(CUSTOMER, order.id)
        assert [p.status for p in payments] == ["failed"]
        assert payments[0].failure_reason == "card declined"
        assert coordinator.last_failure_reason(order.id) == "card declined"

    def test_provider_error_is_a_failed_payment(self, temp_dir, items, shipping):
        coordinator, _ = make_coordinator(temp_dir, [PaymentProviderError("gateway unreachable")])

        order = coordinator.place_order(CUSTOMER, items, shipping, "netbanking")

        assert order.payment_status == "failed"
        assert "gateway unreachable" in coordinator.last_failure_reason(order.id)

    def test_io_error_is_a_failed_payment(self, temp_dir, items, shipping):
        coordinator, _ = make_coordinator(temp_dir, [ConnectionResetError("reset by peer")])

        order = coordinator.place_order(CUSTOMER, items, shipping, "card")

        assert order.payment_status == "failed"

    @pytest.mark.parametrize(
        "error",
        [
            httpx.ConnectError("connection refused"),
            httpx.ReadTimeout("timed out"),
            RuntimeError(""),
        ],
    )
    def test_any_provider_exception_is_a_failed_payment(self, temp_dir, items, shipping, error):
        coordinator, _ = make_coordinator(temp_dir, [error])

        order = coordinator.place_order(CUSTOMER, items, shipping, "card")

        stored = coordinator.get_order(CUSTOMER, order.id)
        assert stored.payment_status == "failed"
        assert stored.status == "created"
        payments = coordinator.list_payments(CUSTOMER, order.id)
        assert [p.status for p in payments] == ["failed"]
        assert payments[0].failure_reason

    @pytest.mark.parametrize(
        "method, detail, field",
        [
            ("upi", None, "upi_id"),
            ("phonepe", "  ", "upi_id"),
            ("bitcoin", None, "payment_method"),
        ],
    )
    def test_invalid_payment_persists_nothing(
        self, coordinator, provider, items, shipping, method, detail, field
    ):
        with pytest.raises(ValidationError) as exc_info:
            coordinator.place_order(CUSTOMER, items, shipping, method, detail)

        assert exc_info.value.field == field
        assert coordinator.list_orders(CUSTOMER) == ([], 0)
        assert provider.calls == []

    def test_empty_items_rejected(self, coordinator, shipping):
        with pytest.raises(ValidationError, match="items"):
            coordinator.place_order(CUSTOMER, [], shipping, "card")

    def test_zero_quantity_rejected(self, coordinator, shipping):
        bad = [CartItem(product_id="p-1", name="Kurta", unit_price=500.0, quantity=0)]
        with pytest.raises(ValidationError, match="quantity"):
            coordinator.place_order(CUSTOMER, bad, shipping, "card")

    def test_requires_customer(self, coordinator, items, shipping):
        with pytest.raises(AuthError):
            coordinator.place_order(None, items, shipping, "card")

    def test_shipping_snapshot_survives_address_edit(
        self, coordinator, address_service, items, shipping
    ):
        order = coordinator.place_order(CUSTOMER, items, shipping, "card")

        address_service.update(CUSTOMER, shipping.source_address_id, {"city": "Madurai"})
        address_service.delete(CUSTOMER, shipping.source_address_id)

        stored = coordinator.get_order(CUSTOMER, order.id)
        assert stored.shipping_address.city == "Chennai"
        assert stored.shipping_address.source_address_id == shipping.source_address_id


class TestIdempotency:
    def test_same_key_returns_same_order(self, coordinator, provider, items, shipping):
        first = coordinator.place_order(CUSTOMER, items, shipping, "card", idempotency_key="k-1")
        second = coordinator.place_order(CUSTOMER, items, shipping, "card", idempotency_key="k-1")

        assert second.id == first.id
        assert second.order_number == first.order_number
        assert len(provider.calls) == 1
        assert coordinator.list_orders(CUSTOMER)[1] == 1

    def test_key_is_scoped_to_customer(self, coordinator, items, shipping):
        first = coordinator.place_order(CUSTOMER, items, shipping, "card", idempotency_key="k-1")
        other = coordinator.place_order("cust-2", items, shipping, "card", idempotency_key="k-1")

        assert other.id != first.id

    def test_without_key_each_call_creates_an_order(self, coordinator, items, shipping):
        a = coordinator.place_order(CUSTOMER, items, shipping, "card")
        b = coordinator.place_order(CUSTOMER, items, shipping, "card")

        assert a.id != b.id
        assert a.order_number != b.order_number


class TestRetryPayment:
    def test_retry_after_failure(self, temp_dir, items, shipping):
        coordinator, provider = make_coordinator(temp_dir, [False, True])
        order = coordinator.place_order(CUSTOMER, items, shipping, "card")

        retried = coordinator.retry_payment(CUSTOMER, order.id)

        assert retried.id == order.id
        assert retried.payment_status == "paid"
        assert retried.status == "confirmed"
        assert [p.status for p in coordinator.list_payments(CUSTOMER, order.id)] == [
            "failed",
            "succeeded",
        ]
        assert coordinator.list_orders(CUSTOMER)[1] == 1
        assert coordinator.last_failure_reason(order.id) is None

    def test_retry_with_different_method(self, temp_dir, items, shipping):
        coordinator, provider = make_coordinator(temp_dir, [False, True])
        order = coordinator.place_order(CUSTOMER, items, shipping, "card")

        retried = coordinator.retry_payment(CUSTOMER, order.id, "paytm", "asha@paytm")

        assert retried.payment_method == "upi"
        assert provider.calls[-1][:2] == ("upi", "asha@paytm")

    def test_retry_paid_order_rejected(self, coordinator, items, shipping):
        order = coordinator.place_order(CUSTOMER, items, shipping, "card")

        with pytest.raises(OrderStateError, match="already completed"):
            coordinator.retry_payment(CUSTOMER, order.id)

    def test_retry_cancelled_order_rejected(self, temp_dir, items, shipping):
        coordinator, _ = make_coordinator(temp_dir, [False])
        order = coordinator.place_order(CUSTOMER, items, shipping, "card")
        coordinator.cancel_order(CUSTOMER, order.id)

        with pytest.raises(OrderStateError, match="cancelled"):
            coordinator.retry_payment(CUSTOMER, order.id)

    def test_retry_unknown_order(self, coordinator):
        with pytest.raises(OrderNotFoundError):
            coordinator.retry_payment(CUSTOMER, "missing")


class TestCancelOrder:
    def test_cancel_unpaid(self, temp_dir, items, shipping):
        coordinator, _ = make_coordinator(temp_dir, [False])
        order = coordinator.place_order(CUSTOMER, items, shipping, "card")

        cancelled = coordinator.cancel_order(CUSTOMER, order.id)

        assert cancelled.status == "cancelled"
        assert coordinator.get_order(CUSTOMER, order.id).status == "cancelled"

    def test_cancel_paid_rejected(self, coordinator, items, shipping):
        order = coordinator.place_order(CUSTOMER, items, shipping, "card")
        with pytest.raises(OrderStateError):
            coordinator.cancel_order(CUSTOMER, order.id)

    def test_cancel_twice_rejected(self, temp_dir, items, shipping):
        coordinator, _ = make_coordinator(temp_dir, [False])
        order = coordinator.place_order(CUSTOMER, items, shipping, "card")
        coordinator.cancel_order(CUSTOMER, order.id)

        with pytest.raises(OrderStateError, match="already cancelled"):
            coordinator.cancel_order(CUSTOMER, order.id)


class TestQueries:
    def test_orders_are_private(self, coordinator, items, shipping):
        order = coordinator.place_order(CUSTOMER, items, shipping, "card")

        with pytest.raises(OrderNotFoundError):
            coordinator.get_order("cust-2", order.id)
        with pytest.raises(OrderNotFoundError):
            coordinator.list_payments("cust-2", order.id)
        assert coordinator.list_orders("cust-2") == ([], 0)

    def test_pagination(self, coordinator, items, shipping):
        for _ in range(5):
            coordinator.place_order(CUSTOMER, items, shipping, "cod")

        page1, total = coordinator.list_orders(CUSTOMER, page=1, limit=2)
        page3, _ = coordinator.list_orders(CUSTOMER, page=3, limit=2)
        page4, _ = coordinator.list_orders(CUSTOMER, page=4, limit=2)

        assert total == 5
        assert len(page1) == 2
        assert len(page3) == 1
        assert page4 == []

    def test_invalid_page(self, coordinator):
        with pytest.raises(ValidationError):
            coordinator.list_orders(CUSTOMER, page=0)
