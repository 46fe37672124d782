"""Order creation and payment as a two-step saga."""

import logging
from typing import Iterable

from .address_service import require_customer
from .errors import OrderStateError, ValidationError
from .models import (
    CHARGE_FAILED,
    CHARGE_SUCCEEDED,
    ORDER_CANCELLED,
    ORDER_CONFIRMED,
    ORDER_CREATED,
    PAYMENT_FAILED,
    PAYMENT_PAID,
    PAYMENT_PENDING,
    CartItem,
    Order,
    OrderItem,
    Payment,
    ShippingAddress,
    _generate_id,
)
from .order_store import OrderStore
from .payment import PaymentProvider
from .utils import compute_summary, normalize_payment_method

logger = logging.getLogger(__name__)


def _check_payment_detail(method: str, detail: str | None) -> str | None:
    detail = (detail or "").strip() or None
    if method == "upi" and not detail:
        raise ValidationError("upi_id", "is required for UPI payments")
    return detail


class OrderPaymentCoordinator:
    """
    Places orders and charges for them.

    Step one persists the Order as ``pending``; step two records a Payment,
    calls the provider and reconciles the Order to ``paid``/``confirmed`` or
    ``failed``. The steps commit separately: a failed charge leaves the Order
    in place so payment can be retried against it with ``retry_payment``.
    """

    def __init__(self, store: OrderStore, provider: PaymentProvider):
        self.store = store
        self.provider = provider

    def place_order(
        self,
        customer_id: str,
        items: Iterable[CartItem],
        shipping_address: ShippingAddress,
        payment_method: str,
        payment_detail: str | None = None,
        discount: float = 0.0,
        idempotency_key: str | None = None,
    ) -> Order:
        """
        Create an order from cart items and attempt payment once.

        Args:
            customer_id: The ordering customer.
            items: Cart lines; copied into the order.
            shipping_address: Snapshot of the delivery address.
            payment_method: Checkout choice (upi, gpay, card, cod, ...).
            payment_detail: UPI ID for UPI methods.
            discount: Amount taken off the total.
            idempotency_key: If the customer already placed an order with this
                key, that order is returned unchanged and nothing is charged.

        Returns:
            The order with ``payment_status`` ``paid`` or ``failed``.

        Raises:
            AuthError: If no customer ID was supplied.
            ValidationError: On empty items, a bad method/detail or discount.
                Nothing is persisted in that case.
        """
        customer_id = require_customer(customer_id)
        items = list(items)
        if not items:
            raise ValidationError("items", "at least one item is required")
        for item in items:
            if item.quantity < 1:
                raise ValidationError("quantity", f"must be at least 1 for {item.name}")
        method = normalize_payment_method(payment_method)
        detail = _check_payment_detail(method, payment_detail)
        summary = compute_summary(items, discount=discount)

        order = Order(
            id=_generate_id(),
            order_number="",
            customer_id=customer_id,
            items=[OrderItem.from_cart_item(i) for i in items],
            shipping_address=shipping_address,
            billing_address=shipping_address,
            summary=summary,
            payment_method=method,
            payment_status=PAYMENT_PENDING,
            status=ORDER_CREATED,
            idempotency_key=idempotency_key,
        )
        order, created = self.store.add_order(order)
        if not created:
            logger.info(
                "Replayed order %s for customer %s (idempotency key %s)",
                order.order_number, customer_id, idempotency_key,
            )
            return order

        logger.info(
            "Created order %s (%s) for customer %s, total %.2f",
            order.order_number, order.id, customer_id, summary.total_amount,
        )

        if order.payment_status == PAYMENT_PENDING:
            self._attempt_payment(order, method, detail)
        return order

    def retry_payment(
        self,
        customer_id: str,
        order_id: str,
        payment_method: str | None = None,
        payment_detail: str | None = None,
    ) -> Order:
        """
        Charge again for an existing order whose payment failed.

        Args:
            payment_method: New method, or None to reuse the order's method.

        Returns:
            The order with its new ``payment_status``.

        Raises:
            OrderNotFoundError: If the customer has no such order.
            OrderStateError: If the order is already paid or cancelled.
        """
        customer_id = require_customer(customer_id)
        order = self.store.get_order(customer_id, order_id)
        if order.payment_status == PAYMENT_PAID:
            raise OrderStateError(order_id, "payment already completed")
        if order.status == ORDER_CANCELLED:
            raise OrderStateError(order_id, "order is cancelled")

        method = normalize_payment_method(payment_method or order.payment_method)
        detail = _check_payment_detail(method, payment_detail)

        order.payment_method = method
        order.payment_status = PAYMENT_PENDING
        self.store.update_order(order)
        logger.info("Retrying payment for order %s via %s", order.order_number, method)

        self._attempt_payment(order, method, detail)
        return order

    def cancel_order(self, customer_id: str, order_id: str) -> Order:
        """
        Cancel an unpaid order.

        Raises:
            OrderNotFoundError: If the customer has no such order.
            OrderStateError: If the order is paid or already cancelled.
        """
        customer_id = require_customer(customer_id)
        order = self.store.get_order(customer_id, order_id)
        if order.payment_status == PAYMENT_PAID:
            raise OrderStateError(order_id, "paid orders cannot be cancelled")
        if order.status == ORDER_CANCELLED:
            raise OrderStateError(order_id, "order is already cancelled")

        order.status = ORDER_CANCELLED
        self.store.update_order(order)
        logger.info("Cancelled order %s", order.order_number)
        return order

    def get_order(self, customer_id: str, order_id: str) -> Order:
        customer_id = require_customer(customer_id)
        return self.store.get_order(customer_id, order_id)

    def list_orders(self, customer_id: str, page: int = 1, limit: int = 10) -> tuple[list[Order], int]:
        """
        List a customer's orders newest first.

        Returns:
            (orders on the requested page, total order count)
        """
        customer_id = require_customer(customer_id)
        if page < 1 or limit < 1:
            raise ValidationError("page", "page and limit must be positive")
        orders = self.store.list_orders(customer_id)
        start = (page - 1) * limit
        return orders[start:start + limit], len(orders)

    def list_payments(self, customer_id: str, order_id: str) -> list[Payment]:
        order = self.get_order(customer_id, order_id)
        return self.store.list_payments(order.id)

    def _attempt_payment(self, order: Order, method: str, detail: str | None) -> Payment:
        """Record a payment attempt, charge the provider and reconcile the order."""
        payment = Payment.create(
            order_id=order.id,
            customer_id=order.customer_id,
            method=method,
            amount=order.summary.total_amount,
        )
        self.store.add_payment(payment)

        try:
            result = self.provider.charge(method, detail, payment.amount)
        except Exception as e:
            # Whatever the provider raised, the order must not stay pending
            logger.exception("Payment provider error for order %s", order.order_number)
            success, reference, reason = False, None, str(e) or type(e).__name__
        else:
            success, reference, reason = result.success, result.reference, result.message

        payment.provider_reference = reference
        if success:
            payment.status = CHARGE_SUCCEEDED
            order.payment_status = PAYMENT_PAID
            order.status = ORDER_CONFIRMED
            logger.info("Payment %s succeeded for order %s", payment.transaction_id, order.order_number)
        else:
            payment.status = CHARGE_FAILED
            payment.failure_reason = reason or "payment declined"
            order.payment_status = PAYMENT_FAILED
            logger.warning(
                "Payment %s failed for order %s: %s",
                payment.transaction_id, order.order_number, payment.failure_reason,
            )

        self.store.update_payment(payment)
        self.store.update_order(order)
        return payment

    def last_failure_reason(self, order_id: str) -> str | None:
        """Failure reason of the most recent payment attempt, if it failed."""
        payments = self.store.list_payments(order_id)
        if payments and payments[-1].status == CHARGE_FAILED:
            return payments[-1].failure_reason
        return None
