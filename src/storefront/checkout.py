"""Two-step checkout: address selection, then payment."""

import logging
from dataclasses import dataclass, field
from typing import Any

from .address_service import AddressService, require_customer
from .cart import CheckoutCart
from .coordinator import OrderPaymentCoordinator
from .errors import CheckoutStateError, EmptyCartError, PaymentError, StorefrontError, ValidationError
from .models import PAYMENT_PAID, PAYMENT_PENDING, Address, CartItem, Order, ShippingAddress, _generate_id
from .utils import compute_summary, normalize_payment_method

logger = logging.getLogger(__name__)

STEP_NEW = "new"
STEP_ADDRESS = "address_selection"
STEP_PAYMENT = "payment"
STEP_COMPLETED = "completed"
STEP_CANCELLED = "cancelled"


@dataclass
class CheckoutState:
    """Transient, never-persisted state of one checkout session."""

    session_id: str
    customer_id: str
    step: str = STEP_NEW
    items: list[CartItem] = field(default_factory=list)
    addresses: list[Address] = field(default_factory=list)
    selected_address_id: str | None = None
    payment_method: str | None = None
    upi_id: str | None = None
    # Order created by an earlier confirm whose payment failed
    pending_order_id: str | None = None
    order: Order | None = None
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        summary = compute_summary(self.items) if self.items else None
        return {
            "session_id": self.session_id,
            "customer_id": self.customer_id,
            "step": self.step,
            "items": [i.to_dict() for i in self.items],
            "summary": summary.to_dict() if summary else None,
            "addresses": [a.to_dict() for a in self.addresses],
            "selected_address_id": self.selected_address_id,
            "payment_method": self.payment_method,
            "upi_id": self.upi_id,
            "pending_order_id": self.pending_order_id,
            "order": self.order.to_dict() if self.order else None,
            "last_error": self.last_error,
        }


class CheckoutOrchestrator:
    """
    Drives one checkout session.

    Address selections write through to AddressService immediately via
    ``set_current``; nothing else is persisted until ``confirm``. Errors never
    advance the step.
    """

    def __init__(
        self,
        customer_id: str,
        addresses: AddressService,
        cart: CheckoutCart,
        coordinator: OrderPaymentCoordinator,
    ):
        self.addresses = addresses
        self.cart = cart
        self.coordinator = coordinator
        self.state = CheckoutState(session_id=_generate_id(), customer_id=require_customer(customer_id))
        # Bumped whenever a failed order is dropped, so the next confirm places a new one
        self._order_attempt = 1

    @property
    def session_id(self) -> str:
        return self.state.session_id

    @property
    def step(self) -> str:
        return self.state.step

    def _require_step(self, action: str, *steps: str) -> None:
        if self.state.step not in steps:
            raise CheckoutStateError(self.state.step, action)

    def start(self) -> CheckoutState:
        """
        Enter the address step.

        Pre-selects the current address. If none is current, the first
        address is selected and made current (once, here).

        Raises:
            EmptyCartError: If the cart has nothing to check out. The session
                never enters the address step.
        """
        if self.state.step != STEP_NEW:
            raise CheckoutStateError(self.state.step, "start", "already started")
        items = list(self.cart.get_checkout_items())
        if not items:
            raise EmptyCartError(self.state.customer_id)

        self.state.items = items
        self.state.addresses = self.addresses.list(self.state.customer_id)
        self.state.step = STEP_ADDRESS

        current = next((a for a in self.state.addresses if a.is_current), None)
        if current is not None:
            self.state.selected_address_id = current.id
        elif self.state.addresses:
            fallback = self.state.addresses[0]
            logger.info(
                "Customer %s has no current address; repairing with %s",
                self.state.customer_id, fallback.id,
            )
            self._write_through(fallback.id)

        logger.info(
            "Checkout %s started for customer %s with %d item(s)",
            self.session_id, self.state.customer_id, len(items),
        )
        return self.state

    def _idempotency_key(self) -> str:
        return f"checkout-{self.session_id}-{self._order_attempt}"

    def _write_through(self, address_id: str) -> None:
        self.addresses.set_current(self.state.customer_id, address_id)
        self.state.addresses = self.addresses.list(self.state.customer_id)
        if self.state.selected_address_id not in (None, address_id) and self.state.pending_order_id:
            # The failed order ships elsewhere; the next confirm places a new one
            logger.info(
                "Checkout %s dropped failed order %s after address change",
                self.session_id, self.state.pending_order_id,
            )
            self.state.pending_order_id = None
            self._order_attempt += 1
        self.state.selected_address_id = address_id

    def select_address(self, address_id: str) -> CheckoutState:
        """
        Select a delivery address and make it current right away.

        Raises:
            AddressNotFoundError: If the customer has no such address.
        """
        self._require_step("select an address", STEP_ADDRESS)
        self._write_through(address_id)
        self.state.last_error = None
        return self.state

    def add_address(self, fields: dict[str, Any]) -> CheckoutState:
        """Create an address from the checkout form and select it."""
        self._require_step("add an address", STEP_ADDRESS)
        address = self.addresses.create(self.state.customer_id, fields)
        self._write_through(address.id)
        self.state.last_error = None
        return self.state

    def proceed_to_payment(self) -> CheckoutState:
        """
        Move to the payment step.

        Raises:
            CheckoutStateError: If no address is selected.
        """
        self._require_step("continue to payment", STEP_ADDRESS)
        if not self.state.selected_address_id:
            raise CheckoutStateError(self.state.step, "continue to payment", "no address selected")
        self.state.step = STEP_PAYMENT
        return self.state

    def back(self) -> CheckoutState:
        """Return to the address step, keeping the selection."""
        self._require_step("go back", STEP_PAYMENT)
        self.state.step = STEP_ADDRESS
        return self.state

    def select_payment(self, method: str, upi_id: str | None = None) -> CheckoutState:
        """
        Record the payment choice.

        Raises:
            ValidationError: If the method is unknown.
        """
        self._require_step("select a payment method", STEP_PAYMENT)
        normalize_payment_method(method)
        self.state.payment_method = method
        self.state.upi_id = (upi_id or "").strip() or None
        return self.state

    def confirm(self, discount: float = 0.0) -> Order:
        """
        Place the order and pay.

        Retries payment against the session's earlier order when its payment
        failed, instead of creating a second order.

        Returns:
            The paid order. The checked-out items are removed from the cart
            and the session moves to ``completed``.

        Raises:
            ValidationError: If no payment method is selected, or UPI has no ID.
            PaymentError: If the charge failed. The session stays on the
                payment step and ``confirm`` may be called again.
        """
        self._require_step("confirm", STEP_PAYMENT)
        if not self.state.payment_method:
            raise ValidationError("payment_method", "select a payment method")
        method = normalize_payment_method(self.state.payment_method)
        if method == "upi" and not self.state.upi_id:
            raise ValidationError("upi_id", "is required for UPI payments")

        try:
            if self.state.pending_order_id:
                order = self.coordinator.retry_payment(
                    self.state.customer_id,
                    self.state.pending_order_id,
                    method,
                    self.state.upi_id,
                )
            else:
                address = self.addresses.get(self.state.customer_id, self.state.selected_address_id)
                order = self.coordinator.place_order(
                    self.state.customer_id,
                    self.state.items,
                    ShippingAddress.from_address(address),
                    method,
                    self.state.upi_id,
                    discount=discount,
                    idempotency_key=self._idempotency_key(),
                )
                if order.payment_status == PAYMENT_PENDING:
                    # Replay of an attempt that was interrupted before reconciling
                    order = self.coordinator.retry_payment(
                        self.state.customer_id, order.id, method, self.state.upi_id
                    )
        except StorefrontError as e:
            self.state.last_error = str(e)
            raise

        if order.payment_status != PAYMENT_PAID:
            reason = self.coordinator.last_failure_reason(order.id) or "payment declined"
            self.state.pending_order_id = order.id
            self.state.order = order
            self.state.last_error = reason
            logger.warning("Checkout %s payment failed: %s", self.session_id, reason)
            raise PaymentError(order.id, reason)

        self.cart.clear([i.product_id for i in self.state.items])
        self.state.order = order
        self.state.pending_order_id = None
        self.state.last_error = None
        self.state.step = STEP_COMPLETED
        logger.info("Checkout %s completed with order %s", self.session_id, order.order_number)
        return order

    def cancel(self) -> None:
        """Abandon the session. Orders already placed are unaffected."""
        if self.state.step == STEP_COMPLETED:
            raise CheckoutStateError(self.state.step, "cancel")
        self.state.step = STEP_CANCELLED
        self.state.items = []
        self.state.addresses = []
        self.state.selected_address_id = None
        self.state.payment_method = None
        self.state.upi_id = None
        logger.info("Checkout %s cancelled", self.session_id)
