"""Order and payment storage for storefront."""

from pathlib import Path

from .errors import OrderNotFoundError
from .models import Order, Payment, _utc_now
from .storage import JsonDocumentStore
from .utils import generate_order_number

ORDERS_DIR = "orders"
ORDERS_KEY = "orders"


def _empty() -> dict:
    return {"sequence": 0, "orders": [], "payments": []}


class OrderStore:
    """
    Persists orders and their payment attempts.

    Orders and payments live in one document so the order-number sequence and
    idempotency-key lookup are read and advanced under the same lock.
    """

    def __init__(self, data_dir: Path | None = None):
        """
        Initialize OrderStore.

        Args:
            data_dir: Override base data directory (for testing).
        """
        self._documents = JsonDocumentStore(ORDERS_DIR, _empty, data_dir=data_dir)

    def add_order(self, order: Order) -> tuple[Order, bool]:
        """
        Persist a new order, assigning its order number.

        If the order carries an idempotency key the same customer already used,
        nothing is written and the earlier order is returned instead.

        Returns:
            (order, created) where created is False for an idempotent replay.
        """
        with self._documents.transaction(ORDERS_KEY) as data:
            if order.idempotency_key:
                for existing in data["orders"]:
                    if (
                        existing["customer_id"] == order.customer_id
                        and existing.get("idempotency_key") == order.idempotency_key
                    ):
                        return Order.from_dict(existing), False

            data["sequence"] += 1
            order.order_number = generate_order_number(data["sequence"])
            data["orders"].append(order.to_dict())
        return order, True

    def get_order(self, customer_id: str, order_id: str) -> Order:
        """
        Get an order owned by the customer.

        Raises:
            OrderNotFoundError: If it doesn't exist or belongs to someone else.
        """
        data = self._documents.read(ORDERS_KEY)
        for o in data["orders"]:
            if o["id"] == order_id and o["customer_id"] == customer_id:
                return Order.from_dict(o)
        raise OrderNotFoundError(order_id)

    def list_orders(self, customer_id: str) -> list[Order]:
        """List a customer's orders, newest first."""
        data = self._documents.read(ORDERS_KEY)
        orders = [Order.from_dict(o) for o in data["orders"] if o["customer_id"] == customer_id]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders

    def update_order(self, order: Order) -> None:
        """
        Replace a stored order.

        Raises:
            OrderNotFoundError: If the order doesn't exist.
        """
        with self._documents.transaction(ORDERS_KEY) as data:
            for i, existing in enumerate(data["orders"]):
                if existing["id"] == order.id:
                    order.updated_at = _utc_now()
                    data["orders"][i] = order.to_dict()
                    return
            raise OrderNotFoundError(order.id)

    def add_payment(self, payment: Payment) -> None:
        with self._documents.transaction(ORDERS_KEY) as data:
            data["payments"].append(payment.to_dict())

    def update_payment(self, payment: Payment) -> None:
        with self._documents.transaction(ORDERS_KEY) as data:
            for i, existing in enumerate(data["payments"]):
                if existing["id"] == payment.id:
                    payment.updated_at = _utc_now()
                    data["payments"][i] = payment.to_dict()
                    return
            raise OrderNotFoundError(payment.order_id)

    def list_payments(self, order_id: str) -> list[Payment]:
        """List payment attempts for an order, oldest first."""
        data = self._documents.read(ORDERS_KEY)
        return [Payment.from_dict(p) for p in data["payments"] if p["order_id"] == order_id]
