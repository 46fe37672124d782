"""Cart collaborator used by checkout."""

from pathlib import Path
from typing import Protocol

from .errors import ValidationError
from .models import CartItem
from .storage import JsonDocumentStore

CARTS_DIR = "carts"


class CheckoutCart(Protocol):
    """The slice of the cart subsystem that checkout depends on."""

    def get_checkout_items(self) -> list[CartItem]:
        """Items selected for checkout (empty list if none)."""
        ...

    def clear(self, item_ids: list[str]) -> None:
        """Remove the given product IDs from the cart."""
        ...


class CartStore:
    """Persists each customer's cart as one JSON document."""

    def __init__(self, data_dir: Path | None = None):
        """
        Initialize CartStore.

        Args:
            data_dir: Override base data directory (for testing).
        """
        self._documents = JsonDocumentStore(CARTS_DIR, lambda: {"items": []}, data_dir=data_dir)

    def list_items(self, customer_id: str) -> list[CartItem]:
        data = self._documents.read(customer_id)
        return [CartItem.from_dict(i) for i in data.get("items", [])]

    def add_item(self, customer_id: str, item: CartItem) -> CartItem:
        """
        Add an item, merging quantity into an existing line for the same product.

        Raises:
            ValidationError: If quantity or price is not positive.
        """
        if item.quantity < 1:
            raise ValidationError("quantity", "must be at least 1")
        if item.unit_price <= 0:
            raise ValidationError("unit_price", "must be positive")

        with self._documents.transaction(customer_id) as data:
            items = data.setdefault("items", [])
            for existing in items:
                if existing["product_id"] == item.product_id:
                    existing["quantity"] += item.quantity
                    existing["unit_price"] = item.unit_price
                    return CartItem.from_dict(existing)
            items.append(item.to_dict())
        return item

    def remove_items(self, customer_id: str, product_ids: list[str]) -> int:
        """Remove lines by product ID. Returns the number removed."""
        wanted = set(product_ids)
        with self._documents.transaction(customer_id) as data:
            items = data.get("items", [])
            kept = [i for i in items if i["product_id"] not in wanted]
            data["items"] = kept
        return len(items) - len(kept)

    def for_customer(self, customer_id: str) -> "CustomerCart":
        return CustomerCart(self, customer_id)


class CustomerCart:
    """A CartStore bound to one customer, satisfying CheckoutCart."""

    def __init__(self, store: CartStore, customer_id: str):
        self.store = store
        self.customer_id = customer_id

    def get_checkout_items(self) -> list[CartItem]:
        return self.store.list_items(self.customer_id)

    def clear(self, item_ids: list[str]) -> None:
        self.store.remove_items(self.customer_id, item_ids)
