"""Address storage for storefront."""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .errors import AddressNotFoundError
from .models import Address
from .storage import JsonDocumentStore

ADDRESSES_DIR = "addresses"


class AddressStore:
    """Persists each customer's addresses as one JSON document."""

    def __init__(self, data_dir: Path | None = None):
        """
        Initialize AddressStore.

        Args:
            data_dir: Override base data directory (for testing).
        """
        self._documents = JsonDocumentStore(
            ADDRESSES_DIR, lambda: {"addresses": []}, data_dir=data_dir
        )

    def list_addresses(self, customer_id: str) -> list[Address]:
        """List a customer's addresses in creation order."""
        data = self._documents.read(customer_id)
        return [Address.from_dict(a) for a in data.get("addresses", [])]

    def get_address(self, customer_id: str, address_id: str) -> Address:
        """
        Get one address by ID.

        Raises:
            AddressNotFoundError: If the customer has no such address.
        """
        for address in self.list_addresses(customer_id):
            if address.id == address_id:
                return address
        raise AddressNotFoundError(address_id)

    @contextmanager
    def transaction(self, customer_id: str) -> Iterator[list[Address]]:
        """
        Yield the customer's full address list for mutation.

        The list is written back as a whole when the block exits cleanly, under
        an exclusive lock, so flag swaps across siblings land together or not
        at all.
        """
        with self._documents.transaction(customer_id) as data:
            addresses = [Address.from_dict(a) for a in data.get("addresses", [])]
            yield addresses
            data["addresses"] = [a.to_dict() for a in addresses]
