"""Address book operations and the default/current flag rules."""

import logging
from typing import Any

from .address_store import AddressStore
from .errors import AddressNotFoundError, AuthError
from .models import Address, _utc_now
from .utils import clean_address_fields

logger = logging.getLogger(__name__)


def require_customer(customer_id: str | None) -> str:
    """
    Return the customer ID or fail when none was supplied.

    Raises:
        AuthError: If the ID is missing or blank.
    """
    if customer_id is None or not str(customer_id).strip():
        raise AuthError()
    return str(customer_id).strip()


def _find(addresses: list[Address], address_id: str) -> Address:
    for address in addresses:
        if address.id == address_id:
            return address
    raise AddressNotFoundError(address_id)


def _make_only_default(addresses: list[Address], target: Address) -> None:
    now = _utc_now()
    for address in addresses:
        flag = address is target
        if address.is_default != flag:
            address.is_default = flag
            address.updated_at = now


def _make_only_current(addresses: list[Address], target: Address) -> None:
    now = _utc_now()
    for address in addresses:
        flag = address is target
        if address.is_current != flag:
            address.is_current = flag
            address.updated_at = now


def _rederive_current(addresses: list[Address]) -> Address | None:
    """
    Pick a new current address after the old one went away.

    Preference: the default address, else the first remaining, else none.
    """
    if not addresses:
        return None
    replacement = next((a for a in addresses if a.is_default), addresses[0])
    _make_only_current(addresses, replacement)
    return replacement


class AddressService:
    """
    Customer-facing address operations.

    Every method runs as a single AddressStore transaction, so the
    demote-siblings-then-set sequence never leaves a customer with two
    default or two current addresses, even across concurrent calls.

    Default and current repair differ: losing the current
    address picks a replacement, losing the default does not.
    """

    def __init__(self, store: AddressStore):
        self.store = store

    def list(self, customer_id: str) -> list[Address]:
        customer_id = require_customer(customer_id)
        return self.store.list_addresses(customer_id)

    def get(self, customer_id: str, address_id: str) -> Address:
        customer_id = require_customer(customer_id)
        return self.store.get_address(customer_id, address_id)

    def get_current(self, customer_id: str) -> Address | None:
        return next((a for a in self.list(customer_id) if a.is_current), None)

    def get_default(self, customer_id: str) -> Address | None:
        return next((a for a in self.list(customer_id) if a.is_default), None)

    def create(self, customer_id: str, fields: dict[str, Any]) -> Address:
        """
        Create an address.

        The customer's first address is always made default and current,
        whatever flags were requested. Later addresses honour ``is_default``
        and ``is_current``, demoting the siblings in the same transaction.

        Raises:
            AuthError: If no customer ID was supplied.
            ValidationError: If a field is missing or malformed.
        """
        customer_id = require_customer(customer_id)
        cleaned = clean_address_fields(fields)
        want_default = cleaned.pop("is_default", False)
        want_current = cleaned.pop("is_current", False)

        with self.store.transaction(customer_id) as addresses:
            address = Address.create(customer_id=customer_id, **cleaned)
            first = not addresses
            addresses.append(address)

            if first or want_default:
                _make_only_default(addresses, address)
            if first or want_current:
                _make_only_current(addresses, address)

        logger.info(
            "Created address %s for customer %s (default=%s, current=%s)",
            address.id, customer_id, address.is_default, address.is_current,
        )
        return address

    def update(self, customer_id: str, address_id: str, fields: dict[str, Any]) -> Address:
        """
        Update an address.

        ``is_default=True`` demotes the siblings; ``is_default=False`` may leave
        the customer with no default. ``is_current=True`` demotes the siblings;
        ``is_current=False`` on the current address hands current to another
        address as deletion does.

        Raises:
            AddressNotFoundError: If the customer has no such address.
            ValidationError: If a supplied field is malformed.
        """
        customer_id = require_customer(customer_id)
        cleaned = clean_address_fields(fields, partial=True)
        want_default = cleaned.pop("is_default", None)
        want_current = cleaned.pop("is_current", None)

        with self.store.transaction(customer_id) as addresses:
            address = _find(addresses, address_id)
            for key, value in cleaned.items():
                setattr(address, key, value)
            address.updated_at = _utc_now()

            if want_default is True:
                _make_only_default(addresses, address)
            elif want_default is False and address.is_default:
                address.is_default = False
                logger.info(
                    "Customer %s cleared default on %s; no default remains",
                    customer_id, address_id,
                )

            if want_current is True:
                _make_only_current(addresses, address)
            elif want_current is False and address.is_current:
                address.is_current = False
                others = [a for a in addresses if a is not address]
                replacement = _rederive_current(others)
                if replacement is None:
                    # Nothing else to move current to
                    address.is_current = True

        return address

    def set_default(self, customer_id: str, address_id: str) -> Address:
        """
        Make one address the default and every sibling non-default.

        Raises:
            AddressNotFoundError: If the customer has no such address.
        """
        customer_id = require_customer(customer_id)
        with self.store.transaction(customer_id) as addresses:
            address = _find(addresses, address_id)
            _make_only_default(addresses, address)
        logger.info("Default address for customer %s is now %s", customer_id, address_id)
        return address

    def set_current(self, customer_id: str, address_id: str) -> Address:
        """
        Make one address current and every sibling non-current.

        Checkout calls this on every address selection.

        Raises:
            AddressNotFoundError: If the customer has no such address.
        """
        customer_id = require_customer(customer_id)
        with self.store.transaction(customer_id) as addresses:
            address = _find(addresses, address_id)
            _make_only_current(addresses, address)
        logger.info("Current address for customer %s is now %s", customer_id, address_id)
        return address

    def delete(self, customer_id: str, address_id: str) -> Address:
        """
        Permanently delete an address.

        If it was current, current moves to the default address, else the
        first remaining one, else nothing. Default is never reassigned.

        Returns:
            The deleted address.

        Raises:
            AddressNotFoundError: If the customer has no such address.
        """
        customer_id = require_customer(customer_id)
        with self.store.transaction(customer_id) as addresses:
            address = _find(addresses, address_id)
            addresses.remove(address)
            if address.is_current:
                replacement = _rederive_current(addresses)
                logger.info(
                    "Deleted current address %s for customer %s; current is now %s",
                    address_id, customer_id, replacement.id if replacement else None,
                )
            else:
                logger.info("Deleted address %s for customer %s", address_id, customer_id)
        return address
