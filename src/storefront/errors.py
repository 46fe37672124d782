"""Custom exceptions for storefront."""


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    pass


class ValidationError(StorefrontError):
    """Raised when input fails validation (bad mobile, postal code, missing field)."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class AuthError(StorefrontError):
    """Raised when no customer identity accompanies a call."""

    def __init__(self, reason: str = "customer identity is required"):
        self.reason = reason
        super().__init__(f"Authentication required: {reason}")


class NotFoundError(StorefrontError):
    """Raised when a record does not exist or is not owned by the caller."""

    pass


class AddressNotFoundError(NotFoundError):
    """Raised when an address ID doesn't exist for the customer."""

    def __init__(self, address_id: str):
        self.address_id = address_id
        super().__init__(f"Address not found: {address_id}")


class OrderNotFoundError(NotFoundError):
    """Raised when an order ID doesn't exist for the customer."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class CheckoutSessionNotFoundError(NotFoundError):
    """Raised when a checkout session ID is unknown or already discarded."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Checkout session not found: {session_id}")


class EmptyCartError(StorefrontError):
    """Raised when checkout is entered with no items selected."""

    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__("Cart is empty. Add items before checking out.")


class CheckoutStateError(StorefrontError):
    """Raised when a checkout step transition is not allowed from the current step."""

    def __init__(self, step: str, action: str, reason: str | None = None):
        self.step = step
        self.action = action
        msg = f"Cannot {action} during '{step}' step"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class OrderStateError(StorefrontError):
    """Raised when an order cannot be paid or cancelled in its current state."""

    def __init__(self, order_id: str, reason: str):
        self.order_id = order_id
        self.reason = reason
        super().__init__(f"Order {order_id}: {reason}")


class PaymentError(StorefrontError):
    """Raised to signal a failed payment. The order stays queryable."""

    def __init__(self, order_id: str | None, reason: str):
        self.order_id = order_id
        self.reason = reason
        msg = f"Payment failed: {reason}"
        if order_id:
            msg = f"Payment failed for order {order_id}: {reason}"
        super().__init__(msg)


class PaymentProviderError(StorefrontError):
    """Raised by a payment provider when the charge could not be attempted."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Payment provider error: {reason}")


class PostalLookupError(StorefrontError):
    """Raised by a postal lookup backend when a code cannot be resolved."""

    def __init__(self, postal_code: str, reason: str):
        self.postal_code = postal_code
        self.reason = reason
        super().__init__(f"Postal lookup failed for {postal_code}: {reason}")


class InvalidSchemaVersionError(StorefrontError):
    """Raised when a stored document has an unsupported schema version."""

    def __init__(self, found: int, supported: int):
        self.found = found
        self.supported = supported
        super().__init__(
            f"Unsupported schema version {found}. This tool supports version {supported}."
        )
