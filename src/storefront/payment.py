"""Payment provider interface and the built-in simulated provider."""

import os
import uuid
from typing import Protocol

from .models import ChargeResult

# "approve" or "decline"; overridable via STOREFRONT_PAYMENT_MODE
PAYMENT_MODE = os.environ.get("STOREFRONT_PAYMENT_MODE", "approve")


class PaymentProvider(Protocol):
    """An external payment provider.

    Implementations either return a ChargeResult (approved or declined) or
    raise PaymentProviderError when the charge could not be attempted at all.
    Callers treat both a decline and a raised error as a failed payment.
    """

    def charge(self, method: str, detail: str | None, amount: float) -> ChargeResult:
        """Charge ``amount`` using ``method`` (``detail`` is the UPI ID for UPI)."""
        ...


class SimulatedPaymentProvider:
    """Provider used when no gateway is configured.

    Approves every charge with a plausible detail, unless built with
    ``mode="decline"``. UPI IDs must look like ``name@bank``.
    """

    def __init__(self, mode: str | None = None):
        self.mode = mode or PAYMENT_MODE

    def charge(self, method: str, detail: str | None, amount: float) -> ChargeResult:
        if self.mode == "decline":
            return ChargeResult(success=False, message="declined by provider")
        if method == "upi" and (not detail or "@" not in detail):
            return ChargeResult(success=False, message=f"invalid UPI ID '{detail or ''}'")
        if amount <= 0:
            return ChargeResult(success=False, message="amount must be positive")
        return ChargeResult(success=True, reference=f"SIM-{uuid.uuid4().hex[:12].upper()}")
