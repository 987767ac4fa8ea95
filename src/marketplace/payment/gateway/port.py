"""Payment gateway port.

Checkout confirmation, quote acceptance and order refunds all go through
this interface. Amounts are in the marketplace currency, two decimals.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ChargeResult:
    success: bool
    transaction_id: str | None = None
    status: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class RefundResult:
    success: bool
    refund_id: str | None = None
    status: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    @abstractmethod
    def charge(
        self,
        amount: float,
        currency: str,
        payment_method: str,
        description: str,
        idempotency_key: str,
    ) -> ChargeResult:
        """Capture ``amount``.

        Repeating an ``idempotency_key`` returns the original charge while it
        stands. Once that charge is fully refunded the key charges afresh.
        """
        ...

    @abstractmethod
    def refund(
        self,
        transaction_id: str,
        amount: float,
        reason: str,
    ) -> RefundResult:
        ...
