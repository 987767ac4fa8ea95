"""In-memory payment gateway for development and tests.

Behaviour is switched at runtime with ``configure()``; every call is
recorded in ``calls`` so tests can assert on amounts and keys.
"""

from uuid import uuid4

from marketplace.payment.gateway.port import ChargeResult, PaymentGateway, RefundResult


class FakeGateway(PaymentGateway):
    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.calls: list[dict] = []
        self._charges: dict[str, ChargeResult] = {}
        self._captured: dict[str, dict] = {}  # transaction id -> key, amount, refunded

    def configure(self, should_succeed: bool, failure_reason: str = "Card declined") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def charges(self) -> list[dict]:
        return [c for c in self.calls if c["method"] == "charge"]

    def refunds(self) -> list[dict]:
        return [c for c in self.calls if c["method"] == "refund"]

    def charge(
        self,
        amount: float,
        currency: str,
        payment_method: str,
        description: str,
        idempotency_key: str,
    ) -> ChargeResult:
        self.calls.append(
            {
                "method": "charge",
                "amount": amount,
                "currency": currency,
                "payment_method": payment_method,
                "description": description,
                "idempotency_key": idempotency_key,
            }
        )

        # A standing charge is replayed for the same key; a refunded one is not
        previous = self._charges.get(idempotency_key)
        if previous is not None:
            return previous

        if not self.should_succeed:
            return ChargeResult(success=False, status="failed", failure_reason=self.failure_reason)

        result = ChargeResult(success=True, transaction_id=f"fake_txn_{uuid4().hex[:12]}", status="succeeded")
        self._charges[idempotency_key] = result
        self._captured[result.transaction_id] = {"key": idempotency_key, "amount": amount, "refunded": 0.0}
        return result

    def refund(self, transaction_id: str, amount: float, reason: str) -> RefundResult:
        self.calls.append(
            {
                "method": "refund",
                "transaction_id": transaction_id,
                "amount": amount,
                "reason": reason,
            }
        )

        if not self.should_succeed:
            return RefundResult(success=False, status="failed", failure_reason=self.failure_reason)

        captured = self._captured.get(transaction_id)
        if captured is not None:
            captured["refunded"] = round(captured["refunded"] + amount, 2)
            if captured["refunded"] >= round(captured["amount"], 2):
                self._charges.pop(captured["key"], None)
        return RefundResult(success=True, refund_id=f"fake_ref_{uuid4().hex[:12]}", status="succeeded")
