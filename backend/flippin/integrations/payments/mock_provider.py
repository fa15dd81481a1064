from __future__ import annotations

import uuid
from decimal import Decimal

from flippin.integrations.payments.base import CardChargeResult, EftInstruction, PaymentRail


class MockPaymentRail(PaymentRail):
    """Deterministic rail for dev and tests. Tokens containing "fail" are declined."""

    name = "mock"

    def __init__(self):
        self.charges: list[CardChargeResult] = []
        self.refunds: list[CardChargeResult] = []
        self.eft_instructions: list[EftInstruction] = []

    def process_eft(self, amount: Decimal, reference: str) -> EftInstruction:
        instruction = EftInstruction(
            reference=reference,
            amount=amount,
            provider=self.name,
            raw={"reference": reference, "amount": str(amount)},
        )
        self.eft_instructions.append(instruction)
        return instruction

    def process_card(self, amount: Decimal, token: str, metadata: dict | None = None) -> CardChargeResult:
        if "fail" in (token or "").lower():
            result = CardChargeResult(
                success=False,
                transaction_id="",
                amount=amount,
                provider=self.name,
                error="card_declined",
                raw={"metadata": metadata or {}},
            )
        else:
            result = CardChargeResult(
                success=True,
                transaction_id=f"card_{uuid.uuid4().hex[:16]}",
                amount=amount,
                provider=self.name,
                raw={"metadata": metadata or {}},
            )
        self.charges.append(result)
        return result

    def refund_card(self, transaction_id: str, amount: Decimal) -> CardChargeResult:
        result = CardChargeResult(
            success=True,
            transaction_id=transaction_id,
            amount=amount,
            provider=self.name,
        )
        self.refunds.append(result)
        return result
