from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass
class EftInstruction:
    reference: str
    amount: Decimal
    provider: str
    raw: dict | None = None


@dataclass
class CardChargeResult:
    success: bool
    transaction_id: str
    amount: Decimal
    provider: str
    error: str = ""
    raw: dict | None = None


class PaymentRail:
    """Request/response collaborator that moves buyer money.

    ``process_card`` reports declines through ``success=False`` rather than
    raising; transport failures may raise.
    """

    name = "unknown"

    def process_eft(self, amount: Decimal, reference: str) -> EftInstruction:
        raise NotImplementedError

    def process_card(self, amount: Decimal, token: str, metadata: dict | None = None) -> CardChargeResult:
        raise NotImplementedError

    def refund_card(self, transaction_id: str, amount: Decimal) -> CardChargeResult:
        raise NotImplementedError
