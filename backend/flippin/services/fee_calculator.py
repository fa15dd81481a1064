from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flippin.config import FeeSchedule
from flippin.models.enums import PaymentMethod
from flippin.utils.money import ZERO, money_str, quantize_cents, to_decimal


DEFAULT_FEE_SCHEDULE = FeeSchedule()


@dataclass(frozen=True)
class FeeBreakdown:
    item_price: Decimal
    platform_fee: Decimal
    card_fee: Decimal
    total_fee: Decimal
    seller_receives: Decimal

    def to_dict(self) -> dict:
        return {
            "item_price": money_str(self.item_price),
            "platform_fee": money_str(self.platform_fee),
            "card_fee": money_str(self.card_fee),
            "total_fee": money_str(self.total_fee),
            "seller_receives": money_str(self.seller_receives),
        }


def calculate_fees(item_price, method, *, schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE) -> FeeBreakdown:
    """Split an item price into platform fee, card fee and seller payout.

    The platform fee is waived when the price is at or below the free
    threshold. Each fee is rounded half-up to the cent exactly once; the payout
    is the exact remainder, so ``platform_fee + card_fee + seller_receives``
    equals the price unless the payout floor at zero kicks in.
    """
    price = to_decimal(item_price)
    if price < 0:
        raise ValueError("item_price must be non-negative")
    rail = PaymentMethod.parse(method)
    if rail is None:
        raise ValueError(f"unknown payment method {method!r}")

    if price <= schedule.free_threshold:
        platform_fee = ZERO
    else:
        platform_fee = quantize_cents(price * schedule.platform_rate)

    card_fee = quantize_cents(price * schedule.card_rate) if rail is PaymentMethod.CARD else ZERO

    total_fee = platform_fee + card_fee
    seller_receives = price - total_fee
    if seller_receives < 0:
        seller_receives = ZERO

    return FeeBreakdown(
        item_price=quantize_cents(price),
        platform_fee=platform_fee,
        card_fee=card_fee,
        total_fee=total_fee,
        seller_receives=quantize_cents(seller_receives),
    )
