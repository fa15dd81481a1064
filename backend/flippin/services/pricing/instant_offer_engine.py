from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Mapping

from flippin.config import FeeSchedule
from flippin.models.enums import Condition
from flippin.utils.money import money_str, round_to_step, to_decimal

logger = logging.getLogger(__name__)

ConditionRuleMap = Mapping[Condition, Decimal]

DEFAULT_CONDITION_MULTIPLIERS: dict[Condition, Decimal] = {
    Condition.NEW: Decimal("1.10"),
    Condition.LIKE_NEW: Decimal("1.05"),
    Condition.GOOD: Decimal("1.00"),
    Condition.FAIR: Decimal("0.85"),
    Condition.POOR: Decimal("0.70"),
}

NEUTRAL_MULTIPLIER = Decimal("1")


@dataclass(frozen=True)
class InstantOfferQuote:
    seller_receives: Decimal
    buyer_pays: Decimal
    platform_fee: Decimal
    multiplier: Decimal

    def to_dict(self) -> dict:
        return {
            "seller_receives": money_str(self.seller_receives),
            "buyer_pays": money_str(self.buyer_pays),
            "platform_fee": money_str(self.platform_fee),
            "multiplier": str(self.multiplier),
        }


def parse_condition_rules(raw) -> dict[Condition, Decimal] | None:
    """Validate a stored condition-rule blob into a ConditionRuleMap.

    Accepts a JSON string or a mapping. Unknown condition keys are dropped
    with a warning; non-numeric or negative multipliers raise ``ValueError``.
    Returns None when there are no rules at all.
    """
    if raw is None:
        return None
    if isinstance(raw, (str, bytes)):
        text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        if not text.strip():
            return None
        try:
            raw = json.loads(text)
        except ValueError as exc:
            raise ValueError("condition rules must be a JSON object") from exc
    if not isinstance(raw, Mapping):
        raise ValueError("condition rules must be a JSON object")

    rules: dict[Condition, Decimal] = {}
    for key, value in raw.items():
        condition = Condition.parse(key)
        if condition is None:
            logger.warning("condition_rules_unknown_key key=%s", key)
            continue
        try:
            multiplier = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"condition rule {key} must be numeric") from exc
        if not multiplier.is_finite() or multiplier < 0:
            raise ValueError(f"condition rule {key} must be a non-negative number")
        rules[condition] = multiplier
    return rules


def resolve_multiplier(condition, condition_rules: ConditionRuleMap | None = None) -> Decimal:
    parsed = Condition.parse(condition)
    if parsed is None:
        return NEUTRAL_MULTIPLIER
    table = condition_rules if condition_rules is not None else DEFAULT_CONDITION_MULTIPLIERS
    return Decimal(table.get(parsed, NEUTRAL_MULTIPLIER))


def calculate_instant_offer(
    market_price,
    condition,
    base_offer,
    condition_rules: ConditionRuleMap | None = None,
    *,
    schedule: FeeSchedule | None = None,
) -> InstantOfferQuote:
    """Price a standing instant-buyer offer.

    The seller amount is deliberately rounded to the nearest R50 so sellers
    see friendly numbers; the buyer pays that plus a whole-rand platform fee.
    """
    fees = schedule or FeeSchedule()
    price = to_decimal(market_price)
    if price < 0:
        raise ValueError("market_price must be non-negative")
    rate = to_decimal(base_offer)
    if rate < 0 or rate > 1:
        raise ValueError("base_offer must be between 0 and 1")

    multiplier = resolve_multiplier(condition, condition_rules)
    seller_receives = round_to_step(price * rate * multiplier, fees.instant_offer_step)
    platform_fee = round_to_step(seller_receives * fees.instant_fee_rate, 1)

    return InstantOfferQuote(
        seller_receives=seller_receives,
        buyer_pays=seller_receives + platform_fee,
        platform_fee=platform_fee,
        multiplier=multiplier,
    )
