from flippin.services.pricing.instant_offer_engine import (
    DEFAULT_CONDITION_MULTIPLIERS,
    InstantOfferQuote,
    calculate_instant_offer,
    parse_condition_rules,
    resolve_multiplier,
)

__all__ = [
    "DEFAULT_CONDITION_MULTIPLIERS",
    "InstantOfferQuote",
    "calculate_instant_offer",
    "parse_condition_rules",
    "resolve_multiplier",
]
