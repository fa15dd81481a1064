from __future__ import annotations

import unittest
from decimal import Decimal

from flippin.models.enums import Condition
from flippin.services.pricing import (
    calculate_instant_offer,
    parse_condition_rules,
    resolve_multiplier,
)


class InstantOfferEngineTestCase(unittest.TestCase):
    def test_good_condition_default_table(self):
        quote = calculate_instant_offer(8000, Condition.GOOD, "0.60")
        self.assertEqual(quote.seller_receives, Decimal("4800.00"))
        self.assertEqual(quote.platform_fee, Decimal("240.00"))
        self.assertEqual(quote.buyer_pays, Decimal("5040.00"))

    def test_rounds_to_nearest_fifty_half_up(self):
        # 1025 sits exactly between 1000 and 1050.
        quote = calculate_instant_offer(1025, "GOOD", 1)
        self.assertEqual(quote.seller_receives, Decimal("1050.00"))
        quote = calculate_instant_offer(1024, "GOOD", 1)
        self.assertEqual(quote.seller_receives, Decimal("1000.00"))

    def test_condition_multipliers(self):
        self.assertEqual(calculate_instant_offer(1000, "NEW", 1).seller_receives, Decimal("1100.00"))
        self.assertEqual(calculate_instant_offer(1000, "like_new", 1).seller_receives, Decimal("1050.00"))
        self.assertEqual(calculate_instant_offer(1000, "FAIR", 1).seller_receives, Decimal("850.00"))
        self.assertEqual(calculate_instant_offer(1000, "POOR", 1).seller_receives, Decimal("700.00"))

    def test_unknown_condition_is_neutral(self):
        unknown = calculate_instant_offer(8000, "MINT-ISH", "0.6")
        good = calculate_instant_offer(8000, "GOOD", "0.6")
        self.assertEqual(unknown, good)

    def test_rules_missing_condition_is_neutral(self):
        rules = parse_condition_rules('{"NEW": 1.5, "SHINY": 3}')
        self.assertEqual(resolve_multiplier("FAIR", rules), Decimal("1"))
        self.assertEqual(resolve_multiplier("NEW", rules), Decimal("1.5"))

    def test_custom_rules_override_defaults(self):
        quote = calculate_instant_offer(1000, "POOR", 1, {Condition.POOR: Decimal("0.5")})
        self.assertEqual(quote.seller_receives, Decimal("500.00"))

    def test_zero_multiplier_is_honoured(self):
        quote = calculate_instant_offer(1000, "POOR", 1, {Condition.POOR: Decimal("0")})
        self.assertEqual(quote.seller_receives, Decimal("0"))
        self.assertEqual(quote.buyer_pays, Decimal("0"))

    def test_result_properties(self):
        for price in (0, 49, 75, 999, 8000, 12345.67):
            for condition in ("NEW", "GOOD", "POOR", "junk"):
                for base in ("0", "0.35", "0.6", "1"):
                    quote = calculate_instant_offer(price, condition, base)
                    self.assertEqual(quote.seller_receives % 50, 0)
                    self.assertGreaterEqual(quote.buyer_pays, quote.seller_receives)

    def test_rejects_out_of_range_inputs(self):
        with self.assertRaises(ValueError):
            calculate_instant_offer(-1, "GOOD", "0.6")
        with self.assertRaises(ValueError):
            calculate_instant_offer(1000, "GOOD", "1.2")
        with self.assertRaises(ValueError):
            calculate_instant_offer(1000, "GOOD", "-0.1")

    def test_parse_condition_rules_validation(self):
        self.assertIsNone(parse_condition_rules(None))
        self.assertIsNone(parse_condition_rules("  "))
        with self.assertRaises(ValueError):
            parse_condition_rules("not json")
        with self.assertRaises(ValueError):
            parse_condition_rules('["GOOD"]')
        with self.assertRaises(ValueError):
            parse_condition_rules('{"GOOD": "lots"}')
        with self.assertRaises(ValueError):
            parse_condition_rules('{"GOOD": -1}')
        self.assertEqual(parse_condition_rules({"good": 0.9}), {Condition.GOOD: Decimal("0.9")})


if __name__ == "__main__":
    unittest.main()
