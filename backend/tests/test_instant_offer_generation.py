from __future__ import annotations

import json
import unittest
from datetime import timedelta
from decimal import Decimal

from flippin.models import InstantOffer
from flippin.models.enums import InstantOfferStatus
from flippin.services.instant_offer_service import generate_instant_offers

from tests._support import FlippinTestCase


class InstantOfferGenerationTestCase(FlippinTestCase):
    def setUp(self):
        super().setUp()
        self.phones = self.make_category("Phones")
        self.laptops = self.make_category("Laptops")
        self.seller = self.make_user(role="seller")
        self.listing = self.make_listing(self.seller, price="9000", condition="GOOD", category=self.phones)

    def test_offers_sorted_by_seller_amount(self):
        self.make_instant_buyer(categories=[self.phones], base_offer="0.5")
        self.make_instant_buyer(categories=[self.phones], base_offer="0.6")
        offers = generate_instant_offers(self.listing, Decimal("8000"), config=self.config)
        self.assertEqual([o.seller_receives for o in offers], [Decimal("4800.00"), Decimal("4000.00")])
        top = offers[0]
        self.assertEqual(top.platform_fee, Decimal("240.00"))
        self.assertEqual(top.buyer_pays, Decimal("5040.00"))
        self.assertEqual(top.status, InstantOfferStatus.PENDING)
        self.assertEqual(top.expires_at - top.created_at, timedelta(hours=48))

    def test_only_matching_approved_active_buyers(self):
        self.make_instant_buyer(categories=[self.laptops])
        self.make_instant_buyer(categories=[self.phones], approved=False)
        self.make_instant_buyer(categories=[self.phones], active=False)
        match = self.make_instant_buyer(categories=[self.phones, self.laptops])
        offers = generate_instant_offers(self.listing, 8000, config=self.config)
        self.assertEqual([o.instant_buyer_id for o in offers], [match.id])

    def test_buyer_rules_apply(self):
        self.make_instant_buyer(categories=[self.phones], base_offer="0.5", rules=json.dumps({"GOOD": 0.8}))
        offers = generate_instant_offers(self.listing, 10000, config=self.config)
        self.assertEqual(offers[0].seller_receives, Decimal("4000.00"))

    def test_broken_rules_skip_only_that_buyer(self):
        self.make_instant_buyer(categories=[self.phones], rules='{"GOOD": "not a number"}')
        good = self.make_instant_buyer(categories=[self.phones])
        offers = generate_instant_offers(self.listing, 8000, config=self.config)
        self.assertEqual([o.instant_buyer_id for o in offers], [good.id])
        self.assertEqual(InstantOffer.query.count(), 1)

    def test_listing_without_category_gets_nothing(self):
        self.make_instant_buyer(categories=[self.phones])
        bare = self.make_listing(self.seller, price="100")
        self.assertEqual(generate_instant_offers(bare, 100, config=self.config), [])


if __name__ == "__main__":
    unittest.main()
