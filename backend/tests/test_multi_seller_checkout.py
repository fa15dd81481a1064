from __future__ import annotations

import unittest
from decimal import Decimal
from unittest.mock import patch

from flippin.errors import NotFoundError, PaymentRailError, StateConflictError, ValidationError
from flippin.extensions import db
from flippin.models import Listing, Transaction
from flippin.models.enums import ListingStatus, TransactionStatus

from tests._support import FlippinTestCase


class MultiSellerCheckoutTestCase(FlippinTestCase):
    def setUp(self):
        super().setUp()
        self.checkout = self.services.checkout
        self.buyer = self.make_user()
        self.seller_a = self.make_user(role="seller")
        self.seller_b = self.make_user(role="seller")
        self.a1 = self.make_listing(self.seller_a, price="600", shipping="60")
        self.a2 = self.make_listing(self.seller_a, price="800", shipping="80")
        self.b1 = self.make_listing(self.seller_b, price="5000")

    def test_one_transaction_per_seller(self):
        result = self.checkout.checkout_cart([self.a1.id, self.b1.id, self.a2.id], self.buyer, "EFT")
        self.assertEqual(len(result.transactions), 2)
        group_a, group_b = result.transactions
        self.assertEqual(group_a.seller_id, self.seller_a.id)
        self.assertEqual(sorted(li.listing_id for li in group_a.line_items), sorted([self.a1.id, self.a2.id]))
        # Fees are computed on the group's combined item price.
        self.assertEqual(group_a.item_price, Decimal("1400.00"))
        self.assertEqual(group_a.platform_fee, Decimal("77.00"))
        self.assertEqual(group_a.shipping_cost, Decimal("140.00"))
        self.assertEqual(group_b.item_price, Decimal("5000.00"))
        self.assertEqual(result.total_amount, Decimal("6540.00"))
        self.assertEqual(result.rail_result["amount"], "6540.00")
        self.assertEqual(len(result.rail_result["references"]), 2)
        self.assertEqual(result.rail_result["bank_details"]["branch_code"], "250655")
        self.assertEqual({t.checkout_ref for t in result.transactions}, {result.checkout_ref})
        self.assertEqual(result.failed_groups, [])
        for listing_id in (self.a1.id, self.a2.id, self.b1.id):
            self.assertEqual(db.session.get(Listing, listing_id).status, ListingStatus.SOLD)

    def test_card_summary(self):
        result = self.checkout.checkout_cart([self.a1.id, self.b1.id], self.buyer, "CARD", card_token="tok_ok")
        self.assertTrue(result.rail_result["success"])
        self.assertEqual(result.rail_result["transaction_ids"], [t.id for t in result.transactions])
        self.assertTrue(all(t.status == TransactionStatus.PAID for t in result.transactions))
        self.assertEqual(len(self.rail.charges), 2)

    def test_unavailable_listing_aborts_everything(self):
        sold = self.make_listing(self.seller_b, price="100", status=ListingStatus.SOLD)
        with self.assertRaises(StateConflictError) as ctx:
            self.checkout.checkout_cart([self.a1.id, sold.id], self.buyer, "EFT")
        self.assertEqual(ctx.exception.details["listing_ids"], [sold.id])
        self.assertEqual(Transaction.query.count(), 0)
        self.assertEqual(db.session.get(Listing, self.a1.id).status, ListingStatus.ACTIVE)

    def test_missing_listing(self):
        with self.assertRaises(NotFoundError):
            self.checkout.checkout_cart([self.a1.id, 99999], self.buyer, "EFT")
        self.assertEqual(Transaction.query.count(), 0)

    def test_input_validation(self):
        with self.assertRaises(ValidationError):
            self.checkout.checkout_cart([], self.buyer, "EFT")
        with self.assertRaises(ValidationError):
            self.checkout.checkout_cart(["x"], self.buyer, "EFT")
        with self.assertRaises(ValidationError):
            self.checkout.checkout_cart([self.a1.id], self.buyer, "CARD")
        with self.assertRaises(ValidationError):
            self.checkout.checkout_cart([self.a1.id], self.seller_a, "EFT")

    def test_retry_is_idempotent(self):
        first = self.checkout.checkout_cart([self.a1.id, self.b1.id], self.buyer, "EFT")
        second = self.checkout.checkout_cart([self.a1.id, self.b1.id], self.buyer, "EFT")
        self.assertEqual([t.id for t in first.transactions], [t.id for t in second.transactions])
        self.assertEqual(Transaction.query.count(), 2)

    def test_cart_with_held_and_new_listing_from_same_seller(self):
        first = self.checkout.checkout_cart([self.a1.id], self.buyer, "EFT")
        held_id = first.transactions[0].id

        second = self.checkout.checkout_cart([self.a1.id, self.a2.id], self.buyer, "EFT")
        self.assertEqual(len(second.transactions), 2)
        self.assertEqual(second.transactions[0].id, held_id)
        fresh = second.transactions[1]
        self.assertEqual([li.listing_id for li in fresh.line_items], [self.a2.id])
        self.assertEqual(second.reused_transaction_ids, [held_id])
        self.assertFalse(second.all_reused)
        self.assertEqual(second.failed_groups, [])
        self.assertEqual(second.total_amount, Decimal("1540.00"))
        self.assertEqual(db.session.get(Listing, self.a2.id).status, ListingStatus.SOLD)
        self.assertEqual(Transaction.query.count(), 2)

        again = self.checkout.checkout_cart([self.a1.id, self.a2.id], self.buyer, "EFT")
        self.assertTrue(again.all_reused)
        self.assertEqual(sorted(t.id for t in again.transactions), sorted([held_id, fresh.id]))
        self.assertEqual(Transaction.query.count(), 2)

    def test_create_or_reuse_refuses_partially_held_group(self):
        self.checkout.checkout_cart([self.a1.id], self.buyer, "EFT")
        a1 = db.session.get(Listing, self.a1.id)
        with self.assertRaises(StateConflictError) as ctx:
            self.services.lifecycle.create_or_reuse([a1, self.a2], self.buyer, "EFT")
        self.assertEqual(ctx.exception.code, "PARTIALLY_HELD")
        self.assertEqual(ctx.exception.details["listing_ids"], [self.a1.id])
        self.assertEqual(db.session.get(Listing, self.a2.id).status, ListingStatus.ACTIVE)
        self.assertEqual(Transaction.query.count(), 1)

    def test_partial_failure_keeps_committed_groups(self):
        real_charge = self.rail.process_card
        calls = {"n": 0}

        def second_group_declines(amount, token, metadata=None):
            calls["n"] += 1
            return real_charge(amount, token if calls["n"] == 1 else "tok_fail", metadata)

        with patch.object(self.rail, "process_card", side_effect=second_group_declines):
            result = self.checkout.checkout_cart([self.a1.id, self.b1.id], self.buyer, "CARD", card_token="tok_ok")
        self.assertEqual(len(result.transactions), 1)
        self.assertEqual(result.transactions[0].seller_id, self.seller_a.id)
        self.assertEqual(len(result.failed_groups), 1)
        self.assertEqual(result.failed_groups[0]["seller_id"], self.seller_b.id)
        self.assertEqual(result.failed_groups[0]["error"], "CARD_DECLINED")
        self.assertEqual(db.session.get(Listing, self.b1.id).status, ListingStatus.ACTIVE)
        self.assertEqual(Transaction.query.count(), 1)

    def test_all_groups_failing_raises(self):
        with self.assertRaises(PaymentRailError):
            self.checkout.checkout_cart([self.a1.id, self.b1.id], self.buyer, "CARD", card_token="tok_fail")
        self.assertEqual(Transaction.query.count(), 0)

    def test_checkout_single_by_listing_and_offer(self):
        result = self.services.checkout.checkout_single(self.buyer, "EFT", listing_id=self.b1.id)
        self.assertEqual(result.transaction.listing_id, self.b1.id)
        offer = self.services.offers.create_offer(self.a1, self.buyer, 550)
        self.services.offers.respond_to_offer(offer, "ACCEPT", actor=self.seller_a)
        via_offer = self.services.checkout.checkout_single(self.buyer, "EFT", offer_id=offer.id)
        self.assertEqual(via_offer.transaction.item_price, Decimal("550.00"))
        with self.assertRaises(ValidationError):
            self.services.checkout.checkout_single(self.buyer, "EFT")
        with self.assertRaises(NotFoundError):
            self.services.checkout.checkout_single(self.buyer, "EFT", listing_id=424242)


if __name__ == "__main__":
    unittest.main()
