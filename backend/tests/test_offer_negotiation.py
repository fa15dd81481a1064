from __future__ import annotations

import unittest
from datetime import datetime, timedelta
from decimal import Decimal

from flippin.errors import ForbiddenError, InvalidTransition, StateConflictError, ValidationError
from flippin.extensions import db
from flippin.models import Offer, Transaction
from flippin.models.enums import ListingStatus, OfferStatus

from tests._support import FlippinTestCase


class OfferNegotiationTestCase(FlippinTestCase):
    def setUp(self):
        super().setUp()
        self.offers = self.services.offers
        self.seller = self.make_user(role="seller")
        self.buyer = self.make_user()
        self.listing = self.make_listing(self.seller, price="1000")

    def test_bounds_are_inclusive(self):
        with self.assertRaises(ValidationError):
            self.offers.create_offer(self.listing, self.buyer, 400)
        with self.assertRaises(ValidationError):
            self.offers.create_offer(self.listing, self.buyer, "499.99")
        low = self.offers.create_offer(self.listing, self.buyer, 500)
        high = self.offers.create_offer(self.listing, self.buyer, 1100)
        self.assertEqual(low.amount, Decimal("500.00"))
        self.assertEqual(high.amount, Decimal("1100.00"))
        with self.assertRaises(ValidationError):
            self.offers.create_offer(self.listing, self.buyer, 1101)

    def test_new_offer_is_pending_for_48_hours(self):
        offer = self.offers.create_offer(self.listing, self.buyer, 900, "Would you take 900?")
        self.assertEqual(offer.status, OfferStatus.PENDING)
        self.assertEqual(offer.expires_at - offer.created_at, timedelta(hours=48))
        self.assertEqual(offer.message, "Would you take 900?")
        self.assertEqual(len(self.mailer.outbox), 1)
        self.assertEqual(self.mailer.outbox[0]["to"], self.seller.email)

    def test_rejects_own_listing_and_inactive_listing(self):
        with self.assertRaises(ValidationError):
            self.offers.create_offer(self.listing, self.seller, 900)
        sold = self.make_listing(self.seller, price="1000", status=ListingStatus.SOLD)
        with self.assertRaises(StateConflictError):
            self.offers.create_offer(sold, self.buyer, 900)

    def test_non_numeric_amount(self):
        with self.assertRaises(ValidationError):
            self.offers.create_offer(self.listing, self.buyer, "lots")

    def test_accept_does_not_create_transaction(self):
        offer = self.offers.create_offer(self.listing, self.buyer, 900)
        accepted = self.offers.respond_to_offer(offer, "accept", actor=self.seller)
        self.assertEqual(accepted.status, OfferStatus.ACCEPTED)
        self.assertIsNotNone(accepted.responded_at)
        self.assertEqual(Transaction.query.count(), 0)
        with self.assertRaises(InvalidTransition):
            self.offers.respond_to_offer(offer, "REJECT", actor=self.seller)

    def test_only_seller_can_respond(self):
        offer = self.offers.create_offer(self.listing, self.buyer, 900)
        with self.assertRaises(ForbiddenError):
            self.offers.respond_to_offer(offer, "ACCEPT", actor=self.buyer)
        with self.assertRaises(ValidationError):
            self.offers.respond_to_offer(offer, "MAYBE", actor=self.seller)

    def test_expired_offer_moves_to_expired(self):
        offer = self.offers.create_offer(self.listing, self.buyer, 900)
        offer.expires_at = datetime.utcnow() - timedelta(minutes=1)
        db.session.commit()
        with self.assertRaises(StateConflictError) as ctx:
            self.offers.respond_to_offer(offer, "ACCEPT", actor=self.seller)
        self.assertEqual(ctx.exception.code, "OFFER_EXPIRED")
        self.assertEqual(db.session.get(Offer, offer.id).status, OfferStatus.EXPIRED)

    def test_counter_offer_replaces_original(self):
        offer = self.offers.create_offer(self.listing, self.buyer, 700)
        counter = self.offers.counter_offer(offer, 950, "Meet me at 950", actor=self.seller)
        self.assertEqual(db.session.get(Offer, offer.id).status, OfferStatus.REJECTED)
        self.assertEqual(counter.status, OfferStatus.PENDING)
        self.assertEqual(counter.buyer_id, self.buyer.id)
        self.assertEqual(counter.countered_from_id, offer.id)
        self.assertEqual(counter.amount, Decimal("950.00"))

    def test_counter_offer_respects_bounds(self):
        offer = self.offers.create_offer(self.listing, self.buyer, 700)
        with self.assertRaises(ValidationError):
            self.offers.counter_offer(offer, 2000, actor=self.seller)
        self.assertEqual(db.session.get(Offer, offer.id).status, OfferStatus.PENDING)

    def test_buyer_answers_counter_offer_not_seller(self):
        offer = self.offers.create_offer(self.listing, self.buyer, 700)
        counter = self.offers.counter_offer(offer, 950, actor=self.seller)
        with self.assertRaises(ForbiddenError):
            self.offers.respond_to_offer(counter, "ACCEPT", actor=self.seller)
        self.assertEqual(db.session.get(Offer, counter.id).status, OfferStatus.PENDING)

        accepted = self.offers.respond_to_offer(counter, "ACCEPT", actor=self.buyer)
        self.assertEqual(accepted.status, OfferStatus.ACCEPTED)
        self.assertEqual(self.mailer.outbox[-1]["to"], self.seller.email)

        result = self.services.checkout.checkout_single(self.buyer, "EFT", offer_id=counter.id)
        self.assertEqual(result.transaction.item_price, Decimal("950.00"))

    def test_buyer_can_reject_counter_offer(self):
        offer = self.offers.create_offer(self.listing, self.buyer, 700)
        counter = self.offers.counter_offer(offer, 950, actor=self.seller)
        rejected = self.offers.respond_to_offer(counter, "REJECT", actor=self.buyer)
        self.assertEqual(rejected.status, OfferStatus.REJECTED)

    def test_counter_offer_cannot_be_countered_and_is_withdrawn_by_seller(self):
        offer = self.offers.create_offer(self.listing, self.buyer, 700)
        counter = self.offers.counter_offer(offer, 950, actor=self.seller)
        with self.assertRaises(ValidationError):
            self.offers.counter_offer(counter, 900, actor=self.seller)
        with self.assertRaises(ForbiddenError):
            self.offers.withdraw_offer(counter, actor=self.buyer)
        withdrawn = self.offers.withdraw_offer(counter, actor=self.seller)
        self.assertEqual(withdrawn.status, OfferStatus.WITHDRAWN)

    def test_withdraw(self):
        offer = self.offers.create_offer(self.listing, self.buyer, 700)
        with self.assertRaises(ForbiddenError):
            self.offers.withdraw_offer(offer, actor=self.seller)
        withdrawn = self.offers.withdraw_offer(offer, actor=self.buyer)
        self.assertEqual(withdrawn.status, OfferStatus.WITHDRAWN)


if __name__ == "__main__":
    unittest.main()
