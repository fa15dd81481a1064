from __future__ import annotations

import unittest
from datetime import datetime, timedelta

from flippin.extensions import db
from flippin.jobs.inspection_runner import run_inspection_release
from flippin.jobs.offer_expiry_runner import run_offer_expiry
from flippin.models import InstantOffer, JobRun, Offer, Transaction
from flippin.models.enums import InstantOfferStatus, OfferStatus, TransactionStatus

from tests._support import FlippinTestCase


class InspectionReleaseTestCase(FlippinTestCase):
    def setUp(self):
        super().setUp()
        self.lifecycle = self.services.lifecycle
        self.seller = self.make_user(role="seller")
        self.buyer = self.make_user()

    def _delivered(self, *, hours_ago: int) -> Transaction:
        listing = self.make_listing(self.seller, price="3000")
        txn = self.lifecycle.create_or_reuse([listing], self.buyer, "CARD", card_token="tok_ok").transaction
        self.lifecycle.mark_shipped(txn.id, "TRK", actor=self.seller)
        return self.lifecycle.mark_delivered(
            txn.id, actor=self.seller, delivered_at=datetime.utcnow() - timedelta(hours=hours_ago)
        )

    def test_releases_only_elapsed_windows(self):
        elapsed = self._delivered(hours_ago=50)
        open_window = self._delivered(hours_ago=2)
        result = run_inspection_release(self.lifecycle)
        self.assertTrue(result["ok"])
        self.assertEqual(result["completed"], 1)
        self.assertEqual(db.session.get(Transaction, elapsed.id).status, TransactionStatus.COMPLETED)
        self.assertEqual(db.session.get(Transaction, open_window.id).status, TransactionStatus.INSPECTION_PERIOD)
        final = self.lifecycle.transitions(elapsed.id)[-1]
        self.assertEqual(final.actor_type, "system")
        self.assertEqual(final.reason, "inspection_window_elapsed")
        run = JobRun.query.filter_by(job_name="inspection_release").one()
        self.assertTrue(run.ok)
        self.assertEqual(run.processed, 1)

    def test_disputed_transactions_are_left_alone(self):
        txn = self._delivered(hours_ago=10)
        self.lifecycle.open_dispute(txn.id, "wrong colour", actor=self.buyer)
        Transaction.query.filter_by(id=txn.id).update({"inspection_ends_at": datetime.utcnow() - timedelta(hours=1)})
        db.session.commit()
        result = run_inspection_release(self.lifecycle)
        self.assertEqual(result["processed"], 0)
        self.assertEqual(db.session.get(Transaction, txn.id).status, TransactionStatus.DISPUTED)


class OfferExpiryTestCase(FlippinTestCase):
    def test_expires_pending_offers(self):
        seller = self.make_user(role="seller")
        buyer = self.make_user()
        listing = self.make_listing(seller, price="1000")
        stale = self.services.offers.create_offer(listing, buyer, 800)
        fresh = self.services.offers.create_offer(listing, buyer, 900)
        stale.expires_at = datetime.utcnow() - timedelta(hours=1)
        category = self.make_category()
        instant_buyer = self.make_instant_buyer(categories=[category])
        db.session.add(
            InstantOffer(
                listing_id=listing.id,
                instant_buyer_id=instant_buyer.id,
                seller_receives=500,
                buyer_pays=525,
                platform_fee=25,
                status=InstantOfferStatus.PENDING,
                expires_at=datetime.utcnow() - timedelta(minutes=5),
            )
        )
        db.session.commit()

        result = run_offer_expiry()
        self.assertEqual(result["offers_expired"], 1)
        self.assertEqual(result["instant_offers_expired"], 1)
        self.assertEqual(db.session.get(Offer, stale.id).status, OfferStatus.EXPIRED)
        self.assertEqual(db.session.get(Offer, fresh.id).status, OfferStatus.PENDING)
        self.assertEqual(JobRun.query.filter_by(job_name="offer_expiry").count(), 1)


if __name__ == "__main__":
    unittest.main()
