from __future__ import annotations

import unittest

from flippin.extensions import db
from flippin.models import Transaction
from flippin.models.enums import TransactionStatus

from tests._support import FlippinTestCase


class ApiContractTestCase(FlippinTestCase):
    def setUp(self):
        super().setUp()
        self.seller = self.make_user(role="seller")
        self.buyer = self.make_user()
        self.admin = self.make_user(role="admin")
        self.listing = self.make_listing(self.seller, price="2000", shipping="99")

    def test_unknown_api_route_returns_json_error_shape(self):
        res = self.client.get("/api/does-not-exist")
        self.assertEqual(res.status_code, 404)
        body = res.get_json(force=True) or {}
        self.assertFalse(body.get("ok", True))
        self.assertTrue(str(body.get("message") or "").strip())
        self.assertEqual(int(body.get("status") or 0), 404)
        self.assertTrue(str(body.get("trace_id") or "").strip())

    def test_health(self):
        res = self.client.get("/api/health")
        self.assertEqual(res.status_code, 200)
        body = res.get_json()
        self.assertTrue(body["ok"])
        self.assertEqual(body["db"], "ok")
        self.assertEqual(body["payments"]["provider"], "mock")

    def test_checkout_requires_auth(self):
        res = self.client.post("/api/checkout", json={"listing_id": self.listing.id, "payment_method": "EFT"})
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.get_json()["error"], "UNAUTHORIZED")

    def test_eft_checkout_returns_payment_instructions_and_is_idempotent(self):
        payload = {"listing_id": self.listing.id, "payment_method": "EFT"}
        first = self.client.post("/api/checkout", json=payload, headers=self.auth_headers(self.buyer))
        self.assertEqual(first.status_code, 201)
        body = first.get_json()
        self.assertTrue(body["ok"])
        self.assertEqual(body["transaction"]["status"], TransactionStatus.PAYMENT_PENDING)
        self.assertEqual(body["payment_instructions"]["amount"], "2099.00")
        self.assertEqual(body["payment_instructions"]["bank_details"]["account_number"], "62000000001")

        again = self.client.post("/api/checkout", json=payload, headers=self.auth_headers(self.buyer))
        self.assertEqual(again.status_code, 200)
        self.assertTrue(again.get_json()["reused"])
        self.assertEqual(again.get_json()["transaction"]["id"], body["transaction"]["id"])
        self.assertEqual(Transaction.query.count(), 1)

    def test_declined_card_is_402(self):
        res = self.client.post(
            "/api/checkout",
            json={"listing_id": self.listing.id, "payment_method": "CARD", "card_token": "tok_fail"},
            headers=self.auth_headers(self.buyer),
        )
        self.assertEqual(res.status_code, 402)
        body = res.get_json()
        self.assertEqual(body["error"], "CARD_DECLINED")
        self.assertTrue(body["trace_id"])

    def test_multi_checkout(self):
        other_seller = self.make_user(role="seller")
        other = self.make_listing(other_seller, price="300")
        res = self.client.post(
            "/api/checkout/multi",
            json={"listing_ids": [self.listing.id, other.id], "payment_method": "EFT"},
            headers=self.auth_headers(self.buyer),
        )
        self.assertEqual(res.status_code, 201)
        body = res.get_json()
        self.assertEqual(len(body["transactions"]), 2)
        self.assertEqual(body["payment"]["amount"], "2399.00")

        again = self.client.post(
            "/api/checkout/multi",
            json={"listing_ids": [self.listing.id, other.id], "payment_method": "EFT"},
            headers=self.auth_headers(self.buyer),
        )
        self.assertEqual(again.status_code, 200)
        self.assertEqual(len(again.get_json()["reused_transaction_ids"]), 2)

    def test_offer_flow_over_http(self):
        res = self.client.post(
            "/api/offers",
            json={"listing_id": self.listing.id, "amount": 900},
            headers=self.auth_headers(self.buyer),
        )
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.get_json()["error"], "VALIDATION_ERROR")

        res = self.client.post(
            "/api/offers",
            json={"listing_id": self.listing.id, "amount": 1800},
            headers=self.auth_headers(self.buyer),
        )
        self.assertEqual(res.status_code, 201)
        offer_id = res.get_json()["offer"]["id"]

        forbidden = self.client.post(f"/api/offers/{offer_id}/accept", headers=self.auth_headers(self.buyer))
        self.assertEqual(forbidden.status_code, 403)
        accepted = self.client.post(f"/api/offers/{offer_id}/accept", headers=self.auth_headers(self.seller))
        self.assertEqual(accepted.status_code, 200)
        self.assertEqual(accepted.get_json()["offer"]["status"], "ACCEPTED")

        checkout = self.client.post(
            "/api/checkout",
            json={"offer_id": offer_id, "payment_method": "CARD", "card_token": "tok_ok"},
            headers=self.auth_headers(self.buyer),
        )
        self.assertEqual(checkout.status_code, 201)
        self.assertEqual(checkout.get_json()["transaction"]["item_price"], "1800.00")

    def test_transaction_transitions_over_http(self):
        res = self.client.post(
            "/api/checkout",
            json={"listing_id": self.listing.id, "payment_method": "EFT"},
            headers=self.auth_headers(self.buyer),
        )
        txn_id = res.get_json()["transaction"]["id"]

        early = self.client.post(
            f"/api/transactions/{txn_id}/ship",
            json={"tracking_number": "TRK"},
            headers=self.auth_headers(self.seller),
        )
        self.assertEqual(early.status_code, 409)
        self.assertEqual(early.get_json()["error"], "INVALID_TRANSITION")

        not_admin = self.client.post(f"/api/admin/transactions/{txn_id}/verify-payment", headers=self.auth_headers(self.seller))
        self.assertEqual(not_admin.status_code, 403)
        verified = self.client.post(f"/api/admin/transactions/{txn_id}/verify-payment", headers=self.auth_headers(self.admin))
        self.assertEqual(verified.get_json()["transaction"]["status"], TransactionStatus.PAID)

        shipped = self.client.post(
            f"/api/transactions/{txn_id}/ship",
            json={"tracking_number": "TRK", "courier": "Courier Guy"},
            headers=self.auth_headers(self.seller),
        )
        self.assertEqual(shipped.status_code, 200)
        delivered = self.client.post(f"/api/transactions/{txn_id}/deliver", headers=self.auth_headers(self.seller))
        self.assertEqual(delivered.get_json()["transaction"]["status"], TransactionStatus.INSPECTION_PERIOD)
        done = self.client.post(f"/api/transactions/{txn_id}/confirm-delivery", headers=self.auth_headers(self.buyer))
        self.assertEqual(done.get_json()["transaction"]["status"], TransactionStatus.COMPLETED)

        detail = self.client.get(f"/api/transactions/{txn_id}", headers=self.auth_headers(self.buyer))
        self.assertEqual(len(detail.get_json()["transitions"]), 7)
        outsider = self.make_user()
        hidden = self.client.get(f"/api/transactions/{txn_id}", headers=self.auth_headers(outsider))
        self.assertEqual(hidden.status_code, 403)
        missing = self.client.get("/api/transactions/999999", headers=self.auth_headers(self.buyer))
        self.assertEqual(missing.status_code, 404)

    def test_instant_offers_endpoint(self):
        phones = self.make_category("Phones")
        listing = self.make_listing(self.seller, price="8000", category=phones)
        self.make_instant_buyer(categories=[phones])
        res = self.client.post(
            f"/api/listings/{listing.id}/instant-offers",
            json={"market_price": "8000"},
            headers=self.auth_headers(self.seller),
        )
        self.assertEqual(res.status_code, 201)
        offers = res.get_json()["offers"]
        self.assertEqual(offers[0]["seller_receives"], "4800.00")
        self.assertEqual(offers[0]["buyer_pays"], "5040.00")
        denied = self.client.post(f"/api/listings/{listing.id}/instant-offers", headers=self.auth_headers(self.buyer))
        self.assertEqual(denied.status_code, 403)


if __name__ == "__main__":
    unittest.main()
