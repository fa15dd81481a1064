from __future__ import annotations

import json
import os
import unittest
import uuid
from unittest.mock import patch

from flask import Flask

from flippin.extensions import db
from flippin.models import PlatformEvent
from flippin.utils.events import log_event
from flippin.utils.observability import _before_send_scrub, init_sentry

from tests._support import FlippinTestCase


class SentryOptionalInitTestCase(unittest.TestCase):
    def test_sentry_init_is_noop_without_dsn(self):
        app = Flask(__name__)
        with patch.dict(os.environ, {"SENTRY_DSN": ""}, clear=False):
            init_sentry(app)

    def test_scrub_redacts_auth_header_and_card_token(self):
        event = {
            "request": {
                "headers": {"Authorization": "Bearer abc", "Accept": "application/json"},
                "data": {"card_token": "tok_live_1", "listing_ids": [1, 2]},
            }
        }
        scrubbed = _before_send_scrub(event, None)
        self.assertEqual(scrubbed["request"]["headers"]["Authorization"], "[REDACTED]")
        self.assertEqual(scrubbed["request"]["headers"]["Accept"], "application/json")
        self.assertEqual(scrubbed["request"]["data"]["card_token"], "[REDACTED]")
        self.assertEqual(scrubbed["request"]["data"]["listing_ids"], [1, 2])


class RequestIdHeadersTestCase(FlippinTestCase):
    def test_generates_request_id_when_missing(self):
        res = self.client.get("/api/health")
        self.assertEqual(res.status_code, 200)
        rid = (res.headers.get("X-Request-ID") or "").strip()
        uuid.UUID(rid)

    def test_echoes_request_id_when_provided(self):
        res = self.client.get("/api/health", headers={"X-Request-ID": "rid-test-123"})
        self.assertEqual(res.headers.get("X-Request-ID"), "rid-test-123")

    def test_request_log_names_subject_and_error_code(self):
        buyer = self.make_user()
        with self.assertLogs(self.app.logger, level="INFO") as logs:
            res = self.client.get("/api/transactions/4242", headers=self.auth_headers(buyer))
        self.assertEqual(res.status_code, 404)
        lines = [json.loads(r.getMessage()) for r in logs.records if r.getMessage().startswith("{")]
        self.assertEqual(len(lines), 1)
        self.assertEqual(lines[0]["transaction_id"], 4242)
        self.assertEqual(lines[0]["error_code"], "NOT_FOUND")
        self.assertEqual(lines[0]["user_id"], buyer.id)

    def test_error_payload_includes_trace_id(self):
        res = self.client.post("/api/checkout/multi", json={"listing_ids": [1], "payment_method": "EFT"})
        self.assertEqual(res.status_code, 401)
        body = res.get_json(force=True)
        self.assertEqual(body.get("trace_id"), res.headers.get("X-Request-ID"))


class PlatformEventTestCase(FlippinTestCase):
    def test_idempotency_key_dedupes(self):
        first = log_event("payout_released", subject_type="transaction", subject_id=7, idempotency_key="payout:7")
        db.session.commit()
        second = log_event("payout_released", subject_type="transaction", subject_id=7, idempotency_key="payout:7")
        self.assertEqual(first.id, second.id)
        self.assertEqual(PlatformEvent.query.count(), 1)

    def test_metadata_is_json_safe(self):
        from decimal import Decimal

        event = log_event("transaction_created", metadata={"amount": Decimal("10.50"), "ids": (1, 2)})
        db.session.commit()
        self.assertEqual(event.metadata_dict(), {"amount": "10.50", "ids": [1, 2]})


if __name__ == "__main__":
    unittest.main()
