from __future__ import annotations

import logging
import os

from flippin.integrations.email.base import EmailProvider, EmailResult

logger = logging.getLogger(__name__)


class MockEmailProvider(EmailProvider):
    name = "mock"

    def __init__(self):
        self.outbox: list[dict] = []

    def _force_failure(self, subject: str) -> bool:
        return "[fail]" in (subject or "").lower() or (os.getenv("MOCK_EMAIL_FORCE_FAIL") or "").strip() == "1"

    def send(self, *, to: str, subject: str, text: str, reference: str = "") -> EmailResult:
        if self._force_failure(subject):
            return EmailResult(ok=False, code="EMAIL_PROVIDER_DOWN", message="mock forced failure")
        self.outbox.append({"to": to, "subject": subject, "text": text, "reference": reference})
        logger.info("mock_email_sent to=%s subject=%s", to, subject)
        return EmailResult(ok=True, code="OK", message="mock_sent", provider_ref=reference)
