from __future__ import annotations

import requests

from flippin.integrations.email.base import EmailProvider, EmailResult


class ResendEmailProvider(EmailProvider):
    name = "resend"

    def __init__(self, api_key: str, sender: str, *, timeout: int = 15):
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout

    def send(self, *, to: str, subject: str, text: str, reference: str = "") -> EmailResult:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {"from": self.sender, "to": [to], "subject": subject, "text": text}
        if reference:
            payload["headers"] = {"X-Entity-Ref-ID": reference}
        try:
            r = requests.post("https://api.resend.com/emails", headers=headers, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            return EmailResult(ok=False, code="EMAIL_TRANSPORT_ERROR", message=str(exc)[:300])
        j = r.json() if r.content else {}
        if r.status_code < 200 or r.status_code >= 300:
            msg = (j.get("message") if isinstance(j, dict) else "") or f"HTTP {r.status_code}"
            return EmailResult(ok=False, code="EMAIL_REJECTED", message=str(msg)[:300], raw=j if isinstance(j, dict) else None)
        return EmailResult(ok=True, code="OK", message="sent", provider_ref=str(j.get("id") or ""), raw=j)
