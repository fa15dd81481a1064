from __future__ import annotations

from decimal import Decimal

import requests

from flippin.integrations.payments.base import CardChargeResult, EftInstruction, PaymentRail

PAYSTACK_API = "https://api.paystack.co"


def _to_cents(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).to_integral_value())


class PaystackPaymentRail(PaymentRail):
    name = "paystack"

    def __init__(self, secret_key: str, *, currency: str = "ZAR", timeout: int = 25):
        self.secret_key = secret_key
        self.currency = currency
        self.timeout = timeout

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def process_eft(self, amount: Decimal, reference: str) -> EftInstruction:
        # Manual transfer into the escrow account; verification happens later.
        return EftInstruction(reference=reference, amount=amount, provider=self.name, raw=None)

    def process_card(self, amount: Decimal, token: str, metadata: dict | None = None) -> CardChargeResult:
        meta = dict(metadata or {})
        payload = {
            "authorization_code": token,
            "email": meta.pop("email", ""),
            "amount": _to_cents(amount),
            "currency": self.currency,
            "metadata": meta,
        }
        r = requests.post(
            f"{PAYSTACK_API}/transaction/charge_authorization",
            headers=self._headers(),
            json=payload,
            timeout=self.timeout,
        )
        j = r.json() if r.content else {}
        data = j.get("data") or {}
        ok = 200 <= r.status_code < 300 and j.get("status") is True and (data.get("status") or "") == "success"
        if not ok:
            msg = (data.get("gateway_response") or j.get("message") or f"HTTP {r.status_code}").strip()
            return CardChargeResult(
                success=False,
                transaction_id=str(data.get("reference") or ""),
                amount=amount,
                provider=self.name,
                error=msg,
                raw=j if isinstance(j, dict) else {"payload": j},
            )
        return CardChargeResult(
            success=True,
            transaction_id=str(data.get("reference") or data.get("id") or ""),
            amount=amount,
            provider=self.name,
            raw=j,
        )

    def refund_card(self, transaction_id: str, amount: Decimal) -> CardChargeResult:
        r = requests.post(
            f"{PAYSTACK_API}/refund",
            headers=self._headers(),
            json={"transaction": transaction_id, "amount": _to_cents(amount)},
            timeout=self.timeout,
        )
        j = r.json() if r.content else {}
        ok = 200 <= r.status_code < 300 and j.get("status") is True
        return CardChargeResult(
            success=bool(ok),
            transaction_id=transaction_id,
            amount=amount,
            provider=self.name,
            error="" if ok else (j.get("message") or f"HTTP {r.status_code}"),
            raw=j if isinstance(j, dict) else {"payload": j},
        )
