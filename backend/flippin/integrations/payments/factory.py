from __future__ import annotations

from flippin.config import FlippinConfig
from flippin.integrations.common import IntegrationMisconfiguredError
from flippin.integrations.payments.base import PaymentRail
from flippin.integrations.payments.mock_provider import MockPaymentRail
from flippin.integrations.payments.paystack_provider import PaystackPaymentRail


def build_payment_rail(config: FlippinConfig) -> PaymentRail:
    provider = (config.payments_provider or "mock").strip().lower()
    if provider == "mock":
        return MockPaymentRail()
    if provider != "paystack":
        raise IntegrationMisconfiguredError(f"INTEGRATION_MISCONFIGURED:payments_provider={provider}")
    if not config.paystack_secret_key:
        raise IntegrationMisconfiguredError("INTEGRATION_MISCONFIGURED:missing PAYSTACK_SECRET_KEY")
    return PaystackPaymentRail(secret_key=config.paystack_secret_key, currency=config.currency)


def payment_health(config: FlippinConfig) -> dict:
    provider = (config.payments_provider or "mock").strip().lower()
    missing = []
    if provider == "paystack" and not config.paystack_secret_key:
        missing.append("PAYSTACK_SECRET_KEY")
    return {
        "status": "misconfigured" if missing else "configured",
        "provider": provider,
        "missing": missing,
    }
