from __future__ import annotations

from flippin.config import FlippinConfig
from flippin.integrations.common import IntegrationMisconfiguredError
from flippin.integrations.email.base import EmailProvider
from flippin.integrations.email.mock_provider import MockEmailProvider
from flippin.integrations.email.resend_provider import ResendEmailProvider


def build_email_provider(config: FlippinConfig) -> EmailProvider:
    provider = (config.email_provider or "mock").strip().lower()
    if provider == "mock":
        return MockEmailProvider()
    if provider != "resend":
        raise IntegrationMisconfiguredError(f"INTEGRATION_MISCONFIGURED:email_provider={provider}")
    if not config.resend_api_key:
        raise IntegrationMisconfiguredError("INTEGRATION_MISCONFIGURED:missing RESEND_API_KEY")
    return ResendEmailProvider(api_key=config.resend_api_key, sender=config.email_from)
