from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from flippin.config import FlippinConfig
from flippin.integrations.email import EmailProvider
from flippin.integrations.payments import PaymentRail, build_payment_rail
from flippin.services.checkout_service import CheckoutService
from flippin.services.notification_service import Notifier
from flippin.services.offer_service import OfferService
from flippin.services.transaction_lifecycle import TransactionLifecycle

EXTENSION_KEY = "flippin"


@dataclass
class Services:
    config: FlippinConfig
    payment_rail: PaymentRail
    notifier: Notifier
    lifecycle: TransactionLifecycle
    checkout: CheckoutService
    offers: OfferService


def build_services(
    config: FlippinConfig,
    *,
    payment_rail: PaymentRail | None = None,
    email_provider: EmailProvider | None = None,
) -> Services:
    rail = payment_rail or build_payment_rail(config)
    notifier = Notifier(config, email_provider=email_provider)
    lifecycle = TransactionLifecycle(config, rail, notifier)
    return Services(
        config=config,
        payment_rail=rail,
        notifier=notifier,
        lifecycle=lifecycle,
        checkout=CheckoutService(lifecycle, config),
        offers=OfferService(config, notifier),
    )


def init_services(app, config: FlippinConfig, **collaborators) -> Services:
    services = build_services(config, **collaborators)
    app.config["FLIPPIN"] = config
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]
